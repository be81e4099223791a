"""Batch fatigue analysis: account scans, explicit ad batches and the scheduled run."""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence

from adfatigue.config import get_settings
from adfatigue.services.alerts import UrgentAlert, evaluate_urgent_alerts
from adfatigue.services.extensions import build_extensions
from adfatigue.services.metrics import NEGATIVE_RATE_CRITICAL
from adfatigue.services.rules import AnalysisError, FatigueAnalysis, analyze_samples
from adfatigue.services.store import FatigueStore
from adfatigue.services.thresholds import ThresholdContext

logger = logging.getLogger(__name__)

JOB_TYPE_ACCOUNT = "fatigue_analysis"
JOB_TYPE_SCHEDULED = "scheduled_fatigue_analysis"


@dataclass
class AdOutcome:
    ad_id: str
    status: str  # analyzed | skipped | no_data | error
    alerts: list[UrgentAlert] = field(default_factory=list)
    analysis: Optional[FatigueAnalysis] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    processed: int = 0
    errors: int = 0
    alerts: int = 0
    skipped: int = 0
    cancelled: bool = False
    alerts_persisted: int = 0
    alerts_suppressed: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "errors": self.errors,
            "alerts": self.alerts,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "alerts_persisted": self.alerts_persisted,
            "alerts_suppressed": self.alerts_suppressed,
        }


def chunk(items: Sequence[str], size: int) -> list[list[str]]:
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def _pause(seconds: float, cancel_event: Optional[asyncio.Event]) -> bool:
    """Sleep between groups. Returns True if cancellation was requested meanwhile."""
    if cancel_event is None:
        await asyncio.sleep(seconds)
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False


async def run_in_groups(
    ad_ids: Sequence[str],
    worker: Callable[[str], Awaitable[Any]],
    group_size: int,
    pause_seconds: float,
    cancel_event: Optional[asyncio.Event] = None,
) -> tuple[list[Any], bool]:
    """
    Run `worker` for every unique id: groups run one after another, ids within a
    group run concurrently. Cancellation stops new groups; the in-flight group drains.
    """
    groups = chunk(list(dict.fromkeys(ad_ids)), group_size)
    results: list[Any] = []
    for i, group in enumerate(groups):
        if cancel_event is not None and cancel_event.is_set():
            return results, True
        results.extend(await asyncio.gather(*(worker(ad_id) for ad_id in group)))
        if i < len(groups) - 1 and await _pause(pause_seconds, cancel_event):
            return results, True
    return results, False


# --- Account scan ---
async def analyze_ad(
    store: FatigueStore,
    account_id: str,
    ad_id: str,
    context: ThresholdContext,
) -> AdOutcome:
    settings = get_settings()
    samples = await asyncio.to_thread(store.fetch_samples, account_id, ad_id, settings.lookback_days)
    if not samples:
        return AdOutcome(ad_id=ad_id, status="no_data")

    latest = await asyncio.to_thread(store.fetch_latest_sample, account_id, ad_id)
    result = analyze_samples(
        samples,
        context=context,
        extensions=build_extensions(samples),
        latest=latest,
        min_data_points=settings.min_data_points,
    )
    if isinstance(result, AnalysisError):
        return AdOutcome(ad_id=ad_id, status="skipped", error=result.error)

    alerts = evaluate_urgent_alerts(result.metrics, ad_id, account_id)
    await asyncio.to_thread(store.save_analysis, account_id, ad_id, result, bool(alerts))
    return AdOutcome(ad_id=ad_id, status="analyzed", alerts=alerts, analysis=result)


async def run_batch_analysis(
    account_id: str,
    store: Optional[FatigueStore] = None,
    group_size: Optional[int] = None,
    pause_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> dict[str, Any]:
    """Analyze every active ad of an account, persist records and urgent alerts, log the job."""
    settings = get_settings()
    store = store or FatigueStore()
    group_size = group_size or settings.batch_group_size
    pause_seconds = settings.batch_pause_seconds if pause_seconds is None else pause_seconds
    job_id = uuid.uuid4().hex
    started_at = datetime.now(timezone.utc)

    try:
        ad_ids = await asyncio.to_thread(store.list_active_ad_ids, account_id)
        context = await asyncio.to_thread(store.get_context, account_id)
        logger.info("Fatigue analysis for account %s: %s ads", account_id, len(ad_ids))

        async def worker(ad_id: str) -> AdOutcome:
            try:
                return await analyze_ad(store, account_id, ad_id, context)
            except Exception as e:
                logger.exception("Fatigue analysis failed for ad %s: %s", ad_id, e)
                return AdOutcome(ad_id=ad_id, status="error", error=str(e))

        outcomes, cancelled = await run_in_groups(ad_ids, worker, group_size, pause_seconds, cancel_event)

        result = BatchResult(cancelled=cancelled)
        alerts: list[UrgentAlert] = []
        for outcome in outcomes:
            if outcome.status == "analyzed":
                result.processed += 1
                alerts.extend(outcome.alerts)
            elif outcome.status == "skipped":
                result.skipped += 1
            elif outcome.status == "error":
                result.errors += 1
        result.alerts = len(alerts)
        result.alerts_persisted, result.alerts_suppressed = await asyncio.to_thread(store.save_alerts, alerts)
    except Exception as e:
        logger.exception("Fatigue analysis job failed for account %s", account_id)
        await asyncio.to_thread(
            store.log_job, job_id, JOB_TYPE_ACCOUNT, started_at, "failed",
            None, {"account_id": account_id, "error": str(e)},
        )
        raise

    status = "cancelled" if result.cancelled else "completed"
    await asyncio.to_thread(
        store.log_job, job_id, JOB_TYPE_ACCOUNT, started_at, status,
        None, {"account_id": account_id, "total_ads": len(ad_ids), **result.as_dict()},
    )
    logger.info(
        "Fatigue analysis %s for account %s: processed=%s errors=%s skipped=%s alerts=%s",
        status, account_id, result.processed, result.errors, result.skipped, result.alerts,
    )
    return result.as_dict()


# --- Explicit batch ---
def is_critical(analysis: FatigueAnalysis) -> bool:
    penalty = analysis.metrics.algorithm_penalty
    return analysis.metrics.negative_rate > NEGATIVE_RATE_CRITICAL or penalty.severity == "high"


async def batch_analyze_ads(
    ad_ids: Sequence[str],
    store: Optional[FatigueStore] = None,
    account_id: Optional[str] = None,
    group_size: Optional[int] = None,
    pause_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> dict[str, Any]:
    """Analyze a caller-supplied list of ads without persisting anything."""
    settings = get_settings()
    store = store or FatigueStore()
    group_size = group_size or settings.explicit_batch_group_size
    pause_seconds = settings.batch_pause_seconds if pause_seconds is None else pause_seconds

    async def worker(ad_id: str) -> dict[str, Any]:
        try:
            samples = await asyncio.to_thread(store.fetch_samples, account_id, ad_id, settings.lookback_days)
            if not samples:
                return {"ad_id": ad_id, "success": False, "error": "No data available"}
            owner = account_id or (await asyncio.to_thread(store.get_ad_info, ad_id))["account_id"]
            context = await asyncio.to_thread(store.get_context, owner)
            latest = await asyncio.to_thread(store.fetch_latest_sample, account_id, ad_id)
            result = analyze_samples(
                samples,
                context=context,
                extensions=build_extensions(samples),
                latest=latest,
                min_data_points=settings.min_data_points,
            )
            if isinstance(result, AnalysisError):
                return {"ad_id": ad_id, "success": False, "error": result.message}
            return {"ad_id": ad_id, "success": True, "analysis": result, "critical": is_critical(result)}
        except Exception as e:
            logger.exception("Batch analysis failed for ad %s: %s", ad_id, e)
            return {"ad_id": ad_id, "success": False, "error": str(e)}

    results, cancelled = await run_in_groups(ad_ids, worker, group_size, pause_seconds, cancel_event)
    successful = [r for r in results if r["success"]]
    return {
        "results": [
            {k: (v.as_dict() if isinstance(v, FatigueAnalysis) else v) for k, v in r.items() if k != "critical"}
            for r in results
        ],
        "summary": {
            "total": len(results),
            "successful": len(successful),
            "failed": len(results) - len(successful),
            "critical_count": sum(1 for r in successful if r["critical"]),
        },
        "cancelled": cancelled,
    }


# --- Scheduled ---
async def run_scheduled_analysis(
    store: Optional[FatigueStore] = None,
    cancel_event: Optional[asyncio.Event] = None,
    pause_seconds: Optional[float] = None,
) -> dict[str, Any]:
    """Run the account scan for every account. One account failing does not stop the others."""
    store = store or FatigueStore()
    account_ids = await asyncio.to_thread(store.list_account_ids)
    logger.info("Starting scheduled ad fatigue analysis for %s accounts", len(account_ids))

    totals = {"accounts": 0, "failed_accounts": 0, "processed": 0, "errors": 0, "alerts": 0, "skipped": 0}
    cancelled = False
    for account_id in account_ids:
        if cancel_event is not None and cancel_event.is_set():
            cancelled = True
            break
        try:
            result = await run_batch_analysis(
                account_id, store=store, pause_seconds=pause_seconds, cancel_event=cancel_event
            )
        except Exception:
            totals["failed_accounts"] += 1
            continue
        totals["accounts"] += 1
        for key in ("processed", "errors", "alerts", "skipped"):
            totals[key] += result[key]
        if result["cancelled"]:
            cancelled = True
            break

    totals["cancelled"] = cancelled
    logger.info("Scheduled fatigue analysis done: %s", totals)
    return totals
