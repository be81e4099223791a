"""Persistence for samples, analysis records, trends, alerts and job logs."""
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.orm import Session

from adfatigue.config import get_settings
from adfatigue.database import SessionLocal
from adfatigue.models import Account, Ad, AdInsight, FatigueAlert, FatigueScoreRecord, FatigueTrend, ScheduledJobLog
from adfatigue.services.alerts import ISSUE_ALERT_TYPES, UrgentAlert
from adfatigue.services.metrics import MetricSample
from adfatigue.services.rules import FatigueAnalysis, FatigueScore
from adfatigue.services.thresholds import ThresholdContext

logger = logging.getLogger(__name__)

ROUTINE_ALERT_LEVELS = ("warning", "critical")

SAMPLE_FIELDS = (
    "impressions", "clicks", "reach", "frequency", "ctr", "cpm", "spend",
    "hide_clicks", "report_spam_clicks", "unlike_clicks",
    "video_plays", "video_p25_watched", "video_p50_watched", "video_p75_watched",
    "video_p95_watched", "video_p100_watched", "video_thruplay", "video_avg_watch_time",
    "ig_saves", "ig_shares", "ig_comments", "ig_likes", "ig_profile_visits", "ig_follows",
)


def insight_to_sample(row: AdInsight) -> MetricSample:
    return MetricSample(date=row.date, **{f: getattr(row, f) for f in SAMPLE_FIELDS})


def record_to_fatigue_score(record: FatigueScoreRecord) -> FatigueScore:
    """Rebuild the score view from stored ints. Values are already rounded; no re-rounding."""
    return FatigueScore(
        total=record.total_score,
        audience=record.audience_score,
        creative=record.creative_score,
        algorithm=record.algorithm_score,
        primary_issue=record.primary_issue,
        status=record.fatigue_level,
    )


def record_to_dict(record: FatigueScoreRecord) -> dict[str, Any]:
    return {
        "account_id": record.account_id,
        "ad_id": record.ad_id,
        "ad_name": record.ad_name,
        "campaign_id": record.campaign_id,
        "creative_id": record.creative_id,
        "fatigue_score": record_to_fatigue_score(record).as_dict(),
        "metrics": {
            "frequency": record.frequency,
            "first_time_ratio": record.first_time_ratio,
            "ctr_decline_rate": record.ctr_decline_rate,
            "cpm_increase_rate": record.cpm_increase_rate,
            "negative_rate": record.negative_rate,
            "reach": record.reach,
            "impressions": record.impressions,
            "ctr": record.ctr,
            "cpm": record.cpm,
            "algorithm_penalty": record.algorithm_penalty,
        },
        "recommended_action": record.recommended_action,
        "alert_triggered": record.alert_triggered,
        "data_range_start": record.data_range_start.isoformat() if record.data_range_start else None,
        "data_range_end": record.data_range_end.isoformat() if record.data_range_end else None,
        "calculated_at": record.calculated_at.isoformat() if record.calculated_at else None,
    }


def alert_to_dict(alert: FatigueAlert) -> dict[str, Any]:
    return {
        "id": alert.id,
        "account_id": alert.account_id,
        "ad_id": alert.ad_id,
        "ad_name": alert.ad_name,
        "campaign_id": alert.campaign_id,
        "alert_level": alert.alert_level,
        "alert_type": alert.alert_type,
        "action": alert.action,
        "trigger_metrics": alert.trigger_metrics or {},
        "notification_sent": alert.notification_sent,
        "created_at": alert.created_at.isoformat() if alert.created_at else None,
    }


def get_store():
    """FastAPI dependency. Overridden in tests."""
    return FatigueStore()


class FatigueStore:
    """
    Sample source and result sink for the fatigue engine.
    Every public method opens and closes its own session, so instances can be
    shared between concurrent batch tasks running in worker threads.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        suppression_hours: Optional[int] = None,
    ):
        self.session_factory = session_factory
        if suppression_hours is None:
            suppression_hours = get_settings().alert_suppression_hours
        self.suppression_window = timedelta(hours=suppression_hours)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    # --- Samples ---
    def fetch_samples(self, account_id: Optional[str], ad_id: str, lookback_days: int = 30) -> list[MetricSample]:
        """Most recent `lookback_days` daily rows for an ad, oldest first."""
        with self._session() as db:
            q = db.query(AdInsight).filter(AdInsight.ad_id == ad_id)
            if account_id:
                q = q.filter(AdInsight.account_id == account_id)
            rows = q.order_by(AdInsight.date.desc()).limit(lookback_days).all()
            return [insight_to_sample(r) for r in reversed(rows)]

    def fetch_latest_sample(self, account_id: Optional[str], ad_id: str) -> Optional[MetricSample]:
        with self._session() as db:
            q = db.query(AdInsight).filter(AdInsight.ad_id == ad_id)
            if account_id:
                q = q.filter(AdInsight.account_id == account_id)
            row = q.order_by(AdInsight.date.desc()).first()
            return insight_to_sample(row) if row else None

    def list_active_ad_ids(self, account_id: Optional[str] = None) -> list[str]:
        """Unique ids of active ads that have at least one insight row."""
        with self._session() as db:
            q = (
                db.query(AdInsight.ad_id)
                .join(Ad, Ad.id == AdInsight.ad_id)
                .filter(Ad.status == "ACTIVE")
            )
            if account_id:
                q = q.filter(AdInsight.account_id == account_id)
            return [ad_id for (ad_id,) in q.distinct().order_by(AdInsight.ad_id).all()]

    # --- Accounts / ads ---
    def list_account_ids(self) -> list[str]:
        with self._session() as db:
            return [account_id for (account_id,) in db.query(Account.id).order_by(Account.id).all()]

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._session() as db:
            return db.query(Account).filter(Account.id == account_id).first()

    def list_accounts(self) -> list[Account]:
        with self._session() as db:
            return db.query(Account).order_by(Account.created_at.desc()).all()

    def get_context(self, account_id: Optional[str]) -> ThresholdContext:
        """Analysis context for an account; missing fields fall back to configured defaults."""
        settings = get_settings()
        account = self.get_account(account_id) if account_id else None
        return ThresholdContext(
            industry=(account.industry if account else None) or settings.default_industry,
            product_price=(account.product_price if account else None) or settings.default_product_price,
            campaign_goal=(account.campaign_goal if account else None) or settings.default_campaign_goal,
            season=(account.season if account else None) or settings.default_season,
        )

    def get_ad_info(self, ad_id: str) -> dict[str, Optional[str]]:
        with self._session() as db:
            ad = db.query(Ad).filter(Ad.id == ad_id).first()
            if not ad:
                return {"ad_name": None, "campaign_id": None, "creative_id": None, "account_id": None}
            return {
                "ad_name": ad.ad_name,
                "campaign_id": ad.campaign_id,
                "creative_id": ad.creative_id,
                "account_id": ad.account_id,
            }

    # --- Results ---
    def save_analysis(
        self,
        account_id: str,
        ad_id: str,
        analysis: FatigueAnalysis,
        alert_triggered: bool = False,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Upsert the latest record for (account_id, ad_id), append a trend row and,
        when the level is warning or critical, a routine alert (subject to suppression).
        """
        now = now or datetime.now(timezone.utc)
        score, metrics = analysis.score, analysis.metrics
        info = self.get_ad_info(ad_id)

        with self._session() as db:
            record = (
                db.query(FatigueScoreRecord)
                .filter(FatigueScoreRecord.account_id == account_id, FatigueScoreRecord.ad_id == ad_id)
                .first()
            )
            if record is None:
                record = FatigueScoreRecord(account_id=account_id, ad_id=ad_id)
                db.add(record)

            record.ad_name = info["ad_name"]
            record.campaign_id = info["campaign_id"]
            record.creative_id = info["creative_id"]
            record.audience_score = score.audience
            record.creative_score = score.creative
            record.algorithm_score = score.algorithm
            record.total_score = score.total
            record.fatigue_level = score.status
            record.primary_issue = score.primary_issue
            record.frequency = metrics.frequency
            record.first_time_ratio = metrics.first_time_ratio
            record.ctr_decline_rate = metrics.ctr_decline_rate
            record.cpm_increase_rate = metrics.cpm_increase_rate
            record.negative_rate = metrics.negative_rate
            record.reach = metrics.reach
            record.impressions = metrics.impressions
            record.ctr = metrics.ctr
            record.cpm = metrics.cpm
            record.algorithm_penalty = metrics.algorithm_penalty.as_dict()
            record.recommended_action = analysis.recommended_action
            record.alert_triggered = alert_triggered
            record.data_range_start = analysis.data_range_start
            record.data_range_end = analysis.data_range_end
            record.calculated_at = now

            db.add(
                FatigueTrend(
                    account_id=account_id,
                    ad_id=ad_id,
                    date=now.date(),
                    frequency=metrics.frequency,
                    ctr=metrics.ctr,
                    cpm=metrics.cpm,
                    reach=metrics.reach,
                    new_reach=round(metrics.first_time_ratio * metrics.impressions),
                    impressions=metrics.impressions,
                    first_time_ratio=metrics.first_time_ratio,
                    ctr_change_from_baseline=metrics.ctr_decline_rate,
                    cpm_change_from_baseline=metrics.cpm_increase_rate,
                    audience_score=score.audience,
                    creative_score=score.creative,
                    algorithm_score=score.algorithm,
                    total_score=score.total,
                )
            )

            routine_alert = False
            if score.status in ROUTINE_ALERT_LEVELS:
                alert_type = ISSUE_ALERT_TYPES[score.primary_issue]
                if not self._is_suppressed(db, account_id, ad_id, alert_type, now):
                    db.add(
                        FatigueAlert(
                            account_id=account_id,
                            ad_id=ad_id,
                            ad_name=info["ad_name"],
                            campaign_id=info["campaign_id"],
                            alert_level=score.status,
                            alert_type=alert_type,
                            trigger_metrics={
                                "total_score": score.total,
                                "frequency": metrics.frequency,
                                "ctr_decline_rate": metrics.ctr_decline_rate,
                                "cpm_increase_rate": metrics.cpm_increase_rate,
                            },
                            notification_sent=False,
                            created_at=now,
                        )
                    )
                    routine_alert = True

            db.commit()
            return {"record_id": record.id, "routine_alert": routine_alert}

    def _is_suppressed(
        self,
        db: Session,
        account_id: str,
        ad_id: str,
        alert_type: str,
        now: datetime,
        action: Optional[str] = None,
    ) -> bool:
        """Same ad, stored type and action within the window. Routine alerts carry no action."""
        since = now - self.suppression_window
        q = db.query(FatigueAlert.id).filter(
            FatigueAlert.account_id == account_id,
            FatigueAlert.ad_id == ad_id,
            FatigueAlert.alert_type == alert_type,
            FatigueAlert.created_at > since,
        )
        q = q.filter(FatigueAlert.action.is_(None) if action is None else FatigueAlert.action == action)
        return q.first() is not None

    def save_alerts(self, alerts: list[UrgentAlert], now: Optional[datetime] = None) -> tuple[int, int]:
        """Append urgent alerts. Returns (persisted, suppressed)."""
        if not alerts:
            return 0, 0
        now = now or datetime.now(timezone.utc)
        persisted = suppressed = 0
        with self._session() as db:
            for alert in alerts:
                account_id = alert.account_id or ""
                if self._is_suppressed(db, account_id, alert.ad_id, alert.stored_type, now, alert.action):
                    suppressed += 1
                    continue
                ad = db.query(Ad).filter(Ad.id == alert.ad_id).first()
                db.add(
                    FatigueAlert(
                        account_id=account_id,
                        ad_id=alert.ad_id,
                        ad_name=ad.ad_name if ad else None,
                        campaign_id=ad.campaign_id if ad else None,
                        alert_level=alert.alert_level,
                        alert_type=alert.stored_type,
                        action=alert.action,
                        trigger_metrics=alert.metrics or {},
                        notification_sent=False,
                        created_at=now,
                    )
                )
                # Flush so a second alert of the same stored type in this call is suppressed
                db.flush()
                persisted += 1
                logger.info("Urgent alert created: %s for ad %s", alert.type, alert.ad_id)
            db.commit()
        return persisted, suppressed

    def log_job(
        self,
        job_id: str,
        job_type: str,
        started_at: datetime,
        status: str,
        finished_at: Optional[datetime] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        with self._session() as db:
            db.add(
                ScheduledJobLog(
                    job_id=job_id,
                    job_type=job_type,
                    started_at=started_at,
                    finished_at=finished_at or datetime.now(timezone.utc),
                    status=status,
                    job_metadata=metadata or {},
                )
            )
            db.commit()

    # --- Reads ---
    def list_records(
        self,
        account_id: Optional[str] = None,
        ad_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[FatigueScoreRecord]:
        """Stored records, highest total score first."""
        with self._session() as db:
            q = db.query(FatigueScoreRecord)
            if account_id:
                q = q.filter(FatigueScoreRecord.account_id == account_id)
            if ad_id:
                q = q.filter(FatigueScoreRecord.ad_id == ad_id)
            if campaign_id:
                q = q.filter(FatigueScoreRecord.campaign_id == campaign_id)
            q = q.order_by(FatigueScoreRecord.total_score.desc(), FatigueScoreRecord.ad_id)
            if limit:
                q = q.limit(limit)
            return q.all()

    def list_alerts(self, account_id: Optional[str] = None, limit: int = 50) -> list[FatigueAlert]:
        with self._session() as db:
            q = db.query(FatigueAlert)
            if account_id:
                q = q.filter(FatigueAlert.account_id == account_id)
            return q.order_by(FatigueAlert.created_at.desc(), FatigueAlert.id.desc()).limit(limit).all()

    def list_job_logs(self, job_type: Optional[str] = None, limit: int = 20) -> list[ScheduledJobLog]:
        with self._session() as db:
            q = db.query(ScheduledJobLog)
            if job_type:
                q = q.filter(ScheduledJobLog.job_type == job_type)
            return q.order_by(ScheduledJobLog.started_at.desc()).limit(limit).all()
