import asyncio

import pytest

from adfatigue.models import FatigueAlert, FatigueScoreRecord
from adfatigue.services.pipeline import (
    batch_analyze_ads,
    chunk,
    run_batch_analysis,
    run_in_groups,
    run_scheduled_analysis,
)
from adfatigue.services.thresholds import ThresholdContext


def alerting_samples(series):
    # frequency 4.2 and a 1% negative rate -> FREQUENCY_EXCEEDED, NEGATIVE_FEEDBACK_CRITICAL, MULTIPLE_ISSUES
    return series(
        6,
        frequency=4.2,
        ctr=[2.0, 2.0, 2.0, 1.0, 1.0, 1.0],
        cpm=10.0,
        reach=[1000, 1100, 1200, 1300, 1400, 1500],
        impressions=2000,
        hide_clicks=20,
    )


def healthy_samples(series):
    return series(4, frequency=1.0, ctr=2.0, cpm=10.0, reach=[1000, 2000, 3000, 4000], impressions=1500)


class FakeStore:
    def __init__(self, samples_by_ad, failing=()):
        self.samples_by_ad = samples_by_ad
        self.failing = set(failing)
        self.saved = []
        self.alert_batches = []
        self.jobs = []

    def list_active_ad_ids(self, account_id=None):
        return list(self.samples_by_ad)

    def list_account_ids(self):
        return ["acc-1"]

    def get_context(self, account_id):
        return ThresholdContext()

    def get_ad_info(self, ad_id):
        return {"ad_name": None, "campaign_id": None, "creative_id": None, "account_id": "acc-1"}

    def fetch_samples(self, account_id, ad_id, lookback_days=30):
        if ad_id in self.failing:
            raise RuntimeError(f"fetch failed for {ad_id}")
        return self.samples_by_ad[ad_id]

    def fetch_latest_sample(self, account_id, ad_id):
        samples = self.samples_by_ad[ad_id]
        return samples[-1] if samples else None

    def save_analysis(self, account_id, ad_id, analysis, alert_triggered=False):
        self.saved.append((ad_id, analysis.score.total, alert_triggered))

    def save_alerts(self, alerts):
        self.alert_batches.append(list(alerts))
        return len(alerts), 0

    def log_job(self, job_id, job_type, started_at, status, finished_at=None, metadata=None):
        self.jobs.append({"job_type": job_type, "status": status, "metadata": metadata})


def test_chunk():
    assert chunk(["a", "b", "c", "d", "e"], 2) == [["a", "b"], ["c", "d"], ["e"]]
    assert chunk([], 10) == []


@pytest.mark.asyncio
async def test_run_batch_analysis_isolates_failures(series):
    store = FakeStore(
        {
            "ad-alert": alerting_samples(series),
            "ad-healthy": healthy_samples(series),
            "ad-short": healthy_samples(series)[:2],
            "ad-empty": [],
            "ad-broken": healthy_samples(series),
        },
        failing={"ad-broken"},
    )
    result = await run_batch_analysis("acc-1", store=store, pause_seconds=0)

    assert result["processed"] == 2
    assert result["errors"] == 1
    assert result["skipped"] == 1
    assert result["alerts"] == 3
    assert result["cancelled"] is False
    # alerts are merged and persisted once
    assert len(store.alert_batches) == 1
    assert [a.type for a in store.alert_batches[0]] == [
        "NEGATIVE_FEEDBACK_CRITICAL",
        "FREQUENCY_EXCEEDED",
        "MULTIPLE_ISSUES",
    ]
    assert {ad: triggered for ad, _, triggered in store.saved} == {"ad-alert": True, "ad-healthy": False}

    [job] = store.jobs
    assert job["status"] == "completed"
    assert job["metadata"]["total_ads"] == 5
    assert job["metadata"]["errors"] == 1


@pytest.mark.asyncio
async def test_run_in_groups_runs_groups_sequentially():
    active = 0
    peak = 0
    seen = []

    async def worker(ad_id):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        seen.append(ad_id)
        active -= 1
        return ad_id

    results, cancelled = await run_in_groups(["a", "b", "c", "a", "d", "e"], worker, 2, 0)
    assert results == ["a", "b", "c", "d", "e"]
    assert peak == 2
    assert cancelled is False
    assert set(seen[:2]) == {"a", "b"}


@pytest.mark.asyncio
async def test_cancellation_drains_in_flight_group():
    cancel = asyncio.Event()

    async def worker(ad_id):
        if ad_id == "a":
            cancel.set()
        await asyncio.sleep(0.01)
        return ad_id

    results, cancelled = await run_in_groups(["a", "b", "c", "d"], worker, 2, 5.0, cancel)
    assert results == ["a", "b"]
    assert cancelled is True


@pytest.mark.asyncio
async def test_cancelled_before_start(series):
    cancel = asyncio.Event()
    cancel.set()
    store = FakeStore({"ad-1": healthy_samples(series)})
    result = await run_batch_analysis("acc-1", store=store, pause_seconds=0, cancel_event=cancel)
    assert result["cancelled"] is True
    assert result["processed"] == 0
    assert store.jobs[0]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_batch_analyze_ads_does_not_persist(series):
    store = FakeStore(
        {
            "ad-alert": alerting_samples(series),
            "ad-healthy": healthy_samples(series),
            "ad-short": healthy_samples(series)[:2],
            "ad-empty": [],
        }
    )
    out = await batch_analyze_ads(["ad-alert", "ad-healthy", "ad-short", "ad-empty"], store=store, pause_seconds=0)

    assert out["summary"] == {"total": 4, "successful": 2, "failed": 2, "critical_count": 1}
    by_ad = {r["ad_id"]: r for r in out["results"]}
    assert by_ad["ad-alert"]["success"] is True
    assert by_ad["ad-alert"]["analysis"]["fatigue_score"]["status"] == "critical"
    assert by_ad["ad-empty"]["error"] == "No data available"
    assert "3 days" in by_ad["ad-short"]["error"]
    assert store.saved == []
    assert store.alert_batches == []


@pytest.mark.asyncio
async def test_run_batch_analysis_with_database(store, seed, series, session_factory):
    seed("acc-1", "ad-alert", alerting_samples(series))
    seed("acc-1", "ad-healthy", healthy_samples(series))
    seed("acc-1", "ad-short", healthy_samples(series)[:2])

    result = await run_batch_analysis("acc-1", store=store, pause_seconds=0)
    assert result["processed"] == 2
    assert result["skipped"] == 1
    assert result["alerts"] == 3
    assert result["alerts_persisted"] == 3
    assert result["alerts_suppressed"] == 0

    db = session_factory()
    try:
        assert db.query(FatigueScoreRecord).count() == 2
        rows = {(a.alert_type, a.action) for a in db.query(FatigueAlert).all()}
    finally:
        db.close()
    # routine audience alert and the urgent frequency-cap alert both land
    assert ("frequency_exceeded", None) in rows
    assert ("frequency_exceeded", "FREQUENCY_CAP_REQUIRED") in rows
    assert ("negative_feedback", "IMMEDIATE_PAUSE") in rows
    assert ("multiple_factors", "REVIEW_AND_OPTIMIZE") in rows

    [job] = store.list_job_logs()
    assert job.status == "completed"
    assert job.job_metadata["processed"] == 2


@pytest.mark.asyncio
async def test_run_scheduled_analysis_covers_all_accounts(store, seed, series):
    seed("acc-1", "ad-1", alerting_samples(series))
    seed("acc-2", "ad-2", healthy_samples(series))

    totals = await run_scheduled_analysis(store=store, pause_seconds=0)
    assert totals["accounts"] == 2
    assert totals["processed"] == 2
    assert totals["failed_accounts"] == 0
    assert totals["cancelled"] is False
    assert len(store.list_job_logs()) == 2


@pytest.mark.asyncio
async def test_instagram_value_discount_applied(store, seed, series, session_factory):
    plain = alerting_samples(series)
    # save rate 60 / 2000 = 0.03 -> 25, engagement 0.03 -> 5: value score 30
    with_ig = series(
        6,
        frequency=4.2,
        ctr=[2.0, 2.0, 2.0, 1.0, 1.0, 1.0],
        cpm=10.0,
        reach=[1000, 1100, 1200, 1300, 1400, 1500],
        impressions=2000,
        hide_clicks=20,
        ig_saves=60,
    )
    seed("acc-1", "ad-plain", plain)
    seed("acc-1", "ad-ig", with_ig)

    result = await run_batch_analysis("acc-1", store=store, pause_seconds=0)
    assert result["processed"] == 2

    records = {r.ad_id: r for r in store.list_records(account_id="acc-1")}
    assert records["ad-ig"].creative_score == records["ad-plain"].creative_score - 30
    assert records["ad-ig"].audience_score == records["ad-plain"].audience_score - 15
    assert records["ad-ig"].total_score < records["ad-plain"].total_score
