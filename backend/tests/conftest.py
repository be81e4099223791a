from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker

from adfatigue.database import Base, get_db, make_engine
from adfatigue.models import Account, Ad, AdInsight
from adfatigue.services.metrics import MetricSample
from adfatigue.services.store import FatigueStore, get_store

START = date(2026, 3, 1)


def build_series(n: int, start: date = START, **columns) -> list[MetricSample]:
    """n daily samples; each column is either a per-day list or a scalar applied to every day."""
    out = []
    for i in range(n):
        values = {k: (v[i] if isinstance(v, (list, tuple)) else v) for k, v in columns.items()}
        out.append(MetricSample(date=start + timedelta(days=i), **values))
    return out


@pytest.fixture
def series():
    return build_series


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return FatigueStore(session_factory, suppression_hours=24)


@pytest.fixture
def seed(session_factory):
    """Insert an account (if new), an ad and its daily samples."""

    def _seed(account_id: str, ad_id: str, samples: list[MetricSample], status: str = "ACTIVE", **account_fields):
        db = session_factory()
        try:
            if not db.query(Account).filter(Account.id == account_id).first():
                db.add(Account(id=account_id, account_name=f"Account {account_id}", **account_fields))
            db.add(Ad(id=ad_id, account_id=account_id, ad_name=f"Ad {ad_id}", campaign_id="camp-1", status=status))
            for s in samples:
                db.add(AdInsight(account_id=account_id, ad_id=ad_id, **s.__dict__))
            db.commit()
        finally:
            db.close()

    return _seed


@pytest_asyncio.fixture
async def client(store, session_factory):
    from adfatigue.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
