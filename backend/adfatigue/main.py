"""FastAPI entry point, CORS, lifespan."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adfatigue.config import get_settings
from adfatigue.database import init_db
from adfatigue.api import accounts, alerts, batch, creatives, fatigue, thresholds

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    scheduler = None
    if settings.scheduler_enabled:
        from adfatigue.services.scheduler import start_scheduler
        scheduler = start_scheduler()
    yield
    if scheduler:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title="Ad Fatigue Analysis Engine",
    description="Fatigue scoring, creative decay and urgent alerting for Meta ads.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(accounts.router, prefix="/api")
app.include_router(fatigue.router, prefix="/api")
app.include_router(creatives.router, prefix="/api")
app.include_router(thresholds.router, prefix="/api")
app.include_router(alerts.router, prefix="/api")
app.include_router(batch.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
