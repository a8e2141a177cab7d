"""Main FastAPI application for the Sunbreak monitor."""
import asyncio
import logging
import sys

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
import uvicorn

from sunbreak_core import (
    BedtimeEngine,
    DirectoryStateBus,
    EvaluationScheduler,
    InvalidSchedule,
    SunbreakException,
    ZoneClock,
)
from sunbreak_core.const import (
    KEY_TIMEZONE,
    TRIGGER_SCHEDULE_SAVED,
    TRIGGER_TIMEZONE_CHANGED,
    TRIGGER_UNLOCK,
)

from app.config import get_config
from app.restrictor import WebhookRestrictor

# Configure logging
config = get_config()
logging.basicConfig(
    level=config.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)

_LOGGER = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Sunbreak Monitor",
    description="Background bedtime restriction monitor",
    version="1.0.0"
)

# Global instances
engine: BedtimeEngine | None = None
scheduler: EvaluationScheduler | None = None
restrictor: WebhookRestrictor | None = None


class ScheduleRequest(BaseModel):
    bedtime: str
    wake: str


class TimezoneRequest(BaseModel):
    timezone: str | None = None


def _require_engine() -> BedtimeEngine:
    if engine is None or scheduler is None:
        raise HTTPException(status_code=503, detail="Monitor is not running")
    return engine


def _timezone_provider(bus: DirectoryStateBus):
    """Return the zone source of the monitor clock.

    A configured zone wins. Otherwise the monitor follows the zone Home
    Assistant stored with the schedule, so both contexts read the window in
    the same zone.
    """
    def provider():
        if config.timezone:
            return config.timezone
        try:
            return bus.get(KEY_TIMEZONE)
        except SunbreakException as e:
            _LOGGER.warning(f"Stored timezone unreadable, using UTC: {e}")
            return None

    return provider


@app.on_event("startup")
async def startup_event():
    """Build the engine and start the evaluation timer."""
    global engine, scheduler, restrictor
    _LOGGER.info("Starting Sunbreak Monitor v1.0.0")
    _LOGGER.info(
        f"Configuration: share_dir={config.share_dir}, interval={config.interval}s, "
        f"timezone={config.timezone or 'stored'}, webhook={'set' if config.webhook_url else 'unset'}"
    )

    loop = asyncio.get_running_loop()
    restrictor = WebhookRestrictor(
        config.webhook_url,
        token=config.webhook_token,
        context_name=config.context_name,
        timeout=config.webhook_timeout,
    )
    bus = DirectoryStateBus(config.share_dir)
    engine = BedtimeEngine(
        bus,
        ZoneClock(_timezone_provider(bus)),
        restrictor,
        context_name=config.context_name,
        run_blocking=run_in_threadpool,
    )
    scheduler = EvaluationScheduler(engine.async_evaluate, interval=config.interval)

    # Engine calls run in worker threads, requests must reach the loop
    engine.set_trigger(lambda reason: loop.call_soon_threadsafe(scheduler.request, reason))

    if config.timezone:
        try:
            # The container may have been restarted in another timezone
            await run_in_threadpool(engine.timezone_changed)
        except SunbreakException as e:
            _LOGGER.warning(f"Timezone check failed at startup: {e}")
    else:
        _LOGGER.info("No timezone configured, following the zone stored by Home Assistant")

    await scheduler.async_start()
    _LOGGER.info("Service started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the timer and close the webhook session."""
    _LOGGER.info("Shutting down Sunbreak Monitor")
    if scheduler:
        await scheduler.async_stop()
    if restrictor:
        await restrictor.async_cleanup()


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy" if scheduler and scheduler.running else "starting",
        "service": "sunbreak-monitor",
        "version": "1.0.0"
    }


@app.get("/api/state")
async def get_state():
    """Return the bedtime state as seen by this context."""
    current = _require_engine()
    try:
        return await run_in_threadpool(current.describe)
    except SunbreakException as e:
        _LOGGER.error(f"Failed to read state: {e}")
        raise HTTPException(status_code=500, detail=str(e))


async def _evaluate(reason: str) -> dict:
    # Requests queued by the worker thread land first and are absorbed here
    await asyncio.sleep(0)
    await scheduler.async_evaluate_now(reason)
    return await run_in_threadpool(engine.describe)


@app.post("/api/unlock")
async def unlock_for_today():
    """Record a successful daylight check."""
    current = _require_engine()
    try:
        await run_in_threadpool(current.unlock_for_today)
        return await _evaluate(TRIGGER_UNLOCK)
    except SunbreakException as e:
        _LOGGER.error(f"Failed to unlock: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/unlock/reset")
async def reset_unlock():
    """Forget today's unlock."""
    current = _require_engine()
    try:
        await run_in_threadpool(current.reset_unlock)
        return await _evaluate(TRIGGER_UNLOCK)
    except SunbreakException as e:
        _LOGGER.error(f"Failed to reset unlock: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/timezone-changed")
async def timezone_changed(request: TimezoneRequest | None = None):
    """Relay a timezone change, optionally switching this context's zone."""
    current = _require_engine()
    if request is not None and request.timezone:
        _LOGGER.info(f"Switching monitor timezone to {request.timezone}")
        config.timezone = request.timezone

    try:
        changed = await run_in_threadpool(current.timezone_changed)
        state = await _evaluate(TRIGGER_TIMEZONE_CHANGED)
    except SunbreakException as e:
        _LOGGER.error(f"Failed to handle timezone change: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"changed": changed, **state}


@app.post("/api/schedule")
async def set_schedule(request: ScheduleRequest):
    """Save a new bedtime window."""
    current = _require_engine()
    try:
        warnings = await run_in_threadpool(current.set_schedule, request.bedtime, request.wake)
        state = await _evaluate(TRIGGER_SCHEDULE_SAVED)
    except InvalidSchedule as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SunbreakException as e:
        _LOGGER.error(f"Failed to save schedule: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"warnings": warnings, **state}


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower()
    )
