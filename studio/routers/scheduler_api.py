from typing import Any, Dict, Optional

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import APIRouter

from studio.config import settings
from studio.services.scheduler import run_once

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/scheduler", tags=["scheduler"])

scheduler: Optional[BackgroundScheduler] = None

@router.post("/run")
def run_now() -> Dict[str, Any]:
    return run_once()

@router.post("/start")
def start(interval_seconds: Optional[int] = None) -> Dict[str, Any]:
    # default: SCHEDULER_INTERVAL_SECONDS; one dispatch pass per tick
    global scheduler
    if scheduler and scheduler.running:
        return {"status": "already-running"}

    seconds = interval_seconds or settings.scheduler_interval_seconds
    scheduler = BackgroundScheduler(timezone="UTC")
    trigger = IntervalTrigger(seconds=seconds)
    scheduler.add_job(run_once, trigger, id="dispatch_scheduled_posts", replace_existing=True, max_instances=1, coalesce=True)
    scheduler.start()
    logger.info("scheduler_started", interval_seconds=seconds)
    return {"status": "started", "intervalSeconds": seconds}

@router.post("/stop")
def stop() -> Dict[str, Any]:
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
        return {"status": "stopped"}
    return {"status": "not-running"}

@router.get("/status")
def status() -> Dict[str, Any]:
    return {"running": bool(scheduler and scheduler.running)}

def shutdown_scheduler() -> None:
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
