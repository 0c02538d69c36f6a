import asyncio
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Deque, Dict

from fastapi import FastAPI, HTTPException, Query

from logging_setup import configure_logging
from models import CupSizeIn, WeightIn
from repo_state import StateRepo
from scheduler import autosave_task, reminder_task
from service_hydration import HydrationService
from settings import settings

# Notices (validation errors, save failures, reminders) wait here until the
# client drains them with GET /notices.
notices: Deque[Dict[str, str]] = deque(maxlen=50)


def push_notice(level: str, message: str) -> None:
    notices.append({"level": level, "message": message, "at": datetime.now().isoformat()})


# Instantiate the repo + service here so the routes remain thin. Tests swap
# `svc` for one backed by an in-memory repo.
repo = StateRepo()
svc = HydrationService(repo, notify=push_notice)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    await asyncio.to_thread(svc.start)
    welcome = svc.welcome_message()
    if welcome:
        push_notice("success", welcome)

    autosave = autosave_task(svc)
    reminders = reminder_task(svc, push_notice)
    autosave.start()
    reminders.start()
    try:
        yield
    finally:
        await reminders.stop()
        await autosave.stop()
        await asyncio.to_thread(svc.flush)


app = FastAPI(title="HydraTrack Backend", lifespan=lifespan)


@app.get("/health")
def health():
    try:
        svc.health_check()
        return {"ok": True}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"DB health check failed: {e}")


@app.get("/state")
def state():
    return svc.snapshot()


@app.post("/weight")
def set_weight(body: WeightIn):
    try:
        saved = svc.set_weight(body.weight_kg)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"saved": saved, "state": svc.snapshot()}


@app.post("/cup")
def set_cup(body: CupSizeIn):
    try:
        saved = svc.set_cup_size(body.size_ml)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"saved": saved, "state": svc.snapshot()}


@app.post("/drinks")
def add_drink():
    try:
        return svc.add_drink()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/drinks/undo")
def undo_drink():
    return svc.undo_last_drink()


@app.post("/reset")
def reset_today():
    saved = svc.reset_today()
    return {"saved": saved, "state": svc.snapshot()}


@app.delete("/data")
def clear_all():
    erased = svc.clear_all()
    return {"erased": erased, "state": svc.snapshot()}


@app.get("/history")
def history(limit: int = Query(10, ge=1)):
    return svc.recent_history(limit)


@app.get("/tip")
def tip():
    return {"tip": svc.next_tip()}


@app.get("/storage")
def storage():
    return {"bytes": svc.storage_used_bytes()}


@app.get("/notices")
def drain_notices():
    out = list(notices)
    notices.clear()
    return out
