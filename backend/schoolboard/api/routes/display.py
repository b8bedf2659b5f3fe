from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.api.deps import get_current_user, get_db
from schoolboard.core.exceptions import AppError
from schoolboard.core.security import decode_token
from schoolboard.models.lesson import Lesson
from schoolboard.models.timetable_entry import TimetableEntry
from schoolboard.models.user import User
from schoolboard.schemas.display import BirthdayBannerOut, HappeningNowOut, TickerOut, WeekGridOut
from schoolboard.services.announcements import birthday_banner, ticker_lines
from schoolboard.services.class_resolver import resolve_class_labels
from schoolboard.services.display_hub import display_hub
from schoolboard.services.live import build_week_grid, display_snapshot, display_spotlight, resolve_clock, school_zone

router = APIRouter()
logger = logging.getLogger(__name__)

TIME_QUERY = Query(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$", description="Simulated HH:MM")
DAY_QUERY = Query(default=None, ge=0, le=6, description="Simulated day, Sunday = 0")


@router.get("/display/now", response_model=HappeningNowOut)
def happening_now(
    day: int | None = DAY_QUERY,
    time: str | None = TIME_QUERY,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> HappeningNowOut:
    return display_snapshot(db, resolve_clock(day, time))


@router.post("/display/spotlight/{entry_id}", response_model=HappeningNowOut)
def spotlight_entry(
    entry_id: str,
    day: int | None = DAY_QUERY,
    time: str | None = TIME_QUERY,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> HappeningNowOut:
    clock = resolve_clock(day, time)
    display_snapshot(db, clock)
    display_spotlight.bring_to_bottom(entry_id)
    return display_snapshot(db, clock)


@router.get("/display/grid", response_model=WeekGridOut)
def week_grid(
    day: int | None = DAY_QUERY,
    time: str | None = TIME_QUERY,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> WeekGridOut:
    clock = resolve_clock(day, time)
    entries = list(db.execute(select(TimetableEntry)).scalars())
    lessons = {lesson.id: lesson for lesson in db.execute(select(Lesson)).scalars()}
    labels = resolve_class_labels(db, [entry.class_ref for entry in entries])
    return build_week_grid(entries, lessons, clock, class_labels=labels)


@router.get("/display/announcements", response_model=TickerOut)
def news_ticker(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> TickerOut:
    return TickerOut(lines=ticker_lines(db))


@router.get("/display/birthdays", response_model=BirthdayBannerOut)
def birthdays(
    on: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Reference date YYYY-MM-DD"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BirthdayBannerOut:
    if on:
        today = datetime.strptime(on, "%Y-%m-%d").date()
    else:
        today = datetime.now(school_zone()).date()
    return birthday_banner(db, today, datetime.now(timezone.utc))


def _extract_ws_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token

    auth_header = websocket.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


@router.websocket("/display/ws")
async def display_websocket(websocket: WebSocket, db: Session = Depends(get_db)) -> None:
    token = _extract_ws_token(websocket)
    if not token:
        await websocket.close(code=1008)
        return

    try:
        payload = decode_token(token)
        user_id = payload.get("sub")
    except JWTError:
        await websocket.close(code=1008)
        return

    user = await run_in_threadpool(db.get, User, user_id) if user_id else None
    if user is None or not user.is_active:
        await websocket.close(code=1008)
        return

    await display_hub.attach(websocket)
    try:
        try:
            snapshot = await run_in_threadpool(display_snapshot, db)
        except AppError:
            logger.warning("Could not build initial display snapshot", exc_info=True)
            snapshot = None
        await websocket.send_json(
            {"event": "connected", "user_id": user.id, "revisions": display_hub.revisions(), "snapshot": snapshot}
        )
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        display_hub.detach(websocket)
