"""
StudyMate - FastAPI Backend
Study sessions, courses, reminders, weekly analytics and study recommendations.
Start with: uvicorn main:app --reload
"""

import json
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from analytics import (
    get_course_completion_data, get_daily_minutes_this_week, get_dashboard_stats,
    get_recent_sessions, get_upcoming_sessions
)
from catalog import CatalogUnavailableError
from clock import now
from config import get_config_summary, get_recommendation_config, get_server_config
from logger import logger
from models import (
    Course, CourseCompletion, CourseCreate, DailyMinutes, DashboardStats, HealthStatus,
    RefreshResult, ReminderToggle, ScheduledReminder, Session, SessionCreate,
    SessionUpdate, StudyRecommendation, StudyState
)
from notifications import register_client, serialize_reminder, unregister_client
from recommendations import RecommendationEngine
from store import CourseNotFoundError, SessionNotFoundError, StudyStore


VERSION = "1.0.0"


def create_app(store: Optional[StudyStore] = None) -> FastAPI:
    """Build the API around a store (a default one when not given)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        app.state.store = store or StudyStore()
        loaded = await app.state.store.hydrate()
        logger.info("Server started (cache %s)", "loaded" if loaded else "empty")
        yield
        app.state.store.scheduler.cancel_all()
        logger.info("Server shutting down")

    app = FastAPI(
        title="StudyMate",
        description="Study session tracking with weekly analytics and study recommendations",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_server_config().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


def _store(request: Request) -> StudyStore:
    return request.app.state.store


def register_routes(app: FastAPI):

    # ============================================
    # HEALTH & STATUS
    # ============================================

    @app.get("/health", response_model=HealthStatus)
    @app.get("/api/health", response_model=HealthStatus)
    async def health_check(request: Request):
        """Check API health and store size."""
        store = _store(request)
        snapshot = store.snapshot()
        return HealthStatus(
            status="healthy",
            version=VERSION,
            sessions=len(snapshot.sessions),
            courses=len(snapshot.courses),
            scheduled_reminders=len(store.scheduler.list_scheduled()),
            last_error=store.error,
        )

    @app.get("/api/config")
    async def get_configuration():
        """Current configuration values."""
        return get_config_summary()

    @app.get("/api/state", response_model=StudyState)
    async def get_state(request: Request):
        store = _store(request)
        snapshot = store.snapshot()
        return StudyState(
            sessions=list(snapshot.sessions),
            courses=list(snapshot.courses),
            loading=store.loading,
            error=store.error,
        )

    # ============================================
    # SESSIONS
    # ============================================

    @app.get("/api/sessions", response_model=List[Session])
    async def list_sessions(request: Request, limit: Optional[int] = Query(None, ge=1)):
        """Sessions newest first."""
        return get_recent_sessions(_store(request).snapshot().sessions, limit)

    @app.get("/api/sessions/upcoming", response_model=List[Session])
    async def list_upcoming_sessions(request: Request):
        """Unfinished sessions planned for today or later."""
        return get_upcoming_sessions(_store(request).snapshot().sessions, now())

    @app.post("/api/sessions", response_model=Session)
    async def create_session(request: Request, session: SessionCreate):
        try:
            return await _store(request).add_session(session)
        except CourseNotFoundError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.patch("/api/sessions/{session_id}", response_model=Session)
    async def update_session(request: Request, session_id: str, changes: SessionUpdate):
        try:
            return await _store(request).update_session(session_id, changes)
        except SessionNotFoundError:
            raise HTTPException(status_code=404, detail="Session not found")
        except CourseNotFoundError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.post("/api/sessions/{session_id}/reminder", response_model=Session)
    async def toggle_session_reminder(request: Request, session_id: str, body: Optional[ReminderToggle] = None):
        """Turn the session's reminder on or off."""
        reminder_time = body.reminder_time if body else None
        try:
            return await _store(request).toggle_reminder(session_id, reminder_time)
        except SessionNotFoundError:
            raise HTTPException(status_code=404, detail="Session not found")

    @app.get("/api/reminders", response_model=List[ScheduledReminder])
    async def list_reminders(request: Request):
        return _store(request).scheduler.list_scheduled()

    # ============================================
    # COURSES
    # ============================================

    @app.get("/api/courses", response_model=List[Course])
    async def list_courses(request: Request):
        return list(_store(request).snapshot().courses)

    @app.post("/api/courses", response_model=Course)
    async def create_course(request: Request, course: CourseCreate):
        return await _store(request).add_course(course)

    # ============================================
    # SYNC & CACHE
    # ============================================

    @app.post("/api/refresh", response_model=RefreshResult)
    async def refresh_store(request: Request):
        """Merge the remote catalog into the store."""
        try:
            return await _store(request).refresh()
        except CatalogUnavailableError as e:
            raise HTTPException(status_code=502, detail=str(e))

    @app.delete("/api/cache")
    async def clear_cache(request: Request):
        await _store(request).clear_cache()
        return {"success": True}

    @app.post("/api/errors/clear")
    async def clear_error(request: Request):
        _store(request).clear_error()
        return {"success": True}

    # ============================================
    # ANALYTICS & RECOMMENDATIONS
    # ============================================

    @app.get("/api/dashboard", response_model=DashboardStats)
    async def dashboard(request: Request):
        snapshot = _store(request).snapshot()
        return get_dashboard_stats(snapshot.sessions, snapshot.courses, now())

    @app.get("/api/analytics/daily", response_model=List[DailyMinutes])
    async def daily_minutes(request: Request):
        return get_daily_minutes_this_week(_store(request).snapshot().sessions, now())

    @app.get("/api/analytics/completion", response_model=List[CourseCompletion])
    async def course_completion(request: Request):
        return get_course_completion_data(_store(request).snapshot().courses)

    @app.get("/api/recommendations", response_model=List[StudyRecommendation])
    async def recommendations(request: Request):
        config = get_recommendation_config()
        engine = RecommendationEngine(
            top_n=config.top_n,
            default_session_minutes=config.default_session_minutes
        )
        snapshot = _store(request).snapshot()
        return engine.get_recommendations(snapshot.sessions, snapshot.courses, now())

    # ============================================
    # REMINDER NOTIFICATIONS (WebSocket)
    # ============================================

    @app.websocket("/ws/notifications")
    async def websocket_notifications(websocket: WebSocket):
        """WebSocket endpoint for fired study reminders."""
        await websocket.accept()
        await register_client(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    continue

                cmd = message.get("command") if isinstance(message, dict) else None
                if cmd == "ping":
                    await websocket.send_json({"type": "pong"})
                elif cmd == "scheduled":
                    reminders = websocket.app.state.store.scheduler.list_scheduled()
                    await websocket.send_json({
                        "type": "scheduled",
                        "data": [serialize_reminder(r) for r in reminders]
                    })

        except WebSocketDisconnect:
            await unregister_client(websocket)
        except Exception as e:
            logger.warning("WebSocket client dropped: %s", e)
            await unregister_client(websocket)


app = create_app()


# ============================================
# RUN SERVER
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
