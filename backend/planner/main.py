"""FastAPI application entry point."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from planner.config import settings
from planner.database import Base, engine
from planner.errors import PlannerError

# Import routers
from planner.routers import attendees, comments, events, links, polls, todo, users

# Import all models so Base.metadata knows about them
from planner.models.user import User                  # noqa: F401
from planner.models.event import Event, EventDocument  # noqa: F401

from planner.services.document_store import get_store
from planner.services.notifications import close_notifier, get_notifier
from planner.services.scheduler import SchedulerDriver

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Group Event Planner",
    description="Collaborative group event planning with reminders and inactivity clean-up",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(attendees.router, prefix="/api/attendees", tags=["Attendees"])
app.include_router(polls.router, prefix="/api/polls", tags=["Polls"])
app.include_router(comments.router, prefix="/api/comments", tags=["Comments"])
app.include_router(links.router, prefix="/api/links", tags=["Links"])
app.include_router(todo.router, prefix="/api/to-do", tags=["ToDo"])


@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError):
    headers = {"Retry-After": "5"} if exc.transient else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


scheduler: Optional[SchedulerDriver] = None


@app.on_event("startup")
def on_startup():
    """Create database tables (SQLite dev mode) and start the background sweeps."""
    global scheduler
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    if settings.SCHEDULER_ENABLED:
        scheduler = SchedulerDriver(get_store(), get_notifier())
        scheduler.start()


@app.on_event("shutdown")
def on_shutdown():
    if scheduler is not None:
        scheduler.stop()
    close_notifier()


@app.get("/api/health")
def health_check():
    return {"status": "ok", "scheduler": bool(scheduler and scheduler.running)}
