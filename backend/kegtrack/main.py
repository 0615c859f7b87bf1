import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kegtrack.core.config import settings
from kegtrack.core.database import SessionLocal, init_db
from kegtrack.core.errors import setup_exception_handlers
from kegtrack.routes.assets import router as assets_router
from kegtrack.routes.customers import router as customers_router
from kegtrack.routes.delivery_routes import router as delivery_routes_router
from kegtrack.routes.events import router as events_router
from kegtrack.routes.health import router as health_router
from kegtrack.routes.live import router as live_router
from kegtrack.routes.logs import router as logs_router
from kegtrack.routes.movements import router as movements_router
from kegtrack.routes.overview import router as overview_router
from kegtrack.routes.users import router as users_router
from kegtrack.services.change_feed import ChangeFeed
from kegtrack.services.seed import seed_demo


logger = logging.getLogger(__name__)


def create_app(session_factory=None) -> FastAPI:
    session_factory = session_factory or SessionLocal
    change_feed = ChangeFeed()
    change_feed.attach(session_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        change_feed.detach()

    app = FastAPI(title="KegTrack API", version="0.1.0", lifespan=lifespan)
    app.state.change_feed = change_feed

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    setup_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(assets_router, prefix="/assets", tags=["assets"])
    app.include_router(customers_router, prefix="/customers", tags=["customers"])
    app.include_router(movements_router, prefix="/movements", tags=["movements"])
    app.include_router(events_router, prefix="/events", tags=["events"])
    app.include_router(overview_router, prefix="/overview", tags=["overview"])
    app.include_router(users_router, prefix="/users", tags=["users"])
    app.include_router(logs_router, prefix="/logs", tags=["logs"])
    app.include_router(delivery_routes_router, prefix="/routes", tags=["routes"])
    app.include_router(live_router, prefix="/live", tags=["live"])

    return app


app = create_app()

# Only seed in development or when explicitly requested
if settings.env == "dev" or os.getenv("FORCE_SEED") == "true":
    try:
        init_db()
        with SessionLocal() as db:
            seed_demo(db)
    except Exception:
        logger.exception("Demo seed failed")
