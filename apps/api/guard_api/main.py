"""FastAPI application for the guard management API.

Run with: uvicorn guard_api.main:create_app --factory --host 0.0.0.0 --port 8000
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guard_api.core.config import Settings
from guard_api.core.database import Base, create_db_engine, create_session_factory
from guard_api.core.responses import register_error_handlers
from guard_api.routers.guards import router as guards_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    app = FastAPI(title="Guard Management API")

    engine = create_db_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    if settings.auto_create_tables:
        Base.metadata.create_all(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(guards_router, prefix="/api/v1/guards", tags=["guards"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    logger.info("Guard API configured (env=%s)", settings.env)
    return app
