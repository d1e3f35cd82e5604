import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from golf_scheduler.config import SchedulerSettings
from golf_scheduler.database import init_db
from golf_scheduler.routes import circuit_breakers, schedule, seasons
from golf_scheduler.services.regeneration_coordinator import RegenerationStatusStore
from golf_scheduler.services.reliability import CircuitBreakerRegistry

logger = logging.getLogger(__name__)

APP_NAME = "Golf Scheduler API"


def create_app(settings: SchedulerSettings = None) -> FastAPI:
    settings = settings or SchedulerSettings.from_env()
    app = FastAPI(title=APP_NAME)

    # Per-application stores shared by every request
    app.state.settings = settings
    app.state.status_store = RegenerationStatusStore()
    app.state.breakers = CircuitBreakerRegistry.from_settings(settings)

    cors_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    cors_origins.extend(settings.cors_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(schedule.router, prefix="/api", tags=["schedule"])
    app.include_router(seasons.router, prefix="/api", tags=["seasons"])
    app.include_router(circuit_breakers.router, prefix="/api", tags=["circuit-breakers"])

    @app.get("/api/health")
    def health_check():
        return {"app_name": APP_NAME, "status": "healthy"}

    return app


app = create_app()


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("%s started", APP_NAME)
