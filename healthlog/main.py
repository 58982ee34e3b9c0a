from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from healthlog.config import settings
from healthlog.db import engine
from healthlog.engine import connector
from healthlog.engine.activity_router import router as activity_router
from healthlog.engine.advice_router import router as advice_router
from healthlog.engine.advisor import AdvisorConfig, RecommendationClient
from healthlog.engine.errors import DomainError
from healthlog.engine.medication_router import router as medication_router
from healthlog.log import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_json)
    if settings.create_schema:
        await connector.ensure_schema(engine)
    app.state.advisor = RecommendationClient(AdvisorConfig.from_settings(settings))
    logger.info("startup_complete", advice_configured=settings.advice_api_key is not None)
    yield
    await app.state.advisor.aclose()
    await engine.dispose()


app = FastAPI(title="HealthLog", version="0.1.0", lifespan=lifespan)
app.include_router(activity_router)
app.include_router(medication_router)
app.include_router(advice_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "activity": {
            "day": "/activity",
            "steps": "/activity/steps",
            "target": "/activity/target",
            "workout_type": "/activity/workout-type",
            "exercises": "/activity/exercises",
            "monthly": "/activity/monthly",
        },
        "medications": {
            "list": "/medications",
            "stock": "/medications/{id}/stock",
            "schedule": "/medications/{id}/schedule",
            "taken": "/medications/{id}/taken",
        },
        "recommendations": {
            "snapshot": "/recommendations/snapshot/{category}",
            "advice": "/recommendations/{category}",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
