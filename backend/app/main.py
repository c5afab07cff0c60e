import logging
import os
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.config import settings
from app.core.errors import AppError
from app.core.logging import configure_logging
from app.database import database
from app.routers import auth, balances, investments, requests, admin
from app.services.accounts import seed_admin
from app.services.investments import settle_matured_investments

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_FORMAT, settings.LOG_LEVEL)
    await seed_admin()
    if settings.MATURITY_SWEEP_ENABLED:
        scheduler.add_job(settle_matured_investments, "cron", hour=0, minute=10, id="settle_matured", replace_existing=True)
        scheduler.start()
    yield
    if scheduler.running:
        scheduler.shutdown()
    await database.dispose()

app = FastAPI(title="CryptoInvest API", lifespan=lifespan)

_cors_origins_env = os.environ.get("CORS_ORIGINS", "")
_allowed_origins = [o.strip() for o in _cors_origins_env.split(",") if o.strip()] or ["http://localhost:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error", "error": "validation_error", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    correlation_id = uuid.uuid4().hex
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path,
        extra={"correlation_id": correlation_id, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "correlation_id": correlation_id},
    )


app.include_router(auth.router)
app.include_router(balances.router)
app.include_router(investments.router)
app.include_router(requests.router)
app.include_router(admin.router)

@app.get("/health")
async def health():
    return {"status": "ok"}
