import asyncio
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lyro_api import database
from lyro_api.config import settings
from lyro_api.dependencies import set_certificate_columns
from lyro_api.logging_config import get_logger, setup_logging
from lyro_api.routers import chat, sessions
from lyro_api.services.ai_gateway import get_ai_gateway
from lyro_api.services.alert_service import alert_critical
from lyro_api.services.errors import SchemaNegotiationError
from lyro_api.services.store import negotiate_certificate_columns

setup_logging()

app = FastAPI(
    title="Lyro API",
    description="Support chatbot backend for Fundación CapacitaMente",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(sessions.router)

sweep_logger = get_logger("ai_sweeper")
_sweep_task: asyncio.Task | None = None


def _is_env_enabled(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _is_sweeper_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return _is_env_enabled(os.environ.get("AI_SWEEPER_ENABLED"), default=True)


async def _sweep_loop() -> None:
    interval_seconds = max(settings.ai_sweep_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            get_ai_gateway().sweep()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            sweep_logger.error("AI sweep failed", extra={"context": {"error": str(exc)}})


@app.on_event("startup")
def prepare_storage() -> None:
    database.Base.metadata.create_all(bind=database.engine)
    try:
        columns = negotiate_certificate_columns(database.engine)
    except SchemaNegotiationError as exc:
        alert_critical("Esquema de certificados incompatible", {"table": exc.table, "missing": exc.missing})
        raise
    set_certificate_columns(columns)


@app.on_event("startup")
async def start_sweeper() -> None:
    global _sweep_task
    if not _is_sweeper_enabled():
        return
    if _sweep_task is None or _sweep_task.done():
        _sweep_task = asyncio.create_task(_sweep_loop())
        sweep_logger.info("AI context sweeper started")


@app.on_event("shutdown")
async def stop_sweeper() -> None:
    global _sweep_task
    if _sweep_task is None:
        return
    _sweep_task.cancel()
    try:
        await _sweep_task
    except asyncio.CancelledError:
        pass
    _sweep_task = None


@app.get("/health")
def health():
    return {"status": "ok", "ai_quota": get_ai_gateway().usage}
