# speech_audit/main.py
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from speech_audit.config import settings
from speech_audit.core.bootstrap import run_bootstrap
from speech_audit.core.db import close_db, init_db
from speech_audit.core.errors import register_exception_handlers
from speech_audit.api.v1.routers import admin, auth, insights, responses, sessions, templates

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.on_event("startup")
async def on_startup():
    # Local storage for uploaded answers and synthesized questions
    Path(settings.audio_storage_dir).mkdir(parents=True, exist_ok=True)
    logger.info("[startup] audio storage at %s", Path(settings.audio_storage_dir).resolve())
    if not settings.openai_api_key:
        logger.warning("[startup] OPENAI_API_KEY not set; audio uploads will fail transcription")
    await init_db()
    # Default admin account and sample templates on first run
    await run_bootstrap()


@app.on_event("shutdown")
async def on_shutdown():
    await close_db()


# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(templates.router, prefix="/api/v1")
app.include_router(sessions.router, prefix="/api/v1")
app.include_router(responses.router, prefix="/api/v1")
app.include_router(insights.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


@app.get("/healthz")
def healthz():
    return {"ok": True}
