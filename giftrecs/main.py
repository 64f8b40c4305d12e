from fastapi import FastAPI
from giftrecs.core.config import get_settings
from giftrecs.core.lifespan import lifespan
from giftrecs.api.v1.routers.health import router as health_router
from giftrecs.api.v1.routers.recommendations import router as recommendations_router
from giftrecs.api.v1.routers.events import router as events_router
from giftrecs.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging, os

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS from env (CSV), e.g. "https://gifts.example.com,https://www.gifts.example.com"
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "")
allowed_origins = [o.strip() for o in allowed_origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["http://localhost:3000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ------- Routes -------
app.include_router(health_router)
app.include_router(recommendations_router, prefix=settings.api_prefix)
app.include_router(events_router, prefix=settings.api_prefix)
