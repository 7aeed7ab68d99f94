"""
Application entry point.

Run locally:
    uvicorn app.main:app --reload --port 8000

API docs available at:
    http://localhost:8000/docs   (Swagger UI)
    http://localhost:8000/redoc  (ReDoc)
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.core.exception_handlers import register_exception_handlers
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.routers import auth, social, chat
from app.schemas.common import APIResponse

VERSION = "1.0.0"


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Convoy API",
        description=(
            "Backend for a driving-community app. "
            "Supports OTP email verification, accounts, friend requests, "
            "friendships and direct messaging between friends."
        ),
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── Rate Limiter ──────────────────────────────────────────────────────────
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # ── Error envelope ────────────────────────────────────────────────────────
    register_exception_handlers(app)

    # ── CORS ──────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    # Auth (public except /me and /profile)
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])

    # Discovery, friend requests, friendships
    app.include_router(social.router, prefix="/api/social", tags=["Social"])

    # Direct conversations and messages
    app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])

    # ── Health Check ──────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"], response_model=APIResponse[dict])
    def health_check():
        """Liveness only; does not touch the database."""
        return APIResponse(message="ok", data={"version": VERSION})

    return app


app = create_app()
