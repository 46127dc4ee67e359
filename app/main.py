"""
Academic Assignment Portal API

Run with:
    uvicorn app.main:create_app --factory
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.admin.admin_router import router as admin_router
from app.auth.auth_router import router as auth_router
from app.auth.firebase_auth import (
    FirebaseIdentityProvider, IdentityProvider, SessionManager, init_firebase
)
from app.auth.role_resolver import RolePolicy, RoleService
from app.core.blob_store import BlobStore, FirebaseBlobStore
from app.core.config import Settings
from app.core.exceptions import PortalError
from app.core.logging_config import setup_logging
from app.core.repository import DocumentRepository, connect_mongo
from app.faculty.faculty_router import router as faculty_router
from app.faculty.feedback_ai import (
    DisabledFeedbackGenerator, FeedbackGenerator, GeminiFeedbackGenerator
)
from app.students.student_router import router as student_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[DocumentRepository] = None,
    blob_store: Optional[BlobStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
    feedback_generator: Optional[FeedbackGenerator] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.LOG_LEVEL)

    if blob_store is None or identity_provider is None:
        init_firebase(settings)

    repository = repository or connect_mongo(settings.MONGO_URL, settings.MONGO_DB_NAME)
    blob_store = blob_store or FirebaseBlobStore(settings.FIREBASE_STORAGE_BUCKET)
    identity_provider = identity_provider or FirebaseIdentityProvider(settings)

    if feedback_generator is None:
        feedback_generator = (
            GeminiFeedbackGenerator(settings.GEMINI_API_KEY, settings.GEMINI_MODEL)
            if settings.GEMINI_API_KEY else DisabledFeedbackGenerator()
        )

    app = FastAPI(title="Academic Assignment Portal")

    app.state.settings = settings
    app.state.repository = repository
    app.state.blob_store = blob_store
    app.state.identity_provider = identity_provider
    app.state.sessions = SessionManager(settings)
    app.state.role_service = RoleService(
        repository,
        RolePolicy.build(settings.ADMIN_EMAILS, settings.FACULTY_EMAILS, settings.ADMIN_EMAIL_SUBSTRING_MATCH),
        ttl_seconds=settings.ROLE_CACHE_TTL_SECONDS,
    )
    app.state.feedback_generator = feedback_generator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        await app.state.repository.ensure_indexes()
        logger.info(
            f"Portal started: {len(settings.ADMIN_EMAILS)} admin and "
            f"{len(settings.FACULTY_EMAILS)} faculty email shortcut(s)"
        )

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code, "details": exc.details},
        )

    # ==================== ROUTER REGISTRATION ====================
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(faculty_router)
    app.include_router(student_router)
    # ============================================================

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}

    return app
