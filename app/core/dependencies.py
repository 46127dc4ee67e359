from fastapi import Request

from app.core.blob_store import BlobStore
from app.core.config import Settings
from app.core.repository import DocumentRepository


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> DocumentRepository:
    return request.app.state.repository


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_identity_provider(request: Request):
    return request.app.state.identity_provider


def get_session_manager(request: Request):
    return request.app.state.sessions


def get_role_service(request: Request):
    return request.app.state.role_service


def get_feedback_generator(request: Request):
    return request.app.state.feedback_generator
