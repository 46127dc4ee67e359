"""
Portal configuration
Built from environment variables at startup, or constructed directly in tests
"""

import os
from typing import Iterable, Optional, Set

DEFAULT_ADMIN_EMAILS = "admin@jbiet.edu.in"
DEFAULT_FACULTY_EMAILS = "faculty@jbiet.edu.in"
DEFAULT_ALLOWED_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt", ".jpg", ".jpeg", ".png")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class Settings:
    """Validated configuration - from_env() fails fast on missing vars"""

    def __init__(
        self,
        mongo_url: str = "mongodb://localhost:27017",
        mongo_db_name: str = "assignment_portal",
        firebase_project_id: Optional[str] = None,
        firebase_private_key: Optional[str] = None,
        firebase_client_email: Optional[str] = None,
        firebase_web_api_key: Optional[str] = None,
        firebase_storage_bucket: Optional[str] = None,
        session_jwt_secret: str = "change-me",
        session_expire_hours: int = 24,
        admin_emails: Iterable[str] = (DEFAULT_ADMIN_EMAILS,),
        faculty_emails: Iterable[str] = (DEFAULT_FACULTY_EMAILS,),
        admin_email_substring_match: bool = True,
        role_cache_ttl_seconds: float = 30.0,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
        gemini_api_key: Optional[str] = None,
        gemini_model: str = "gemini-2.5-flash-lite",
        log_level: str = "INFO",
        cors_origins: Iterable[str] = ("*",),
    ):
        self.MONGO_URL = mongo_url
        self.MONGO_DB_NAME = mongo_db_name
        self.FIREBASE_PROJECT_ID = firebase_project_id
        self.FIREBASE_PRIVATE_KEY = firebase_private_key
        self.FIREBASE_CLIENT_EMAIL = firebase_client_email
        self.FIREBASE_WEB_API_KEY = firebase_web_api_key
        self.FIREBASE_STORAGE_BUCKET = firebase_storage_bucket
        self.SESSION_JWT_SECRET = session_jwt_secret
        self.SESSION_JWT_ALGORITHM = "HS256"
        self.SESSION_EXPIRE_HOURS = session_expire_hours
        self.JWT_ISSUER = "assignment-portal"
        self.JWT_AUDIENCE = "assignment-portal-api"
        self.ADMIN_EMAILS = {e.strip().lower() for e in admin_emails if e.strip()}
        self.FACULTY_EMAILS = {e.strip().lower() for e in faculty_emails if e.strip()}
        self.ADMIN_EMAIL_SUBSTRING_MATCH = admin_email_substring_match
        self.ROLE_CACHE_TTL_SECONDS = role_cache_ttl_seconds
        self.MAX_UPLOAD_BYTES = max_upload_bytes
        self.ALLOWED_EXTENSIONS = {e.lower() for e in allowed_extensions}
        self.GEMINI_API_KEY = gemini_api_key
        self.GEMINI_MODEL = gemini_model
        self.LOG_LEVEL = log_level
        self.CORS_ORIGINS = list(cors_origins)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongo_url=cls._require_env("MONGO_URL"),
            mongo_db_name=os.getenv("MONGO_DB_NAME", "assignment_portal"),
            firebase_project_id=cls._require_env("FIREBASE_PROJECT_ID"),
            firebase_private_key=cls._require_env("FIREBASE_PRIVATE_KEY").replace('\\n', '\n'),
            firebase_client_email=cls._require_env("FIREBASE_CLIENT_EMAIL"),
            firebase_web_api_key=cls._require_env("FIREBASE_WEB_API_KEY"),
            firebase_storage_bucket=cls._require_env("FIREBASE_STORAGE_BUCKET"),
            session_jwt_secret=cls._require_env("SESSION_JWT_SECRET"),
            session_expire_hours=int(os.getenv("SESSION_EXPIRE_HOURS", "24")),
            admin_emails=cls._parse_emails(os.getenv("ADMIN_EMAILS", DEFAULT_ADMIN_EMAILS)),
            faculty_emails=cls._parse_emails(os.getenv("FACULTY_EMAILS", DEFAULT_FACULTY_EMAILS)),
            admin_email_substring_match=cls._parse_bool(os.getenv("ADMIN_EMAIL_SUBSTRING_MATCH", "true")),
            role_cache_ttl_seconds=float(os.getenv("ROLE_CACHE_TTL_SECONDS", "30")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES))),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
        )

    @staticmethod
    def _require_env(key: str) -> str:
        """Get required environment variable or crash"""
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
        return value

    @staticmethod
    def _parse_emails(emails_str: str) -> Set[str]:
        """Parse comma-separated emails into set"""
        return {email.strip().lower() for email in emails_str.split(',') if email.strip()}

    @staticmethod
    def _parse_bool(value: str) -> bool:
        return value.strip().lower() in ("1", "true", "yes", "on")
