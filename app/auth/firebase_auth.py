"""
Identity and session handling
Firebase verifies who the user is; the portal issues its own session JWT
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import firebase_admin
import httpx
import jwt
from firebase_admin import auth, credentials

from app.core.config import Settings
from app.core.exceptions import AuthenticationError, ConflictError, StorageError

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

# Identity Toolkit error codes that mean "wrong credentials"
BAD_CREDENTIAL_CODES = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_EMAIL",
    "USER_DISABLED",
}


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None


def init_firebase(settings: Settings) -> None:
    """
    Initialize Firebase Admin SDK once per process

    Raises:
        RuntimeError: If Firebase init fails
    """
    try:
        if not firebase_admin._apps:
            cred = credentials.Certificate({
                "type": "service_account",
                "project_id": settings.FIREBASE_PROJECT_ID,
                "private_key": settings.FIREBASE_PRIVATE_KEY,
                "client_email": settings.FIREBASE_CLIENT_EMAIL,
                "token_uri": "https://oauth2.googleapis.com/token",
            })
            firebase_admin.initialize_app(cred, {"storageBucket": settings.FIREBASE_STORAGE_BUCKET})

        logger.info("Firebase Admin SDK initialized")

    except Exception as e:
        raise RuntimeError(f"FATAL: Firebase initialization failed: {e}")


class IdentityProvider(ABC):

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        ...

    @abstractmethod
    async def verify_id_token(self, id_token: str) -> Identity:
        ...

    @abstractmethod
    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> str:
        """Create an account and return its uid"""

    @abstractmethod
    async def delete_user(self, uid: str) -> None:
        ...


class FirebaseIdentityProvider(IdentityProvider):

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    async def sign_in(self, email: str, password: str) -> Identity:
        async with httpx.AsyncClient(timeout=20, transport=self.transport) as client:
            response = await client.post(
                SIGN_IN_URL,
                params={"key": self.settings.FIREBASE_WEB_API_KEY},
                json={"email": email, "password": password, "returnSecureToken": True}
            )

        if response.status_code != 200:
            try:
                code = response.json().get("error", {}).get("message", "")
            except ValueError:
                code = f"HTTP {response.status_code}"
            if code.split(" ")[0] in BAD_CREDENTIAL_CODES:
                raise AuthenticationError("Invalid email or password")
            logger.error(f"Sign-in failed for {email}: {code}")
            raise AuthenticationError("Sign-in failed, please try again")

        data = response.json()
        return Identity(uid=data["localId"], email=data.get("email", email))

    async def verify_id_token(self, id_token: str) -> Identity:
        try:
            decoded = auth.verify_id_token(id_token)
        except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, ValueError):
            raise AuthenticationError("Authentication failed")

        return Identity(uid=decoded["uid"], email=decoded.get("email"))

    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> str:
        try:
            record = auth.create_user(email=email, password=password, display_name=display_name)
        except auth.EmailAlreadyExistsError:
            raise ConflictError("This email is already registered.")
        except Exception as e:
            logger.error(f"Account creation failed for {email}: {e}", exc_info=True)
            raise StorageError("Account creation failed", operation="create_user")

        return record.uid

    async def delete_user(self, uid: str) -> None:
        try:
            auth.delete_user(uid)
        except auth.UserNotFoundError:
            logger.warning(f"Account {uid} already removed")


class InMemoryIdentityProvider(IdentityProvider):
    """Accounts held in a dict; ID tokens are 'token-<uid>'"""

    def __init__(self):
        self.accounts: Dict[str, dict] = {}

    def add_account(self, email: str, password: str, uid: Optional[str] = None) -> str:
        uid = uid or uuid.uuid4().hex[:28]
        self.accounts[uid] = {"email": email.lower(), "password": password}
        return uid

    async def sign_in(self, email: str, password: str) -> Identity:
        for uid, account in self.accounts.items():
            if account["email"] == email.lower() and account["password"] == password:
                return Identity(uid=uid, email=account["email"])
        raise AuthenticationError("Invalid email or password")

    async def verify_id_token(self, id_token: str) -> Identity:
        uid = id_token[len("token-"):] if id_token.startswith("token-") else None
        if uid not in self.accounts:
            raise AuthenticationError("Authentication failed")
        return Identity(uid=uid, email=self.accounts[uid]["email"])

    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> str:
        if any(a["email"] == email.lower() for a in self.accounts.values()):
            raise ConflictError("This email is already registered.")
        return self.add_account(email, password)

    async def delete_user(self, uid: str) -> None:
        self.accounts.pop(uid, None)


class SessionManager:
    """Portal session tokens (PyJWT) with jti-based revocation"""

    def __init__(self, settings: Settings):
        self.settings = settings
        # {jti: expiration_timestamp}
        self.revoked_sessions: Dict[str, float] = {}

    def create(self, identity: Identity) -> str:
        expire = datetime.utcnow() + timedelta(hours=self.settings.SESSION_EXPIRE_HOURS)

        payload = {
            "jti": str(uuid.uuid4()),
            "iss": self.settings.JWT_ISSUER,
            "aud": self.settings.JWT_AUDIENCE,
            "sub": identity.uid,
            "email": identity.email,
            "exp": expire,
            "iat": datetime.utcnow()
        }

        return jwt.encode(payload, self.settings.SESSION_JWT_SECRET, algorithm=self.settings.SESSION_JWT_ALGORITHM)

    def _decode(self, token: str) -> dict:
        try:
            return jwt.decode(
                token,
                self.settings.SESSION_JWT_SECRET,
                algorithms=[self.settings.SESSION_JWT_ALGORITHM],
                issuer=self.settings.JWT_ISSUER,
                audience=self.settings.JWT_AUDIENCE,
                options={"require": ["exp", "iat", "jti", "sub"]}
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Session expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid session")

    def verify(self, token: str) -> Identity:
        payload = self._decode(token)

        if payload["jti"] in self.revoked_sessions:
            raise AuthenticationError("Session revoked")

        return Identity(uid=payload["sub"], email=payload.get("email"))

    def revoke(self, token: str) -> None:
        payload = self._decode(token)
        self.revoked_sessions[payload["jti"]] = payload["exp"]
        self._cleanup_expired()

    def _cleanup_expired(self) -> None:
        now = time.time()
        for jti in [j for j, exp in self.revoked_sessions.items() if exp < now]:
            del self.revoked_sessions[jti]
