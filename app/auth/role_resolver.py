"""
Role resolution
A signed-in identity maps to exactly one role; the role is derived on every
lookup and never stored on the identity itself.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from app.auth.firebase_auth import Identity
from app.core.exceptions import RoleLookupError
from app.core.repository import DocumentRepository

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    FACULTY = "faculty"
    STUDENT = "student"
    GUEST = "guest"


DASHBOARD_PATHS = {
    Role.ADMIN: "/admin/dashboard",
    Role.FACULTY: "/faculty/dashboard",
    Role.STUDENT: "/student/dashboard",
    Role.GUEST: "/",
}


@dataclass(frozen=True)
class RolePolicy:
    """Email shortcuts applied before any document lookup"""
    admin_emails: FrozenSet[str] = frozenset()
    faculty_emails: FrozenSet[str] = frozenset()
    admin_substring_match: bool = True

    @classmethod
    def build(cls, admin_emails: Iterable[str], faculty_emails: Iterable[str], admin_substring_match: bool):
        return cls(
            admin_emails=frozenset(e.lower() for e in admin_emails),
            faculty_emails=frozenset(e.lower() for e in faculty_emails),
            admin_substring_match=admin_substring_match,
        )


@dataclass(frozen=True)
class RoleLookup:
    """Outcome of the role-document reads for one uid"""
    is_admin_doc: bool = False
    is_faculty_doc: bool = False
    admin_lookup_failed: bool = False
    faculty_lookup_failed: bool = False


@dataclass(frozen=True)
class RoleResolution:
    role: Role
    dashboard_path: str


def _resolution(role: Role) -> RoleResolution:
    return RoleResolution(role=role, dashboard_path=DASHBOARD_PATHS[role])


def resolve_role(identity: Optional[Identity], lookup: RoleLookup, policy: RolePolicy) -> RoleResolution:
    """
    Ordered decision table; the first matching rule wins:

    1. no identity                         -> guest
    2. email in admin allowlist            -> admin
    3. substring rule on and 'admin' in email -> admin
    4. email in faculty allowlist          -> faculty
    5. admin-roles document exists         -> admin
    6. faculty document exists             -> faculty
    7. otherwise                           -> student
    """
    if identity is None:
        return _resolution(Role.GUEST)

    email = (identity.email or "").lower()

    if email and email in policy.admin_emails:
        return _resolution(Role.ADMIN)

    if email and policy.admin_substring_match and "admin" in email:
        return _resolution(Role.ADMIN)

    if email and email in policy.faculty_emails:
        return _resolution(Role.FACULTY)

    if lookup.is_admin_doc:
        return _resolution(Role.ADMIN)

    if lookup.is_faculty_doc:
        return _resolution(Role.FACULTY)

    return _resolution(Role.STUDENT)


async def _role_doc_exists(repo: DocumentRepository, collection: str, uid: str) -> bool:
    try:
        return await repo.exists(collection, uid)
    except Exception as e:
        raise RoleLookupError(collection, str(e)) from e


async def lookup_roles(repo: DocumentRepository, uid: str) -> RoleLookup:
    """
    Read the admin-roles and faculty documents for uid

    A failed read (e.g. permission denied) counts as "no match" and is logged,
    so resolution falls through to the next rule instead of erroring.
    """
    is_admin_doc = is_faculty_doc = False
    admin_failed = faculty_failed = False

    try:
        is_admin_doc = await _role_doc_exists(repo, "roles_admin", uid)
    except RoleLookupError as e:
        admin_failed = True
        logger.warning(f"{e.message} for {uid}, treating as no match")

    try:
        is_faculty_doc = await _role_doc_exists(repo, "faculties", uid)
    except RoleLookupError as e:
        faculty_failed = True
        logger.warning(f"{e.message} for {uid}, treating as no match")

    return RoleLookup(
        is_admin_doc=is_admin_doc,
        is_faculty_doc=is_faculty_doc,
        admin_lookup_failed=admin_failed,
        faculty_lookup_failed=faculty_failed,
    )


class RoleService:
    """
    Resolves roles with a short per-uid cache

    Provisioning calls invalidate() whenever a role document changes, so the
    next lookup for that uid re-reads the store.
    """

    def __init__(self, repo: DocumentRepository, policy: RolePolicy, ttl_seconds: float = 30.0):
        self.repo = repo
        self.policy = policy
        self.ttl_seconds = ttl_seconds
        self._cache: Dict[str, Tuple[float, RoleLookup]] = {}

    async def resolve(self, identity: Optional[Identity]) -> RoleResolution:
        if identity is None:
            return resolve_role(None, RoleLookup(), self.policy)

        lookup = await self._lookup(identity.uid)
        resolution = resolve_role(identity, lookup, self.policy)
        logger.debug(f"Resolved {identity.email or identity.uid} -> {resolution.role.value}")
        return resolution

    async def _lookup(self, uid: str) -> RoleLookup:
        cached = self._cache.get(uid)
        if cached and cached[0] > time.monotonic():
            return cached[1]

        lookup = await lookup_roles(self.repo, uid)
        # Failed reads are not cached so the next request retries them
        if self.ttl_seconds > 0 and not (lookup.admin_lookup_failed or lookup.faculty_lookup_failed):
            self._cache[uid] = (time.monotonic() + self.ttl_seconds, lookup)
        return lookup

    def invalidate(self, uid: str) -> None:
        self._cache.pop(uid, None)
