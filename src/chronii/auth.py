from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from .errors import AccountExistsError, AuthError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_PBKDF2_ROUNDS = 100_000


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class User:
    """Identity of the signed-in user."""

    uid: str
    email: Optional[str] = None
    is_anonymous: bool = False


AuthListener = Callable[[Optional[User]], None]


# PUBLIC_INTERFACE
class AuthProvider(Protocol):
    """
    What the data core needs from authentication: who is signed in, whether
    that user is anonymous, and a notification when that changes.
    """

    @property
    def current_user(self) -> Optional[User]: ...

    @property
    def current_user_id(self) -> Optional[str]: ...

    @property
    def is_authenticated(self) -> bool: ...

    @property
    def is_anonymous(self) -> bool: ...

    @property
    def is_fully_authenticated(self) -> bool: ...

    def add_listener(self, listener: AuthListener) -> None: ...

    def remove_listener(self, listener: AuthListener) -> None: ...


@dataclass
class _Account:
    uid: str
    email: str
    salt: bytes
    password_hash: bytes


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS)


def _normalize_email(email: str) -> str:
    value = (email or "").strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise AuthError("Invalid email address")
    return value


# PUBLIC_INTERFACE
class InMemoryAuthProvider:
    """
    Reference authentication provider holding accounts in memory.

    Supports anonymous sessions, email/password accounts, upgrading an
    anonymous session to a full account (keeping its uid), and sign-out.
    Every change of the current user is pushed to registered listeners.
    """

    def __init__(self) -> None:
        self._current: Optional[User] = None
        self._accounts: Dict[str, _Account] = {}
        self._listeners: List[AuthListener] = []

    @property
    def current_user(self) -> Optional[User]:
        return self._current

    @property
    def current_user_id(self) -> Optional[str]:
        return self._current.uid if self._current else None

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    @property
    def is_anonymous(self) -> bool:
        return bool(self._current and self._current.is_anonymous)

    @property
    def is_fully_authenticated(self) -> bool:
        return self._current is not None and not self._current.is_anonymous

    def add_listener(self, listener: AuthListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: AuthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_user(self, user: Optional[User]) -> None:
        self._current = user
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Auth listener %r failed", listener)

    def _create_account(self, email: str, password: str, uid: Optional[str] = None) -> _Account:
        normalized = _normalize_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if normalized in self._accounts:
            raise AccountExistsError("Email already registered")
        salt = secrets.token_bytes(16)
        account = _Account(
            uid=uid or uuid.uuid4().hex,
            email=normalized,
            salt=salt,
            password_hash=_hash_password(password, salt),
        )
        self._accounts[normalized] = account
        return account

    async def sign_in_anonymously(self) -> User:
        user = User(uid=uuid.uuid4().hex, is_anonymous=True)
        self._set_user(user)
        logger.info("Signed in anonymously as %s", user.uid)
        return user

    async def register_with_email_and_password(self, email: str, password: str) -> User:
        account = self._create_account(email, password)
        user = User(uid=account.uid, email=account.email)
        self._set_user(user)
        logger.info("Registered %s", account.email)
        return user

    async def sign_in_with_email_and_password(self, email: str, password: str) -> User:
        account = self._accounts.get(_normalize_email(email))
        if account is None or not secrets.compare_digest(
            account.password_hash, _hash_password(password or "", account.salt)
        ):
            raise AuthError("Invalid email or password")
        user = User(uid=account.uid, email=account.email)
        self._set_user(user)
        logger.info("Signed in %s", account.email)
        return user

    async def link_anonymous_account(self, email: str, password: str) -> User:
        """Turn the current anonymous session into a full account with the same uid."""
        if self._current is None or not self._current.is_anonymous:
            raise AuthError("No anonymous session to link")
        account = self._create_account(email, password, uid=self._current.uid)
        user = User(uid=account.uid, email=account.email)
        self._set_user(user)
        logger.info("Linked anonymous session %s to %s", account.uid, account.email)
        return user

    async def sign_out(self) -> None:
        if self._current is None:
            return
        self._set_user(None)
        logger.info("Signed out")
