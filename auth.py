"""
Identity gateway for the site administrator.

Credentials come from configuration (``ADMIN_EMAIL`` plus ``ADMIN_PASSWORD_HASH``
or ``ADMIN_PASSWORD``). Sessions are JWT bearer tokens. The gateway also keeps
the "current user" for the process and notifies listeners when it changes.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from database import Backend, BackendConfig
from errors import InvalidCredentials, NotConfigured
from logger import get_logger

logger = get_logger("auth")

ALGORITHM = "HS256"

# Use pbkdf2_sha256 to avoid external bcrypt dependency issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

AuthListener = Callable[[Optional["AdminUser"]], None]


class AdminUser(BaseModel):
    email: str
    role: str = "admin"


class Session(BaseModel):
    user: AdminUser
    access_token: str
    token_type: str = "bearer"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class IdentityGateway:
    def __init__(
        self,
        admin_email: str,
        admin_password_hash: str,
        secret_key: str,
        expire_minutes: int = 60 * 12,
    ) -> None:
        self.admin_email = admin_email
        self._password_hash = admin_password_hash
        self._secret_key = secret_key
        self._expire = timedelta(minutes=expire_minutes)
        self._current: Optional[AdminUser] = None
        self._listeners: List[AuthListener] = []
        self._resolved = threading.Event()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: BackendConfig) -> "IdentityGateway":
        password_hash = config.admin_password_hash
        if not password_hash:
            if config.admin_password == "admin123":
                logger.warning("Using the default admin password; set ADMIN_PASSWORD_HASH")
            password_hash = hash_password(config.admin_password or "")
        gateway = cls(config.admin_email, password_hash, config.jwt_secret, config.token_expire_minutes)
        gateway.restore_session(config.session_token)
        return gateway

    @property
    def current_user(self) -> Optional[AdminUser]:
        return self._current

    @property
    def resolved(self) -> bool:
        return self._resolved.is_set()

    def create_access_token(self, user: AdminUser) -> str:
        expire = datetime.now(timezone.utc) + self._expire
        claims = {"sub": user.email, "role": user.role, "exp": expire}
        return jwt.encode(claims, self._secret_key, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> AdminUser:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError as exc:
            raise InvalidCredentials("Invalid token") from exc
        email = payload.get("sub")
        role = payload.get("role")
        if email != self.admin_email or role != "admin":
            raise InvalidCredentials("Forbidden")
        return AdminUser(email=email, role=role)

    def sign_in(self, email: str, password: str) -> Session:
        if email.lower() != self.admin_email.lower() or not verify_password(password, self._password_hash):
            logger.warning("Rejected sign-in for %s", email)
            raise InvalidCredentials("Invalid credentials")
        user = AdminUser(email=self.admin_email)
        session = Session(user=user, access_token=self.create_access_token(user))
        self._set_current(user)
        return session

    def sign_out(self) -> None:
        self._set_current(None)

    def restore_session(self, token: Optional[str] = None) -> Optional[AdminUser]:
        """Resolve the startup auth state from a previously issued token, if any."""
        user = None
        if token:
            try:
                user = self.verify_token(token)
            except InvalidCredentials:
                logger.info("Stored session token is no longer valid")
        self._set_current(user)
        return user

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register *callback*; it runs now if the state is already resolved, and on every change."""
        with self._lock:
            self._listeners.append(callback)
            resolved = self._resolved.is_set()
            current = self._current
        if resolved:
            callback(current)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def wait_for_auth(self, timeout: Optional[float] = None) -> Optional[AdminUser]:
        self._resolved.wait(timeout)
        return self._current

    def _set_current(self, user: Optional[AdminUser]) -> None:
        with self._lock:
            self._current = user
            self._resolved.set()
            listeners = list(self._listeners)
        for listener in listeners:
            listener(user)


# ================
# Module functions
# ================

def _require_identity(backend: Backend) -> IdentityGateway:
    identity = backend.get_identity()
    if identity is None:
        raise NotConfigured()
    return identity


def sign_in(backend: Backend, email: str, password: str) -> Session:
    return _require_identity(backend).sign_in(email, password)


def sign_out(backend: Backend) -> None:
    _require_identity(backend).sign_out()


def get_current_user(backend: Backend) -> Optional[AdminUser]:
    identity = backend.get_identity()
    return identity.current_user if identity is not None else None


def is_authenticated(backend: Backend) -> bool:
    return get_current_user(backend) is not None


def on_auth_change(backend: Backend, callback: AuthListener) -> Callable[[], None]:
    identity = backend.get_identity()
    if identity is None:
        logger.warning("Auth not configured")
        return lambda: None
    return identity.on_auth_change(callback)


def wait_for_auth(backend: Backend, timeout: Optional[float] = None) -> Optional[AdminUser]:
    identity = backend.get_identity()
    if identity is None:
        return None
    return identity.wait_for_auth(timeout)
