"""
Connection management for the document store, the blob store and the identity provider.

A single ``Backend`` is built at process start and handed to every content,
storage and auth function. Handles are created lazily on first use and then
memoised; nothing is constructed when the configuration is incomplete.
"""

import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from gridfs import GridFSBucket
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import NotConfigured
from logger import get_logger

logger = get_logger("database")

COLLECTIONS = {
    "PROJECTS": "projects",
    "GALLERY": "gallery",
    "SITE_CONFIG": "site_config",
    "ABOUT": "about",
    "CONTACT_SUBMISSIONS": "contact_submissions",
    "NEWSLETTER": "newsletter_subscribers",
}

# Key of the only document in the site_config and about collections
SINGLETON_ID = "main"

BUCKET_NAME = "media"

# MongoClient instances already created in this process, keyed by URL
_CLIENTS: Dict[str, MongoClient] = {}
_CLIENTS_LOCK = threading.Lock()


@dataclass
class BackendConfig:
    database_url: Optional[str] = None
    database_name: Optional[str] = None
    storage_public_url: str = "/files"
    jwt_secret: str = "super-secret-key-change"
    admin_email: str = "admin@portfolio.dev"
    admin_password: Optional[str] = None
    admin_password_hash: Optional[str] = None
    token_expire_minutes: int = 60 * 12
    session_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "BackendConfig":
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME"),
            storage_public_url=os.getenv("STORAGE_PUBLIC_URL", "/files"),
            jwt_secret=os.getenv("JWT_SECRET", "super-secret-key-change"),
            admin_email=os.getenv("ADMIN_EMAIL", "admin@portfolio.dev"),
            admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
            admin_password_hash=os.getenv("ADMIN_PASSWORD_HASH"),
            token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 12)),
            session_token=os.getenv("ADMIN_SESSION_TOKEN"),
        )


def _shared_client(url: str) -> MongoClient:
    with _CLIENTS_LOCK:
        client = _CLIENTS.get(url)
        if client is None:
            client = MongoClient(url, connect=False)
            _CLIENTS[url] = client
            logger.info("Created MongoDB client")
        else:
            logger.debug("Reusing existing MongoDB client")
        return client


class Backend:
    """Lazily built, memoised handles to the backing services.

    ``client``, ``bucket`` and ``clock`` may be injected to run against
    substitute backends.
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        client: Any = None,
        bucket: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or BackendConfig()
        self._client = client
        self._bucket = bucket
        self._clock = clock
        self._db: Optional[Database] = None
        self._identity = None
        self._error: Optional[Exception] = None
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> "Backend":
        return cls(BackendConfig.from_env())

    def is_configured(self) -> bool:
        cfg = self.config
        return bool(cfg.database_name) and (bool(cfg.database_url) or self._client is not None)

    def get_database(self) -> Optional[Database]:
        if not self.is_configured():
            return None
        if self._db is None:
            with self._lock:
                if self._error is not None:
                    raise self._error
                if self._db is None:
                    try:
                        if self._client is None:
                            self._client = _shared_client(self.config.database_url)
                        self._db = self._client[self.config.database_name]
                    except Exception as exc:
                        self._error = exc
                        raise
        return self._db

    def get_bucket(self) -> Optional[GridFSBucket]:
        db = self.get_database()
        if db is None:
            return None
        if self._bucket is None:
            with self._lock:
                if self._bucket is None:
                    self._bucket = GridFSBucket(db, bucket_name=BUCKET_NAME)
        return self._bucket

    def get_identity(self):
        if not self.is_configured():
            return None
        if self._identity is None:
            from auth import IdentityGateway

            with self._lock:
                if self._identity is None:
                    self._identity = IdentityGateway.from_config(self.config)
        return self._identity

    def require_database(self) -> Database:
        db = self.get_database()
        if db is None:
            raise NotConfigured()
        return db

    def require_bucket(self) -> GridFSBucket:
        bucket = self.get_bucket()
        if bucket is None:
            raise NotConfigured()
        return bucket

    def now(self) -> datetime:
        """Authoritative time for createdAt/updatedAt stamps."""
        if self._clock is not None:
            return self._clock()
        info = self.require_database().command("hello")
        return info["localTime"]

    def collection(self, name: str):
        return self.require_database()[name]


def ensure_indexes(backend: Backend) -> None:
    db = backend.require_database()
    db[COLLECTIONS["PROJECTS"]].create_index(
        "slug",
        unique=True,
        partialFilterExpression={"status": "published"},
        name="published_slug_unique",
    )
    db[COLLECTIONS["PROJECTS"]].create_index([("status", ASCENDING), ("displayOrder", ASCENDING)])
    db[COLLECTIONS["GALLERY"]].create_index([("order", ASCENDING)])
    db[COLLECTIONS["CONTACT_SUBMISSIONS"]].create_index([("archived", ASCENDING), ("createdAt", DESCENDING)])
    db[COLLECTIONS["NEWSLETTER"]].create_index("email", unique=True, name="email_unique")
    logger.info("Ensured indexes on %s", db.name)
