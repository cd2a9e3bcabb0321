"""Persistent flag store for the onboarding workflow.

A flat string → string key/value store scoped to one onboarding session.
Values survive reloads of the front-end; structured values are JSON-encoded
by the caller.

Backends:
  - InMemoryFlagStore   process-local dict (tests, local development)
  - RedisFlagStore      keys under  {prefix}:{namespace}:{key}
  - SqlFlagStore        rows in the onboarding_flags table

Every backend raises FlagStoreError on storage failure so callers have one
exception type to catch and degrade on.  There are no transactions and no
atomicity across keys.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import redis
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import Settings, settings as default_settings
from app.models.flag import OnboardingFlag

logger = logging.getLogger(__name__)


class FlagStoreError(Exception):
    """Raised when the underlying storage cannot be read or written."""


@runtime_checkable
class FlagStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


# ── In-memory ───────────────────────────────────────────────

class InMemoryFlagStore:
    """Dict-backed store.  Pass a shared dict to share state between instances."""

    def __init__(self, data: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = data if data is not None else {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())


# ── Redis ───────────────────────────────────────────────────

class RedisFlagStore:
    """Redis-backed store, one key per flag, namespaced per session."""

    def __init__(self, client: redis.Redis, namespace: str, prefix: str = "onboarding"):
        self._client = client
        self.namespace = namespace
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(self._key(key))
        except redis.RedisError as e:
            raise FlagStoreError(f"Redis read failed for {key!r}: {e}") from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self._key(key), value)
        except redis.RedisError as e:
            raise FlagStoreError(f"Redis write failed for {key!r}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except redis.RedisError as e:
            raise FlagStoreError(f"Redis delete failed for {key!r}: {e}") from e


# ── SQL ─────────────────────────────────────────────────────

class SqlFlagStore:
    """SQLAlchemy-backed store.  Each call runs in its own short transaction."""

    def __init__(self, session_factory: sessionmaker[Session], namespace: str):
        self._session_factory = session_factory
        self.namespace = namespace

    def _find(self, session: Session, key: str) -> Optional[OnboardingFlag]:
        result = session.execute(
            select(OnboardingFlag).where(
                OnboardingFlag.namespace == self.namespace,
                OnboardingFlag.key == key,
            )
        )
        return result.scalar_one_or_none()

    def get(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                flag = self._find(session, key)
                return flag.value if flag else None
        except SQLAlchemyError as e:
            raise FlagStoreError(f"Database read failed for {key!r}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_factory.begin() as session:
                flag = self._find(session, key)
                if flag:
                    flag.value = value
                else:
                    session.add(OnboardingFlag(namespace=self.namespace, key=key, value=value))
        except SQLAlchemyError as e:
            raise FlagStoreError(f"Database write failed for {key!r}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with self._session_factory.begin() as session:
                session.execute(
                    delete(OnboardingFlag).where(
                        OnboardingFlag.namespace == self.namespace,
                        OnboardingFlag.key == key,
                    )
                )
        except SQLAlchemyError as e:
            raise FlagStoreError(f"Database delete failed for {key!r}: {e}") from e


# ── Factory ─────────────────────────────────────────────────

# Process-wide state for the "memory" backend, one dict per namespace
_memory_namespaces: dict[str, dict[str, str]] = {}

_redis_client: Optional[redis.Redis] = None


def get_redis(config: Settings = default_settings) -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(
            config.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


def close_redis() -> None:
    """Close the shared Redis client (call on app shutdown)."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


def build_flag_store(namespace: str, config: Settings = default_settings) -> FlagStore:
    """Return the configured flag store for one onboarding session."""
    backend = config.flag_store_backend.lower()
    if backend == "memory":
        return InMemoryFlagStore(_memory_namespaces.setdefault(namespace, {}))
    if backend == "redis":
        return RedisFlagStore(
            get_redis(config), namespace, prefix=config.flag_store_namespace_prefix
        )
    if backend == "sql":
        from app.database import SessionLocal

        return SqlFlagStore(SessionLocal, namespace)
    raise ValueError(f"Unknown flag store backend: {config.flag_store_backend!r}")
