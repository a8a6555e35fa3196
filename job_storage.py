"""
Persistent Job Storage
----------------------
Redis-backed key/value storage for background job records. Values are stored
as whole JSON documents; every write overwrites the previous value.
"""

import json
import logging
import os
from typing import Any, Optional

import redis
from dotenv import load_dotenv

from studygen.errors import ConfigurationError, CorruptedDataError, StoreUnavailableError

load_dotenv()

logger = logging.getLogger(__name__)


class PersistentJobStorage:
    """Redis-based get/set storage scoped by a namespace prefix."""

    def __init__(
        self,
        prefix: str = "studygen",
        redis_url: Optional[str] = None,
        ttl: Optional[int] = 86400,
        client: Optional[Any] = None,
    ):
        """Create a storage helper.

        A missing ``REDIS_URL`` or a failed connection check is logged as a
        configuration error and leaves the storage unavailable instead of
        stopping the process. Callers check ``is_available()`` before use.
        """
        namespace = prefix.strip() or "studygen"
        self.KEY_PREFIX = f"{namespace}:"
        self.JOB_TTL = ttl
        self.redis_client = client
        self.redis_available = False
        self.unavailable_reason: Optional[str] = None

        if client is not None:
            self.redis_available = True
            return

        redis_url = redis_url if redis_url is not None else os.getenv("REDIS_URL")
        try:
            if not redis_url:
                raise ConfigurationError(
                    "Redis configuration is incomplete. Missing environment variable: REDIS_URL"
                )
            self.redis_client = redis.from_url(redis_url, decode_responses=True)
            self.redis_client.ping()
            self.redis_available = True
            logger.info("Redis connected successfully")
        except ConfigurationError as e:
            self.unavailable_reason = e.message
            logger.error("Job store unavailable: %s", e.message)
        except (redis.ConnectionError, redis.RedisError) as e:
            self.unavailable_reason = f"Redis not reachable: {e}"
            logger.error("Job store unavailable: %s", self.unavailable_reason)

    def is_available(self) -> bool:
        return self.redis_available

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def _serialize(self, data: Any) -> str:
        return json.dumps(data, default=str, ensure_ascii=False)

    def _deserialize(self, data: Any) -> Any:
        """Decode a stored value, passing through values that are already decoded."""
        if isinstance(data, (dict, list)):
            return data
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise CorruptedDataError("Stored value is not valid UTF-8") from e
        if isinstance(data, str):
            try:
                return json.loads(data)
            except ValueError as e:
                raise CorruptedDataError("Stored value is not valid JSON") from e
        raise CorruptedDataError(f"Unsupported stored value type: {type(data).__name__}")

    def _require_available(self) -> None:
        if not self.redis_available:
            raise StoreUnavailableError(self.unavailable_reason or "KV Store not available")

    def set(self, key: str, value: Any) -> None:
        self._require_available()
        try:
            serialized = self._serialize(value)
            if self.JOB_TTL:
                self.redis_client.setex(self._key(key), self.JOB_TTL, serialized)
            else:
                self.redis_client.set(self._key(key), serialized)
        except redis.RedisError as e:
            logger.error("Failed to write %s: %s", key, e)
            raise StoreUnavailableError(f"Failed to write {key}: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        self._require_available()
        try:
            data = self.redis_client.get(self._key(key))
        except redis.RedisError as e:
            logger.error("Failed to read %s: %s", key, e)
            raise StoreUnavailableError(f"Failed to read {key}: {e}") from e
        if data is None:
            return None
        return self._deserialize(data)

    def exists(self, key: str) -> bool:
        self._require_available()
        try:
            return bool(self.redis_client.exists(self._key(key)))
        except redis.RedisError as e:
            raise StoreUnavailableError(f"Failed to read {key}: {e}") from e
