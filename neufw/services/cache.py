"""Named cache connections backed by Redis or Memcached."""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import redis
from pymemcache.client.base import Client as MemcacheClient
from pymemcache.exceptions import MemcacheError

from ..core.exceptions import InfrastructureError, RegistryError


logger = logging.getLogger(__name__)


class CacheKind(str, Enum):
    REDIS = "redis"
    MEMCACHED = "memcached"


@dataclass(frozen=True)
class CacheInstance:
    """A connected cache client tagged with its backend kind.

    Values are stored as JSON under ``<prefix>:<key>``.
    """

    kind: CacheKind
    prefix: str
    client: Union[redis.Redis, MemcacheClient]

    def key(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    def get(self, name: str, default: Any = None) -> Any:
        raw = self.client.get(self.key(name))
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, name: str, value: Any, ttl: Optional[int] = None) -> bool:
        payload = json.dumps(value)
        if self.kind is CacheKind.REDIS:
            return bool(self.client.set(self.key(name), payload, ex=ttl))
        return bool(self.client.set(self.key(name), payload, expire=ttl or 0, noreply=False))

    def delete(self, name: str) -> bool:
        if self.kind is CacheKind.REDIS:
            return bool(self.client.delete(self.key(name)))
        return bool(self.client.delete(self.key(name), noreply=False))


def _connect_redis(details: Mapping[str, Any]) -> redis.Redis:
    client = redis.Redis(
        host=details["host"],
        port=int(details["port"]),
        password=details.get("password"),
        socket_connect_timeout=details.get("connect_timeout"),
    )
    # redis-py connects lazily
    client.ping()
    return client


def _connect_memcached(details: Mapping[str, Any]) -> MemcacheClient:
    options = details.get("options")
    if not isinstance(options, Mapping):
        options = {}
    return MemcacheClient((details["host"], int(details["port"])), **options)


class CacheRegistry:
    def __init__(self):
        self._instances: Dict[str, CacheInstance] = {}

    def open(self, kind: Union[CacheKind, str], details: Mapping[str, Any], identifier: str) -> Optional[CacheInstance]:
        """Connect a cache backend and register it under ``identifier``.

        Returns None for an unrecognised backend kind. The identifier doubles
        as the key prefix.
        """
        try:
            kind = CacheKind(kind)
        except ValueError:
            logger.warning(f"Unsupported cache type '{kind}'")
            return None

        if identifier in self._instances:
            raise RegistryError("cache", f"Instance with name/prefix '{identifier}' already exists")

        try:
            if kind is CacheKind.REDIS:
                client = _connect_redis(details)
            else:
                client = _connect_memcached(details)
        except (redis.RedisError, MemcacheError, OSError) as e:
            logger.error(f"Attempt to connect to {kind.value} service failed: {e}")
            raise InfrastructureError(f"Attempt to connect to {kind.value} service failed; {e}") from e

        instance = CacheInstance(kind=kind, prefix=identifier, client=client)
        self._instances[identifier] = instance
        return instance

    def get_instance(self, name: str) -> CacheInstance:
        if name not in self._instances:
            raise RegistryError("cache", f"Unable to find requested resource '{name}'")
        return self._instances[name]
