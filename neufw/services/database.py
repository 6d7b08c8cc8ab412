import logging
from typing import Dict, List

from supabase import Client, create_client

from ..core.exceptions import InfrastructureError, RegistryError


logger = logging.getLogger(__name__)


class DatabaseRegistry:
    """Named supabase clients, at most one per name."""

    def __init__(self):
        self._connections: Dict[str, Client] = {}

    def open(self, url: str, key: str, name: str) -> Client:
        if name in self._connections:
            raise RegistryError("database", f"Instance '{name}' already exists")

        try:
            client = create_client(url, key)
        except Exception as e:
            logger.error(f"Attempt to connect to database '{name}' failed: {e}")
            raise InfrastructureError(f"Attempt to connect to database failed; {e}") from e

        self._connections[name] = client
        return client

    def get_instance(self, name: str) -> Client:
        try:
            return self._connections[name]
        except KeyError:
            raise RegistryError("database", f"Unable to find requested database '{name}'") from None

    def close_instance(self, name: str) -> bool:
        return self._connections.pop(name, None) is not None

    def names(self) -> List[str]:
        return list(self._connections)

    def __contains__(self, name: str) -> bool:
        return name in self._connections
