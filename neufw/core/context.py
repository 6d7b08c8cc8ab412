from dataclasses import dataclass, field
from typing import Optional

from fastapi.templating import Jinja2Templates

from ..services.cache import CacheRegistry
from ..services.database import DatabaseRegistry
from .config import Settings
from .errors import ErrorCollector
from .logger import FileLogger
from .templates import build_templates


@dataclass
class RequestContext:
    """Everything one request needs, scoped to that request."""

    settings: Settings
    file_logger: FileLogger
    errors: ErrorCollector
    templates: Jinja2Templates
    databases: DatabaseRegistry
    caches: CacheRegistry

    def database(self, name: Optional[str] = None):
        """The named credential store client, or None when none is configured."""
        name = name or self.settings.get_setting("database_name") or "default"
        if name not in self.databases:
            return None
        return self.databases.get_instance(name)


@dataclass
class AppContext:
    """Process-lifetime state: loaded settings and the connection registries."""

    settings: Settings
    databases: DatabaseRegistry = field(default_factory=DatabaseRegistry)
    caches: CacheRegistry = field(default_factory=CacheRegistry)

    def request_context(self) -> RequestContext:
        settings = self.settings.copy()
        file_logger = FileLogger(settings)
        errors = ErrorCollector(settings, file_logger)
        return RequestContext(
            settings=settings,
            file_logger=file_logger,
            errors=errors,
            templates=build_templates(settings),
            databases=self.databases,
            caches=self.caches,
        )
