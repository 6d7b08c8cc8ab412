"""Error collection and the styled fatal error page."""

import logging
import traceback
import warnings
from contextvars import ContextVar
from typing import List, Optional

from jinja2 import Environment, TemplateError

from .config import Settings
from .logger import FileLogger
from .templates import template_globals


logger = logging.getLogger(__name__)

ERROR_TEMPLATE = "_internal/errors/fatal.html"
GENERIC_ERROR_MESSAGE = "A technical error occurred and engineers notified, please try again shortly."

# Collector of the request currently running in this context
_active_collector: ContextVar[Optional["ErrorCollector"]] = ContextVar("neufw_error_collector", default=None)


def _showwarning(message, category, filename, lineno, file=None, line=None):
    collector = _active_collector.get()
    if collector is None:
        logger.warning(f"{filename}:{lineno}: {category.__name__}: {message}")
        return

    deprecated = issubclass(category, (DeprecationWarning, PendingDeprecationWarning))
    collector.record(str(message), filename, lineno, deprecated=deprecated)


def install_warning_hook() -> None:
    """Send ``warnings.warn`` calls to the collector active in the calling context.

    Outside a request the warning goes to the module logger instead.
    """
    warnings.showwarning = _showwarning


class ErrorCollector:
    """Logs errors to the category log files and keeps them for display.

    Messages are only kept outside production, with the document root
    stripped so filesystem paths are not shown to visitors.
    """

    def __init__(self, settings: Settings, file_logger: FileLogger):
        self.settings = settings
        self.file_logger = file_logger
        self._errors: List[str] = []

    @property
    def production(self) -> bool:
        return self.settings.get_setting("environment") == "production"

    def record(self, message: str, file: str = "", line: int = 0, deprecated: bool = False) -> None:
        formatted = "%-20s | %s" % (f"{file}:{line}", message)
        self.file_logger.write_dated(formatted, "deprecated" if deprecated else "error")

        if not self.production:
            self._errors.append(message.replace(str(self.settings.document_root), ""))

    def record_exception(self, exc: BaseException) -> None:
        frames = traceback.extract_tb(exc.__traceback__)
        file, line = (frames[-1].filename, frames[-1].lineno) if frames else ("", 0)
        message = str(exc) or type(exc).__name__
        self.record(message, file, line or 0)

    def capture_warnings(self) -> None:
        """Route ``warnings.warn`` calls made in the current context through this collector."""
        install_warning_hook()
        _active_collector.set(self)

    def get_errors(self, ignore_env: bool = False) -> Optional[List[str]]:
        if not ignore_env and self.production:
            return None
        return list(self._errors) or None

    def render_error_page(self, env: Environment) -> str:
        try:
            template = env.get_template(ERROR_TEMPLATE)
            return template.render(**template_globals(self.settings), errors=self.get_errors())
        except TemplateError as e:
            self.file_logger.write_dated(str(e), "error")
            logger.error(f"Failed to render error page: {e}")
            return GENERIC_ERROR_MESSAGE
