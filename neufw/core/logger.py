import logging
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from .config import Settings
from .exceptions import LogWriteError


logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_DATE_FORMAT = "%b/%d/%Y %H:%M:%S"


def _append(path: Path, *lines: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")


class FileLogger:
    """Append plain lines to ``<logs_directory>/<category>.log``.

    When the category file cannot be written, the line goes to the file named
    by the ``error_log`` setting, or to the standard logger when that setting
    is absent.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def log_path(self, category: str) -> Path:
        directory = str(self.settings.get_setting("logs_directory") or "")
        if not directory.endswith("/"):
            directory += "/"
        return Path(f"{directory}{category}.log")

    def write(self, message: str, category: str = "debug") -> bool:
        log_file = self.log_path(category)
        try:
            _append(log_file, message)
            return True
        except OSError as e:
            primary_error = e

        fallback = self.settings.get_setting("error_log")
        if not fallback:
            logger.error(f"Was unable to write to {log_file} ({primary_error}), message: {message}")
            return True

        try:
            _append(
                Path(fallback),
                f"NOTICE: Was unable to write to {log_file}, fell back to error_log",
                message,
            )
        except OSError as e:
            raise LogWriteError(f"Check log permissions: neither {log_file} nor {fallback} is writable") from e
        return True

    def write_dated(self, message: str, category: str = "debug", fmt: str = DEFAULT_DATE_FORMAT) -> bool:
        tz = ZoneInfo(self.settings.get_setting("log_timezone") or DEFAULT_TIMEZONE)
        timestamp = datetime.now(tz).strftime(fmt)
        return self.write(f"{timestamp} | {message}", category)
