import json
import logging
import os
import re
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from dotenv import dotenv_values

from .exceptions import ConfigurationError, SettingLookupError


logger = logging.getLogger(__name__)

ENV_PREFIX = "CONFIG_"
DEFAULT_SESSION_NAME = "neufw_session"
DEFAULT_FILENAMES = {"dotenv": ".env", "json": "config.json"}

# Accepted boolean spellings, case-insensitive
_BOOLEAN_TRUE = {"1", "true", "on", "yes"}
_BOOLEAN_FALSE = {"0", "false", "off", "no"}
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$", re.ASCII)

PathLike = Union[str, Path]


def coerce(value: Any, literal_types: bool = True) -> Any:
    """Convert a raw configuration string into its literal type.

    Checks run in a fixed order: null, boolean, integer, float. Because the
    boolean check comes first, "1" and "0" become True and False rather than
    integers.
    """
    if not literal_types or not isinstance(value, str):
        return value

    if value == "" or value == "null":
        return None

    lowered = value.strip().lower()
    # Whitespace-only text counts as false
    if lowered == "" or lowered in _BOOLEAN_FALSE:
        return False
    if lowered in _BOOLEAN_TRUE:
        return True

    if value.isascii() and value.isdigit():
        return int(value)

    if _FLOAT_PATTERN.match(value.strip()):
        return float(value)

    return value


def normalize_key(key: str, lowercase: bool = True) -> str:
    return key.lower() if lowercase else key


def nest_key(key: str, value: Any) -> Dict[str, Any]:
    """Expand ``a.b.c`` into ``{"a": {"b": {"c": value}}}``."""
    nested: Any = value
    for segment in reversed(key.split(".")):
        nested = {segment: nested}
    return nested


def deep_merge(target: Dict[str, Any], source: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``source`` into ``target`` in place, keeping sibling keys.

    Mappings on both sides are merged recursively; any other collision is
    won by ``source``.
    """
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            deep_merge(current, value)
        elif isinstance(value, Mapping):
            target[key] = deep_merge({}, value)
        else:
            target[key] = value
    return target


def verify_required(required: Iterable[str], keys: Iterable[str]) -> bool:
    return set(required) <= set(keys)


@dataclass(frozen=True)
class LoaderOptions:
    """Options recognised by the configuration loaders.

    ``multidimensional`` only affects the dotenv loader while loading, but it
    also decides whether ``Settings.set_setting`` nests dotted keys.
    """

    directory: Optional[PathLike] = None
    filename: Optional[str] = None
    required: tuple = ()
    lowercase_keys: bool = True
    literal_types: bool = True
    multidimensional: bool = False

    @classmethod
    def from_value(cls, options: Union["LoaderOptions", Mapping[str, Any], None]) -> "LoaderOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options

        known = set(cls.__dataclass_fields__)
        unknown = set(options) - known
        if unknown:
            logger.warning(f"Ignoring unknown loader options: {', '.join(sorted(unknown))}")

        values = {key: value for key, value in options.items() if key in known}
        if "required" in values:
            required = values["required"] or ()
            values["required"] = (required,) if isinstance(required, str) else tuple(required)
        return cls(**values)

    def source_path(self, mechanism: str, default_directory: Path) -> Path:
        directory = Path(self.directory) if self.directory is not None else default_directory
        return directory / (self.filename or DEFAULT_FILENAMES[mechanism])


def _require_readable(path: Path) -> None:
    if not path.is_file() or not os.access(path, os.R_OK):
        logger.error(f"Was unable to find and/or load {path.name} under the {path.parent} directory")
        raise ConfigurationError(f"Unable to load the requested configuration file: {path}")


def load_dotenv_file(options: LoaderOptions, default_directory: Path) -> Dict[str, str]:
    """Parse a .env file without touching ``os.environ``.

    Required keys are checked against the names as written in the file,
    before any key normalisation.
    """
    path = options.source_path("dotenv", default_directory)
    _require_readable(path)

    values = dotenv_values(path, encoding="utf-8")

    missing = [key for key in options.required if key not in values]
    if missing:
        logger.error(f"Required keys missing from {path}: {', '.join(missing)}")
        raise ConfigurationError("Required configuration values were not found during config loading")

    # A bare ``KEY`` line parses to None
    return {key: ("" if value is None else value) for key, value in values.items()}


def load_json_file(options: LoaderOptions, default_directory: Path) -> Dict[str, Any]:
    path = options.source_path("json", default_directory)
    _require_readable(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"The following error occurred during JSON decoding; {e}")
        raise ConfigurationError(f"Unable to load the requested configuration file: {path}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a JSON object in {path}, got {type(data).__name__}")

    nested = [key for key, value in data.items() if isinstance(value, (dict, list))]
    if nested:
        raise ConfigurationError(f"Configuration file {path} must be flat; nested values under: {', '.join(nested)}")

    return data


def load_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Collect ``CONFIG_``-prefixed variables with the prefix stripped.

    Reads a snapshot of the environment once; concurrent mutation of
    ``os.environ`` while this runs is not guarded against.
    """
    source = dict(os.environ if environ is None else environ)
    return {key[len(ENV_PREFIX):]: value for key, value in source.items() if key.startswith(ENV_PREFIX)}


class Settings:
    """Key/value settings store populated by exactly one loader mechanism.

    One instance is loaded when the application starts; each request works
    on its own ``copy()`` so writes never cross request boundaries.
    """

    def __init__(self, document_root: Optional[PathLike] = None, environ: Optional[Mapping[str, str]] = None):
        self.document_root = Path(document_root) if document_root is not None else Path.cwd()
        self.multidimensional = False
        self._environ = environ
        self._settings: Dict[str, Any] = {}

    def defaults(self) -> Dict[str, Any]:
        root = self.document_root
        return {
            "environment": "dev",
            "protocol": "https",
            "logs_directory": f"{root / 'logs'}/",
            "templates_directory": f"{root / 'templates'}/",
            "templates_cache_directory": f"{root / 'cache' / 'templates'}/",
            "session_name": DEFAULT_SESSION_NAME,
        }

    def initialize(self, mechanism: str, options: Union[LoaderOptions, Mapping[str, Any], None] = None) -> "Settings":
        options = LoaderOptions.from_value(options)
        mechanism = mechanism.lower()

        # Built aside and swapped in, so a failed load never leaves a partial store
        settings = self.defaults()

        if mechanism == "dotenv":
            raw = load_dotenv_file(options, self.document_root)
            self._apply(settings, raw, options, nested=options.multidimensional)
        elif mechanism == "json":
            raw = load_json_file(options, self.document_root)
            self._apply(settings, raw, options)
            self._check_required(settings, options)
        elif mechanism == "env":
            raw = load_environment(self._environ)
            self._apply(settings, raw, options)
            self._check_required(settings, options)
        else:
            logger.warning(f"Unknown configuration mechanism '{mechanism}', only defaults were loaded")

        if not settings:
            raise ConfigurationError("No configuration records were found during load, expected at least one.")

        self._settings = settings
        self.multidimensional = options.multidimensional
        logger.debug(f"Loaded {len(settings)} settings via '{mechanism}'")
        return self

    @staticmethod
    def _apply(target: Dict[str, Any], raw: Mapping[str, Any], options: LoaderOptions, nested: bool = False) -> None:
        for raw_key, raw_value in raw.items():
            key = normalize_key(raw_key, options.lowercase_keys)
            value = coerce(raw_value, options.literal_types)
            if nested and "." in key:
                deep_merge(target, nest_key(key, value))
            else:
                target[key] = value

    @staticmethod
    def _check_required(settings: Mapping[str, Any], options: LoaderOptions) -> None:
        if options.required and not verify_required(options.required, settings.keys()):
            missing = sorted(set(options.required) - set(settings))
            logger.error(f"Required settings missing after load: {', '.join(missing)}")
            raise ConfigurationError("Required configuration values were not found during config loading")

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Return a setting by exact key, or by dotted path into nested mappings.

        An exact key always wins over path traversal. A path that walks
        through a scalar raises ``SettingLookupError``.
        """
        if key in self._settings:
            return self._settings[key]
        if "." not in key:
            return default

        node: Any = self._settings
        walked = []
        for segment in key.split("."):
            if not isinstance(node, Mapping):
                raise SettingLookupError(key, ".".join(walked))
            if segment not in node:
                return default
            node = node[segment]
            walked.append(segment)
        return node

    def get_all_settings(self) -> Dict[str, Any]:
        return deepcopy(self._settings)

    def set_setting(self, key: str, value: Any) -> None:
        if self.multidimensional and "." in key:
            deep_merge(self._settings, nest_key(key, value))
        else:
            self._settings[key] = value

    def delete_setting(self, key: str) -> None:
        self._settings.pop(key, None)

    def copy(self) -> "Settings":
        clone = Settings(self.document_root, self._environ)
        clone.multidimensional = self.multidimensional
        clone._settings = deepcopy(self._settings)
        return clone

    def __contains__(self, key: str) -> bool:
        return key in self._settings

    def __len__(self) -> int:
        return len(self._settings)
