from pathlib import Path
from typing import Any, Dict, Optional

from fastapi.templating import Jinja2Templates
from jinja2 import Environment, FileSystemBytecodeCache, FileSystemLoader, select_autoescape

from .config import Settings


def template_globals(settings: Settings) -> Dict[str, Any]:
    return {
        "config": {
            "protocol": settings.get_setting("protocol"),
            "domain": settings.get_setting("domain"),
        },
    }


def build_environment(settings: Settings) -> Environment:
    """Jinja2 environment rooted at the ``templates_directory`` setting.

    Compiled templates are cached under ``templates_cache_directory`` only
    when ``templates_cache`` is enabled.
    """
    bytecode_cache: Optional[FileSystemBytecodeCache] = None
    if settings.get_setting("templates_cache"):
        cache_dir = Path(settings.get_setting("templates_cache_directory"))
        cache_dir.mkdir(parents=True, exist_ok=True)
        bytecode_cache = FileSystemBytecodeCache(str(cache_dir))

    env = Environment(
        loader=FileSystemLoader(str(settings.get_setting("templates_directory"))),
        autoescape=select_autoescape(["html", "xml"]),
        bytecode_cache=bytecode_cache,
    )
    env.globals.update(template_globals(settings))
    return env


def build_templates(settings: Settings) -> Jinja2Templates:
    return Jinja2Templates(env=build_environment(settings))
