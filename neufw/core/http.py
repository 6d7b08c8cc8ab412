from typing import Any, Optional, Union

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import Settings
from .exceptions import RedirectRequired


API_MEDIA_TYPE = "application/vnd.api+json"


def api_v1_response(
    node: Optional[str],
    data: Any,
    settings: Settings,
    success: Union[bool, str] = True,
    error: Union[bool, list] = False,
    status_code: int = 200,
) -> JSONResponse:
    content = {
        "api": {
            "version": "v1",
            "node": node,
            "domain": settings.get_setting("domain"),
        },
        "error": error,
        "success": success,
        "data": data,
    }
    return JSONResponse(status_code=status_code, content=content, media_type=API_MEDIA_TYPE)


def http_redirect(url: str, permanent: bool = False):
    """Stop handling the request and send the client to ``url`` (301 or 302)."""
    raise RedirectRequired(url, permanent=permanent)


def check_get_value(request: Request, key: str, default: Any = None) -> Any:
    value = request.query_params.get(key)
    if value is None or value == "":
        return default
    return value


async def check_post_value(request: Request, key: str, default: Any = None) -> Any:
    form = await request.form()
    value = form.get(key)
    if value is None or value == "":
        return default
    return value


def site_url(settings: Settings, path: str) -> str:
    """Absolute URL on the configured domain, or just ``path`` when no domain is set."""
    domain = settings.get_setting("domain")
    if not domain:
        return path
    return f"{settings.get_setting('protocol')}://{domain}{path}"
