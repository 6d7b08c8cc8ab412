import logging
import time
import uuid
from typing import Callable

from fastapi import Request
from fastapi.responses import HTMLResponse, RedirectResponse

from .exceptions import RedirectRequired


logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0


def request_id(request: Request) -> str:
    """Per-request id, shared by the access log line and the error handler."""
    if not hasattr(request.state, "request_id"):
        request.state.request_id = uuid.uuid4().hex[:12]
    return request.state.request_id


async def log_requests(request: Request, call_next: Callable):
    """Log slow or failed requests, tagged with the environment and a request id."""
    started = time.perf_counter()
    tag = f"{request.app.state.context.settings.get_setting('environment')}:{request_id(request)}"

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"[{tag}] {request.method} {request.url.path} failed after {time.perf_counter() - started:.2f}s: {e}")
        raise

    elapsed = time.perf_counter() - started
    if elapsed > SLOW_REQUEST_SECONDS or response.status_code >= 400:
        logger.info(f"[{tag}] {request.method} {request.url.path} -> {response.status_code} in {elapsed:.2f}s")
    return response


async def redirect_handler(request: Request, exc: RedirectRequired):
    return RedirectResponse(url=exc.url, status_code=exc.status_code)


async def global_exception_handler(request: Request, exc: Exception):
    """Log the failure and answer with the styled error page.

    The request context is created by a dependency, so it may be missing
    when the failure happened before routing; the app-level context is
    used instead.
    """
    logger.error(f"[{request_id(request)}] Unhandled exception in {request.method} {request.url.path}: {str(exc)}", exc_info=True)

    context = getattr(request.state, "context", None) or request.app.state.context.request_context()
    context.errors.record_exception(exc)
    content = context.errors.render_error_page(context.templates.env)

    return HTMLResponse(status_code=500, content=content)
