import logging
import secrets
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from .core.config import LoaderOptions, Settings
from .core.context import AppContext, RequestContext
from .core.errors import install_warning_hook
from .core.exceptions import FatalError, RedirectRequired
from .core.http import api_v1_response, check_get_value, http_redirect, site_url
from .core.middleware import global_exception_handler, log_requests, redirect_handler
from .core.validation import validate_route
from .services.sessions import SessionState, SessionValidator

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LIFETIME = 86400


async def get_context(request: Request) -> RequestContext:
    # Bound in the request task; threadpool handlers inherit the binding
    context = request.app.state.context.request_context()
    context.errors.capture_warnings()
    request.state.context = context
    return context


def get_session(request: Request) -> SessionState:
    return SessionState(request.session)


def get_validator(
    context: RequestContext = Depends(get_context),
    session: SessionState = Depends(get_session),
) -> SessionValidator:
    return SessionValidator(session, context.database(), context.settings)


def render(context: RequestContext, request: Request, name: str, status_code: int = 200, **values: Any):
    values.setdefault("errors", context.errors.get_errors(ignore_env=True))
    return context.templates.TemplateResponse(
        request=request,
        name=name,
        context=values,
        status_code=status_code,
    )


def _session_secret(settings: Settings) -> str:
    secret = settings.get_setting("session_secret")
    if not secret:
        logger.warning("session_secret is not set; sessions will not survive a restart")
        return secrets.token_urlsafe(32)
    return str(secret)


def _open_database(context: AppContext) -> None:
    settings = context.settings
    url = settings.get_setting("database_url")
    key = settings.get_setting("database_key")
    if url and key:
        context.databases.open(url, key, settings.get_setting("database_name") or "default")


def create_app(
    mechanism: str = "dotenv",
    options: Union[LoaderOptions, Mapping[str, Any], None] = None,
    document_root: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    """Load settings, open configured connections and build the application.

    Raises ``FatalError`` subclasses when configuration or connections fail;
    the caller decides whether that ends the process.
    """
    settings = Settings(document_root, environ).initialize(mechanism, options)
    context = AppContext(settings)
    _open_database(context)

    app = FastAPI(title="neuFramework")
    app.state.context = context

    app.add_middleware(
        SessionMiddleware,
        secret_key=_session_secret(settings),
        session_cookie=settings.get_setting("session_name"),
        max_age=int(settings.get_setting("session_lifetime") or DEFAULT_SESSION_LIFETIME),
        same_site="strict",
        https_only=settings.get_setting("protocol") == "https",
        domain=settings.get_setting("domain") or None,
    )
    install_warning_hook()

    @app.middleware("http")
    async def _log_requests(request, call_next):
        return await log_requests(request, call_next)

    app.add_exception_handler(RedirectRequired, redirect_handler)
    app.add_exception_handler(FatalError, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/")
    async def index(request: Request, context: RequestContext = Depends(get_context)):
        page_info = {
            "page": "index",
            "title": "neuFramework",
            "description": "Example individual page",
        }
        return render(context, request, "index.html", page_info=page_info)

    @app.get("/loader")
    async def loader(request: Request, context: RequestContext = Depends(get_context)):
        """Render ``<section>/<page>`` from the template directory, or redirect to /404."""
        settings = context.settings
        section = check_get_value(request, "section")
        page = check_get_value(request, "page")

        route = validate_route(page, section, settings.get_setting("templates_directory"))
        if route is None:
            http_redirect(site_url(settings, "/404"))

        return render(context, request, route)

    @app.get("/404")
    async def not_found(request: Request, context: RequestContext = Depends(get_context)):
        return render(context, request, "404.html", status_code=404)

    @app.get("/auth/login")
    async def login_form(request: Request, context: RequestContext = Depends(get_context)):
        return render(context, request, "auth/login.html")

    @app.post("/auth/login")
    def login(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
        context: RequestContext = Depends(get_context),
        validator: SessionValidator = Depends(get_validator),
    ):
        if username and password and validator.login(username, password):
            return RedirectResponse(url="/account", status_code=303)

        logger.info(f"Failed login attempt for {username!r}")
        return render(context, request, "auth/login.html", status_code=401, login_error="Invalid username or password")

    @app.get("/auth/logout")
    async def logout(validator: SessionValidator = Depends(get_validator)):
        validator.logout()
        return RedirectResponse(url="/", status_code=303)

    @app.get("/account")
    def account(
        request: Request,
        context: RequestContext = Depends(get_context),
        validator: SessionValidator = Depends(get_validator),
    ):
        validator.validate()
        return render(context, request, "account.html", user=validator.userdata)

    @app.get("/health")
    def health_check(context: RequestContext = Depends(get_context)):
        """Basic health and dependency checks."""
        health_start_time = time.time()
        settings = context.settings

        try:
            databases = context.databases.names()
            for name in databases:
                context.databases.get_instance(name).table("users").select("id").limit(1).execute()

            data = {
                "status": "healthy",
                "environment": settings.get_setting("environment"),
                "settings": len(settings),
                "databases": databases,
                "timestamp": datetime.now().isoformat(),
                "response_time_ms": round((time.time() - health_start_time) * 1000, 2),
            }
            return api_v1_response("health", data, settings)
        except Exception as e:
            health_duration = time.time() - health_start_time
            logger.error(f"Health check failed: {str(e)} - Duration: {health_duration:.1f}s")

            data = {
                "status": "unhealthy",
                "timestamp": datetime.now().isoformat(),
                "response_time_ms": round(health_duration * 1000, 2),
            }
            return api_v1_response("health", data, settings, success=False, error=[str(e)], status_code=503)

    return app
