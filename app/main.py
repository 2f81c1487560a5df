"""FastAPI app serving the admin module engine: JSON API, admin pages and address lookups."""

from __future__ import annotations

import os
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

import logging

from app.admin_modules import build_catalogs
from app.auth import JwtAuthMiddleware, auth_disabled
from app.db import get_db_stats, reset_db_stats
from app.forms import decode_pairs
from app.resources import ResourceAuthorizer
from app.stores import MemoryGeoLookup, MemoryRecordStore, MemorySessionStore, MemorySettingsStore
from app.template_render import PageRenderer, validate_templates
from admin_errors import AdminError, PermissionDenied
from admin_module import AdminModule, AdminServices, RequestContext
from template_resolver import TemplateResolver
from widgets import AJAX_FUNCTIONS, WidgetFactory


app = FastAPI(title="Admin Module Engine")
logger = logging.getLogger("adminkit.http")
logging.basicConfig(level=logging.INFO)

USE_DB = os.getenv("USE_DB", "").strip() == "1"
BASE_URI = "/" + os.getenv("ADMIN_BASE_URI", "/admin").strip().strip("/")
AJAX_BASE = "/ajax"
SESSION_COOKIE = "admin_sid"
REQ_SLOW_MS = float(os.getenv("ADMIN_REQ_SLOW_MS", "250"))
SESSION_TTL = float(os.getenv("ADMIN_SESSION_TTL", "28800"))
BUNDLED_TEMPLATES = str(ROOT / "templates")
TEMPLATE_DIRS = [d for d in os.getenv("ADMIN_TEMPLATE_DIRS", "").split(os.pathsep) if d.strip()] + [BUNDLED_TEMPLATES]

catalog, modules = build_catalogs()

if USE_DB:
    from app.stores_db import DbRecordStore, DbSessionStore, DbSettingsStore, ensure_schema

    ensure_schema()
    records = DbRecordStore(catalog)
    settings_store = DbSettingsStore()
    sessions = DbSessionStore(SESSION_TTL)
else:
    records = MemoryRecordStore(catalog)
    settings_store = MemorySettingsStore()
    sessions = MemorySessionStore(SESSION_TTL)

geo = MemoryGeoLookup()
templates = TemplateResolver(TEMPLATE_DIRS)
pages = PageRenderer(TEMPLATE_DIRS)

for _issue in validate_templates(TEMPLATE_DIRS):
    logger.warning("template_invalid message=%s line=%s", _issue["message"], _issue["line"])


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    reset_db_stats()
    start = time.perf_counter()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    auth_ms = getattr(request.state, "auth_ms", 0.0)
    db_stats = get_db_stats()
    db_ms = db_stats.get("total_ms", 0.0)
    route = request.scope.get("route")
    route_name = getattr(route, "name", None) or "unknown"
    logger.info(
        "%s %s %s route=%s total_ms=%.1f auth_ms=%.1f db_ms=%.1f db_q=%s handler_ms=%.1f",
        request.method,
        request.url.path,
        response.status_code,
        route_name,
        total_ms,
        auth_ms,
        db_ms,
        db_stats.get("queries", 0),
        max(total_ms - auth_ms - db_ms, 0.0),
    )
    if total_ms >= REQ_SLOW_MS:
        logger.warning(
            "slow_request method=%s path=%s route=%s total_ms=%.1f db_ms=%.1f status=%s",
            request.method,
            request.url.path,
            route_name,
            total_ms,
            db_ms,
            response.status_code,
        )
    return response


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _is_page(request: Request) -> bool:
    return request.url.path == BASE_URI or request.url.path.startswith(BASE_URI + "/")


@app.exception_handler(AdminError)
async def admin_error_handler(request: Request, exc: AdminError):
    if exc.status >= 500:
        logger.error("admin_error code=%s path=%s message=%s", exc.code, request.url.path, exc.message)
    else:
        logger.info("admin_error code=%s status=%s path=%s message=%s", exc.code, exc.status, request.url.path, exc.message)
    if _is_page(request):
        html = pages.render_error(exc.message, exc.status, {"base_uri": BASE_URI})
        return HTMLResponse(html, status_code=exc.status)
    issue = exc.as_issue()
    return _error_response(issue["code"], issue["message"], issue["path"], issue["detail"], status=exc.status)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


def _dev_roles(request: Request) -> list[str]:
    raw = request.headers.get("X-Admin-Roles")
    if raw is None:
        raw = os.getenv("ADMIN_DEV_ROLES", "admin")
    return [r.strip() for r in raw.split(",") if r.strip()]


def _user_record_id(email: str | None) -> int | None:
    if not email:
        return None
    found = records.search("User", {"Email": email})
    return found[0].id if found else None


def _resolve_actor(request: Request) -> dict | JSONResponse:
    user = getattr(request.state, "user", None)
    if not user or not user.get("id"):
        if not auth_disabled():
            return _error_response("AUTH_REQUIRED", "Authenticated user required", status=401)
        email = request.headers.get("X-Admin-Email") or os.getenv("ADMIN_DEV_EMAIL") or None
        return {
            "id": "test-user",
            "email": email,
            "roles": _dev_roles(request),
            "user_id": _user_record_id(email),
        }
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "roles": list(user.get("roles") or []),
        "user_id": _user_record_id(user.get("email")),
    }


class ActorContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in {"/health"}:
            return await call_next(request)
        actor = _resolve_actor(request)
        if isinstance(actor, JSONResponse):
            return actor
        request.state.actor = actor
        return await call_next(request)


app.add_middleware(ActorContextMiddleware)
if not auth_disabled():
    JWKS_URL = os.getenv("ADMIN_JWKS_URL", "").strip()
    if not JWKS_URL:
        raise RuntimeError("ADMIN_JWKS_URL is required for auth")
    app.add_middleware(
        JwtAuthMiddleware,
        jwks_url=JWKS_URL,
        issuer=os.getenv("ADMIN_JWT_ISSUER") or None,
        audience=os.getenv("ADMIN_JWT_AUDIENCE") or None,
    )


def _actor(request: Request) -> dict:
    actor = getattr(request.state, "actor", None)
    return actor if isinstance(actor, dict) else {"roles": []}


def _session_id(request: Request) -> tuple[str, bool]:
    sid = request.cookies.get(SESSION_COOKIE)
    if sid:
        return sid, False
    # new visitors sweep out sessions that went idle
    pruned = sessions.prune()
    if pruned:
        logger.info("sessions_pruned count=%s ttl=%s", pruned, SESSION_TTL)
    return uuid.uuid4().hex, True


def _services(request: Request, session_id: str | None = None) -> AdminServices:
    actor = _actor(request)
    return AdminServices(
        catalog=catalog,
        records=records,
        authorizer=ResourceAuthorizer(records, actor.get("roles")),
        settings=settings_store,
        session=sessions.for_session(session_id) if session_id else None,
        templates=templates,
        widgets=WidgetFactory(ajax_base=AJAX_BASE),
    )


def _open_module(module_type: str, context: RequestContext, services: AdminServices) -> AdminModule:
    return modules.factory(module_type, context, services)


async def _request_data(request: Request) -> Dict[str, Any]:
    if request.method in ("GET", "HEAD"):
        return {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        body = await request.json()
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return decode_pairs(form.multi_items())


def _query_data(request: Request) -> Dict[str, Any]:
    return decode_pairs(request.query_params.multi_items())


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/modules")
async def list_modules(request: Request):
    services = _services(request)
    groups: Dict[str, list] = {}
    for group, types in modules.groups().items():
        for module_type in types:
            context = RequestContext(method="GET", base_uri=BASE_URI, user_id=_actor(request).get("user_id"))
            with _open_module(module_type, context, services) as module:
                menu = module.permitted_menu_items()
                if not menu:
                    continue
                groups.setdefault(group, []).append(
                    {"type": module.get_type(), "title": module.get_title(), "menu": menu}
                )
    return _ok_response({"groups": groups})


# JSON API


async def _api(request: Request, module_type: str, record_id: str | None):
    context = RequestContext(
        method=request.method,
        post=await _request_data(request),
        query=_query_data(request),
        id=record_id,
        base_uri="/api",
        user_id=_actor(request).get("user_id"),
    )
    with _open_module(module_type, context, _services(request)) as module:
        result = module.process_api()
        if isinstance(result, str):
            payload: Dict[str, Any] = {"next": result}
            if result == "view" and module.item.id > 0:
                payload["data"] = module.serialize(module.item)
            return _ok_response(payload)
        status = 201 if request.method == "POST" else 200
        return _ok_response({"data": result}, status=status)


@app.api_route("/api/{module_type}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def api_collection(request: Request, module_type: str):
    return await _api(request, module_type, None)


@app.api_route("/api/{module_type}/{record_id}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def api_item(request: Request, module_type: str, record_id: str):
    return await _api(request, module_type, record_id)


# admin pages


def _parse_page_path(rest: str) -> tuple[str | None, str | None, str | None]:
    parts = [p for p in (rest or "").split("/") if p]
    record_id = None
    if parts and parts[0].isdigit():
        record_id = parts.pop(0)
    action = parts[0] if parts else None
    sub_action = parts[1] if len(parts) > 1 else None
    return record_id, action, sub_action


async def _page(request: Request, module_type: str, rest: str = "") -> Response:
    record_id, action, sub_action = _parse_page_path(rest)
    session_id, new_session = _session_id(request)
    query = _query_data(request)
    context = RequestContext(
        method=request.method,
        action=action,
        sub_action=sub_action,
        post=await _request_data(request),
        query=query,
        id=record_id,
        base_uri=BASE_URI,
        display_mode=query.get("display") if isinstance(query.get("display"), str) else None,
        user_id=_actor(request).get("user_id"),
    )
    with _open_module(module_type, context, _services(request, session_id)) as module:
        if not module.allow(module.current_action):
            raise PermissionDenied(f"Action ({module.current_action}) not allowed")
        data = module.prepare_template()
        redirect = data.get("redirect")
        if redirect:
            response: Response = RedirectResponse(redirect, status_code=303)
        else:
            name = module.get_template()
            if name is None:
                raise PermissionDenied(f"Action ({module.current_action}) not allowed")
            html = pages.render(
                name,
                {
                    **data,
                    "base_uri": BASE_URI,
                    "title": module.get_title(),
                    "menu": module.permitted_menu_items(),
                    "subMenu": module.get_sub_menu_items() if module.item.id > 0 else {},
                    "groups": modules.groups(),
                    "actor": _actor(request),
                },
            )
            response = HTMLResponse(html)
    if new_session:
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


@app.api_route(BASE_URI + "/{module_type}", methods=["GET", "POST"])
async def admin_page(request: Request, module_type: str):
    return await _page(request, module_type)


@app.api_route(BASE_URI + "/{module_type}/{rest:path}", methods=["GET", "POST"])
async def admin_page_action(request: Request, module_type: str, rest: str):
    return await _page(request, module_type, rest)


# address lookups


@app.get(AJAX_BASE + "/{function}")
async def ajax_lookup(request: Request, function: str):
    params = AJAX_FUNCTIONS.get(function)
    if params is None:
        return _error_response("AJAX_UNKNOWN_FUNCTION", f"Unknown function: {function}", "function", status=404)
    args = [request.query_params.get(name, "") for name in params]
    if function == "getCitiesByState":
        options = geo.cities_by_state(*args)
    else:
        options = geo.zips_by_city(*args)
    return _ok_response({"options": options})
