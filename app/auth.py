"""Bearer JWT auth middleware verified against a JWKS endpoint."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, List, Optional

import httpx
from jose import jwt
from jose.exceptions import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse


logger = logging.getLogger("adminkit.auth")

PUBLIC_PATHS = {"/health"}


def auth_disabled() -> bool:
    return os.getenv("ADMIN_DISABLE_AUTH", "").strip().lower() in ("1", "true", "yes")


class JwksCache:
    """Signing keys from one JWKS url, refetched after ttl seconds or on an unknown kid."""

    def __init__(self, url: str, ttl: float | None = None, timeout: float = 10.0) -> None:
        self.url = url
        self.ttl = float(os.getenv("ADMIN_JWKS_TTL", "600")) if ttl is None else ttl
        self.timeout = timeout
        self._keys: dict | None = None
        self._fetched_at = 0.0

    def _download(self) -> dict:
        resp = httpx.get(self.url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def keys(self, force: bool = False) -> dict:
        now = time.time()
        if force or self._keys is None or now - self._fetched_at >= self.ttl:
            self._keys = self._download()
            self._fetched_at = now
            logger.info("jwks_fetched url=%s keys=%s", self.url, len(self._keys.get("keys", [])))
        return self._keys

    def find(self, kid: str | None) -> dict | None:
        for force in (False, True):
            for jwk in self.keys(force=force).get("keys", []):
                if jwk.get("kid") == kid:
                    return jwk
        return None


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer":
        return None
    return token.strip() or None


def verify_jwt(token: str, jwks: JwksCache, issuer: str | None, audience: Optional[str]) -> dict:
    header = jwt.get_unverified_header(token)
    key = jwks.find(header.get("kid"))
    if key is None:
        raise JWTError("Unknown kid")
    options = {"verify_aud": audience is not None, "verify_iss": issuer is not None}
    return jwt.decode(token, key, algorithms=[header.get("alg", "RS256")], issuer=issuer, audience=audience, options=options)


def roles_from_claims(claims: dict) -> List[str]:
    roles = claims.get("roles")
    if isinstance(roles, str):
        roles = [roles]
    if not isinstance(roles, list):
        roles = []
    role = claims.get("role")
    if isinstance(role, str) and role not in roles:
        roles.append(role)
    return [r for r in roles if isinstance(r, str) and r]


def user_from_claims(claims: dict) -> dict[str, Any]:
    return {
        "id": claims.get("sub"),
        "email": claims.get("email"),
        "roles": roles_from_claims(claims),
        "claims": claims,
    }


def _auth_error(code: str, message: str, detail: dict | None = None) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": "Authorization", "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(body, status_code=401)


class JwtAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, jwks_url: str, issuer: str | None = None, audience: Optional[str] = None) -> None:
        super().__init__(app)
        self._jwks = JwksCache(jwks_url)
        self._issuer = issuer
        self._audience = audience

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        if auth_disabled() or request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token = bearer_token(request)
        if not token:
            logger.warning("auth_missing_token path=%s", request.url.path)
            return _auth_error("AUTH_MISSING_TOKEN", "Missing bearer token")

        try:
            claims = verify_jwt(token, self._jwks, self._issuer, self._audience)
        except Exception as exc:
            logger.warning("auth_invalid_token path=%s issuer=%s error=%s", request.url.path, self._issuer, exc)
            return _auth_error("AUTH_INVALID_TOKEN", "Invalid bearer token", {"error": str(exc)})

        request.state.user = user_from_claims(claims)
        request.state.auth_ms = (time.perf_counter() - start) * 1000
        return await call_next(request)
