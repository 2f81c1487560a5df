"""Error taxonomy for the admin module engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class AdminError(Exception):
    message: str
    status: int = 400
    code: str = "ADMIN_ERROR"
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.message

    def as_issue(self) -> dict:
        return {"code": self.code, "message": self.message, "path": self.path, "detail": None}


@dataclass
class PermissionDenied(AdminError):
    status: int = 403
    code: str = "PERMISSION_DENIED"


@dataclass
class NotFound(AdminError):
    status: int = 404
    code: str = "NOT_FOUND"


@dataclass
class ValidationFailure(AdminError):
    status: int = 400
    code: str = "VALIDATION_FAILED"


@dataclass
class ConfigurationFatal(AdminError):
    status: int = 500
    code: str = "CONFIGURATION_FATAL"


@dataclass
class MultipleDeleteForbidden(ConfigurationFatal):
    message: str = "Deleting multiple items is forbidden"
    status: int = 403
    code: str = "MULTIPLE_DELETE_FORBIDDEN"
