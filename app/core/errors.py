"""API error type and its JSON rendering.

Error bodies look like ``{"error": ..., "message": ..., "code": ...}`` plus
any diagnostic extras (e.g. ``required`` / ``userPermissions`` on 403s).
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str | None = None,
        **extra: Any,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.code:
            body["code"] = self.code
        body.update(self.extra)
        return body


class AuthenticationFailed(ApiError):
    """401 with a machine-readable code."""

    def __init__(self, code: str, message: str, error: str = "Authentication failed") -> None:
        super().__init__(status.HTTP_401_UNAUTHORIZED, error, message, code)


class Forbidden(ApiError):
    def __init__(self, error: str, message: str, **extra: Any) -> None:
        super().__init__(status.HTTP_403_FORBIDDEN, error, message, **extra)


def not_found(what: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, "Not found", f"{what} not found")


def conflict(error: str, message: str) -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, error, message)


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)  # type: ignore[arg-type]
