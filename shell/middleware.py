"""
Shell API middleware: uniform error bodies and one access line per request
"""

import logging
import time
from typing import Tuple

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from launch.exceptions import AppError

logger = logging.getLogger(__name__)

# Polled by the app bootstrap while the server starts.
QUIET_PATHS = {"/health"}


def _describe_validation(exc: RequestValidationError) -> str:
  parts = []
  for err in exc.errors():
    location = ".".join(str(part) for part in err.get("loc", ()))
    parts.append(f"{location}: {err.get('msg', 'invalid')}")
  return "; ".join(parts) or "Invalid request"


def to_app_error(exc: Exception) -> Tuple[AppError, int]:
  """Map any exception onto an AppError and the status code to answer with"""
  match exc:
    case AppError() as e:
      return e, e.status_code

    case HTTPException() as e:
      return (
        AppError(description=str(e.detail), name=f"HTTP_{e.status_code}", source="http"),
        e.status_code,
      )

    case RequestValidationError() as e:
      return (
        AppError(
          description=_describe_validation(e),
          name="VALIDATION_ERROR",
          source="validation",
        ),
        400,
      )

    case ValueError() as e:
      return AppError.from_exception(e, name="VALIDATION_ERROR", source="validation"), 400

    case _:
      return AppError.from_exception(exc, name="INTERNAL_ERROR", source="unknown"), 500


def error_handler(exc: Exception) -> JSONResponse:
  """Convert an exception into the ErrorResponse body"""
  app_error, status_code = to_app_error(exc)
  if status_code >= 500 and app_error.source == "unknown":
    logger.error(f"Unhandled error: {exc}", exc_info=exc)
  else:
    logger.warning(f"{status_code} [{app_error.source}] {app_error.name}: {app_error.description}")
  return JSONResponse(status_code=status_code, content=app_error.to_response().model_dump())


class ErrorHandlingMiddleware:
  """Turns exceptions escaping the routes into ErrorResponse bodies"""

  def __init__(self, app: ASGIApp):
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send):
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    started = False

    async def track_start(message: Message):
      nonlocal started
      started = started or message["type"] == "http.response.start"
      await send(message)

    try:
      await self.app(scope, receive, track_start)
    except Exception as e:
      if started:
        logger.error(f"Error after response started, cannot report it: {e}")
        return
      await error_handler(e)(scope, receive, send)


class AccessLogMiddleware:
  """Logs method, path, status and duration once the response is sent"""

  def __init__(self, app: ASGIApp):
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send):
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    started_at = time.perf_counter()
    status_code = 0

    async def capture_status(message: Message):
      nonlocal status_code
      if message["type"] == "http.response.start":
        status_code = message["status"]
      await send(message)

    try:
      await self.app(scope, receive, capture_status)
    finally:
      path = scope["path"]
      level = logging.DEBUG if path in QUIET_PATHS else logging.INFO
      logger.log(
        level,
        f"{scope['method']} {path} -> {status_code}"
        f" ({(time.perf_counter() - started_at) * 1000:.1f}ms)",
      )


def install_middleware(app: FastAPI) -> None:
  """Error conversion innermost, correlation ids outermost"""
  app.add_middleware(ErrorHandlingMiddleware)
  app.add_middleware(AccessLogMiddleware)
  app.add_middleware(CorrelationIdMiddleware)
