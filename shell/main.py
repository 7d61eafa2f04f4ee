"""
Trailhead shell API - FastAPI server

Hosts the decision engine on its event loop and serves the local
(splash / legacy / offline) frontend.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
from contextlib import asynccontextmanager
from typing import Callable, Optional
import asyncio
import logging
from pathlib import Path
from asgi_correlation_id import CorrelationIdFilter

from launch.engine import BootstrapEngine
from launch.preferences import LaunchPreferences
from shell.api.bootstrap import router as bootstrap_router
from shell.middleware import error_handler, install_middleware

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def install_correlation_filter() -> None:
  """Add correlation ID filter to all root handlers"""
  for handler in logging.root.handlers:
    handler.addFilter(CorrelationIdFilter(uuid_length=4))


def create_app(
  engine: BootstrapEngine,
  preferences: LaunchPreferences,
  frontend_path: Optional[Path] = None,
  on_override: Optional[Callable[[], bool]] = None,
  run_engine: bool = True,
) -> FastAPI:
  """
  Build the shell API

  Args:
    engine: Decision engine; its run loop is started in the app lifespan
    preferences: Persisted launch state
    frontend_path: Directory with the bundled local frontend, if any
    on_override: Called after an override URL was stored; returns True when
      a live surface consumed it
    run_engine: Start `engine.run()` with the app (disabled by some tests)
  """

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    logger.info("Starting trailhead shell...")
    task = asyncio.create_task(engine.run()) if run_engine else None
    yield
    logger.info("Shutting down trailhead shell...")
    engine.close()
    if task is not None:
      task.cancel()

  app = FastAPI(
    title="Trailhead Shell",
    description="Launch routing shell API",
    version=VERSION,
    lifespan=lifespan,
  )
  app.state.engine = engine
  app.state.preferences = preferences
  app.state.on_override = on_override

  async def _validation_handler(request: Request, exc: RequestValidationError):
    return error_handler(exc)

  app.add_exception_handler(RequestValidationError, _validation_handler)

  install_middleware(app)

  app.include_router(bootstrap_router)

  @app.get("/health")
  async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "trailhead-shell", "version": VERSION}

  if frontend_path is not None and frontend_path.exists():
    logger.info(f"Serving frontend from: {frontend_path}")

    assets = frontend_path / "assets"
    if assets.exists():
      app.mount("/assets", StaticFiles(directory=assets), name="assets")

    # Catch-all route for SPA - must be last
    @app.get("/{full_path:path}")
    async def serve_frontend(full_path: str):
      """Serve frontend files, fallback to index.html for SPA routing"""
      file_path = (frontend_path / full_path).resolve()

      if (
        full_path
        and file_path.is_relative_to(frontend_path.resolve())
        and file_path.is_file()
      ):
        return FileResponse(file_path)

      # Don't cache index.html to prevent serving stale builds
      response = FileResponse(frontend_path / "index.html")
      response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
      response.headers["Pragma"] = "no-cache"
      response.headers["Expires"] = "0"
      return response
  else:
    logger.warning("Frontend directory not found or not set. API-only mode.")

    @app.get("/")
    async def root():
      """Root endpoint - API only mode"""
      return {"message": "Trailhead Shell API", "version": VERSION}

  return app
