from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .config import (CACHE_RETENTION_SECONDS, CACHE_SWEEP_INTERVAL_SECONDS, SLACK_SIGNING_SECRET,
                     THREAD_ACTIVE_SECONDS, TIMEZONE_TTL_SECONDS)
from .routes import router
from .services import AssistantService, build_services
from .stores import create_stores, run_periodic_sweep
from .utils import configure_logging

logger = logging.getLogger(__name__)


def create_app(services: Optional[AssistantService] = None,
               signing_secret: str = SLACK_SIGNING_SECRET,
               sweep_interval: float = CACHE_SWEEP_INTERVAL_SECONDS) -> FastAPI:
  """Build the FastAPI app; ``services`` is injected by tests."""
  configure_logging()

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    owned = services is None
    app.state.services = services or build_services(create_stores())
    app.state.signing_secret = signing_secret
    if owned:
      await app.state.services.load_bot_user_id()
    stores = app.state.services.stores
    sweeper = asyncio.create_task(
        run_periodic_sweep(stores, sweep_interval, CACHE_RETENTION_SECONDS,
                           TIMEZONE_TTL_SECONDS, THREAD_ACTIVE_SECONDS))
    logger.info("Ops assistant ready")
    try:
      yield
    finally:
      sweeper.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await sweeper
      stores.close()
      logger.info("Ops assistant stopped")

  app = FastAPI(title="Ops Assistant", lifespan=lifespan)
  app.include_router(router)
  return app
