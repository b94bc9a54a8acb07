from __future__ import annotations

import asyncio
import contextlib
import logging
import os

from ops_assistant.app import create_app
from ops_assistant.config import (CACHE_RETENTION_SECONDS, CACHE_SWEEP_INTERVAL_SECONDS, PORT,
                                  SOCKET_MODE, THREAD_ACTIVE_SECONDS, TIMEZONE_TTL_SECONDS)
from ops_assistant.services import build_services
from ops_assistant.slack import SocketModeRunner
from ops_assistant.stores import create_stores, run_periodic_sweep
from ops_assistant.utils import configure_logging

logger = logging.getLogger(__name__)

app = create_app()


async def run_socket_mode() -> None:
  """Serve Slack over Socket Mode instead of the HTTP endpoints."""
  configure_logging()
  stores = create_stores()
  services = build_services(stores)
  await services.load_bot_user_id()
  runner = SocketModeRunner(asyncio.get_running_loop(),
                            on_event=services.handle_events_payload,
                            on_command=services.handle_command,
                            on_interaction=services.handle_interaction,
                            web_client=services.transport.client)
  sweeper = asyncio.create_task(
      run_periodic_sweep(stores, CACHE_SWEEP_INTERVAL_SECONDS, CACHE_RETENTION_SECONDS,
                         TIMEZONE_TTL_SECONDS, THREAD_ACTIVE_SECONDS))
  runner.start()
  logger.info("Ops assistant online in Socket mode")
  try:
    await asyncio.Event().wait()
  finally:
    runner.stop()
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
      await sweeper
    stores.close()


if __name__ == "__main__":
  if SOCKET_MODE:
    asyncio.run(run_socket_mode())
  else:
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=PORT)
