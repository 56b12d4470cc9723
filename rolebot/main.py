"""Process entry point: wire the directory, gate, dispatcher and transports.

Run with ``python -m rolebot.main`` (or the ``rolebot`` console script).
"""

from __future__ import annotations

import asyncio
import logging
import signal

import uvicorn

from rolebot.adapters.telegram.client import TelegramClient
from rolebot.core.app_factory import create_app
from rolebot.core.config import Settings, settings
from rolebot.core.errors import StorageAppError
from rolebot.core.logging import configure_logging
from rolebot.core.security import AdmissionGate
from rolebot.services.bot import BotService
from rolebot.services.directory import Directory
from rolebot.services.dispatcher import CommandDispatcher

logger = logging.getLogger(__name__)


def open_directory(cfg: Settings) -> Directory:
    """Open the database and verify connectivity; failure here is fatal."""
    directory = Directory.open(cfg.db.path, timeout_seconds=cfg.db.timeout_seconds)
    directory.ping()
    logger.info("storage.ready", extra={"db_path": cfg.db.path})
    return directory


async def serve(cfg: Settings) -> None:
    """Run the poll loop and the health server until SIGINT/SIGTERM."""
    directory = open_directory(cfg)
    gate = AdmissionGate.from_settings(cfg.security)
    dispatcher = CommandDispatcher(directory, gate)
    transport = TelegramClient(
        cfg.telegram.apitoken,
        api_base_url=cfg.telegram.api_base_url,
        timeout_seconds=cfg.telegram.request_timeout_seconds,
    )
    bot = BotService(
        transport=transport,
        gate=gate,
        dispatcher=dispatcher,
        poll_timeout=cfg.telegram.update_timeout,
        handler_timeout_seconds=cfg.telegram.handler_timeout_seconds,
    )

    health_server = uvicorn.Server(
        uvicorn.Config(
            create_app(directory, check_timeout_seconds=cfg.health.check_timeout_seconds),
            host=cfg.health.host,
            port=cfg.health.port,
            log_config=None,
        )
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    health_task = asyncio.create_task(health_server.serve())
    # uvicorn may take over SIGINT/SIGTERM; its exit stops the bot too
    health_task.add_done_callback(lambda _task: stop_event.set())
    logger.info("health.started", extra={"port": cfg.health.port})
    try:
        await bot.run(stop_event)
    finally:
        logger.info("shutdown.requested")
        health_server.should_exit = True
        await health_task
        await transport.aclose()
        directory.close()


def main() -> int:
    configure_logging(settings.log)
    try:
        asyncio.run(serve(settings))
    except StorageAppError as exc:
        logger.critical("startup.storage_failed", extra={"error_code": exc.code, "error_message": exc.message})
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
