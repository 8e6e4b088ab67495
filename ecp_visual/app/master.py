import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Optional

from ecp_visual.cli.common import add_common_cli_arguments, install_signal_handlers, port_number, positive_int
from ecp_visual.core.api import APIController, APIServer
from ecp_visual.core.config import AppConfig
from ecp_visual.core.errors import ConfigError
from ecp_visual.core.logging_config import configure_logging
from ecp_visual.core.logging_utils import get_module_logger
from ecp_visual.core.paths import SERVER_LOG_FILE, ensure_directories
from ecp_visual.core.system import VisualSystem


logger = get_module_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments. Unset options fall back to the config files."""
    parser = argparse.ArgumentParser(
        description="ECP visual server - mirrors an ECP device's state to browser visualisers"
    )

    parser.add_argument(
        "--device-host",
        type=str,
        default=None,
        help="Device address (default: ECP_HOST/ROKU_IP env, else config)",
    )

    parser.add_argument(
        "--device-port",
        type=port_number,
        default=None,
        help="Device ECP port (default: 8060)",
    )

    parser.add_argument(
        "--http-port",
        type=port_number,
        default=None,
        help="HTTP/WebSocket port (default: PORT env, else 30002)",
    )

    parser.add_argument(
        "--poll-interval-ms",
        type=positive_int,
        default=None,
        help="Milliseconds between device polls (default: 200)",
    )

    parser.add_argument(
        "--public-dir",
        type=Path,
        default=None,
        help="Directory with the browser visualiser (index.html)",
    )

    parser.add_argument(
        "--debug-api",
        action="store_true",
        default=False,
        help="Include tracebacks in HTTP error responses",
    )

    add_common_cli_arguments(parser)

    return parser.parse_args(argv)


class VisualServer:
    """Runs the visual system and its HTTP server until a shutdown signal."""

    def __init__(self, config: AppConfig, *, debug_api: bool = False):
        self.config = config
        self.system = VisualSystem(config)
        self.controller = APIController(self.system)
        self.server = APIServer(
            self.controller,
            host=config.server.host,
            port=config.server.port,
            public_dir=config.server.public_dir,
            debug=debug_api,
        )
        self.shutdown_event = asyncio.Event()
        self._shutdown_done = False

    async def start(self) -> None:
        await self.server.start()
        await self.system.start()

    async def shutdown(self, reason: str = "requested") -> None:
        """Stop polling, send a final reload, close sockets, stop the server."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        logger.info("Shutting down (%s)", reason)

        start = time.time()
        await self.system.stop()
        await self.server.stop()
        await self.system.close()
        logger.info("Shutdown complete in %.3fs", time.time() - start)

    async def run(self) -> None:
        await self.start()
        try:
            await self.shutdown_event.wait()
        finally:
            await self.shutdown("signal" if self.shutdown_event.is_set() else "finally block")


async def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for the ECP visual server.

    Shutdown Sequence:
    1. SIGINT/SIGTERM sets the shutdown event
    2. Polling stops and observers are told to reload
    3. WebSocket connections close and the HTTP server stops
    4. The device session is closed
    """
    args = parse_args(argv)

    config = await AppConfig.load_async(args.config, args=args)

    ensure_directories()
    log_file = config.log_file or SERVER_LOG_FILE
    configure_logging(
        config.log_level,
        force=True,
        console=config.console_output,
        log_file=log_file,
    )

    logger.info("=" * 60)
    logger.info("ECP Visual Server Starting")
    logger.info("=" * 60)
    logger.info("Device: %s:%d", config.device.host, config.device.port)
    logger.info("HTTP: %s:%d", config.server.host, config.server.port)
    logger.info("Log file: %s", log_file)
    logger.info("=" * 60)

    app = VisualServer(config, debug_api=args.debug_api)
    install_signal_handlers(app, asyncio.get_running_loop())
    await app.run()

    logger.info("ECP Visual Server Stopped")


def run(argv: Optional[list[str]] = None) -> int:
    try:
        asyncio.run(main(argv))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
