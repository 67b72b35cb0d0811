"""Main entrypoint for sysguard."""
import logging
import sys

import uvicorn

from .config import load_config
from .console import run_console
from .monitor import Monitor
from .server import create_app

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )


def run_server(config):
    """Run the local API with the monitor attached."""
    logger.info("Starting in SERVER mode")

    app = create_app(Monitor.from_config(config))

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
        access_log=False,
    )


def main():
    """Main entrypoint."""
    config = load_config()
    setup_logging(config.logging.level)

    logger.info("SysGuard v1.0.0")
    logger.info(f"Mode: {config.mode}")

    if config.mode == "server":
        run_server(config)
    elif config.mode == "console":
        logger.info("Starting in CONSOLE mode")
        run_console(config)
    else:
        logger.error(f"Unknown mode: {config.mode}. Use 'server' or 'console'")
        sys.exit(1)


if __name__ == "__main__":
    main()
