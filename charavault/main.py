"""Main entry point for CharaVault."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import uvicorn

from charavault.config import ConfigLoadError, ConfigLoader, SystemConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(debug: bool = False, log_dir: Path = Path("data/debug_logs/server")):
    """Configure logging."""
    handlers = [logging.StreamHandler(sys.stdout)]

    log_file = None
    if debug:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"server_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    # Root stays at INFO so third-party libraries are not verbose
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    app_logger = logging.getLogger('charavault')
    app_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)

    startup_logger = logging.getLogger(__name__)
    if debug:
        startup_logger.info(f"[STARTUP] Server log file: {log_file}")
    return log_file


def load_config() -> SystemConfig:
    try:
        return ConfigLoader().load_system_config()
    except ConfigLoadError as e:
        # Logger isn't configured yet
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logging.getLogger(__name__).warning(f"[STARTUP WARNING] Could not load system config: {e}, using defaults")
        return SystemConfig()


def main():
    """Run the FastAPI server."""
    system_config = load_config()
    setup_logging(debug=system_config.debug, log_dir=system_config.paths.data / "debug_logs" / "server")

    logger = logging.getLogger(__name__)
    logger.info(f"Starting CharaVault server (debug mode: {system_config.debug})...")
    logger.info(f"Server will listen on {system_config.api_host}:{system_config.api_port}")

    from charavault.api.app import create_app

    uvicorn.run(
        create_app(system_config),
        host=system_config.api_host,
        port=system_config.api_port,
        log_level="info",
        log_config=None,  # Keep our basicConfig
    )


if __name__ == "__main__":
    main()
