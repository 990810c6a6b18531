from __future__ import annotations

import sys

import uvicorn
from rich.console import Console

from .app import create_app
from .config import load_config
from .errors import ConfigurationError
from .logging_utils import get_logger, setup_logging

console = Console()
LOGGER = get_logger()


def main() -> None:
    setup_logging(console=console)
    try:
        config = load_config()
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.service.log_level, console=console)
    LOGGER.info(
        "Loaded %s metafield definitions for store %s",
        len(config.metafields),
        config.storefront.store_domain,
    )

    try:
        uvicorn.run(
            create_app(config),
            host=config.service.host,
            port=config.service.port,
            log_config=None,
        )
    except Exception as exc:  # pragma: no cover - guard for CLI usage
        LOGGER.exception("Server failed")
        print(f"Server failed: {exc}", file=sys.stderr)
        sys.exit(3)


if __name__ == "__main__":
    main()
