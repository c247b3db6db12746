"""Application bootstrapper for the ShukList price comparison service."""
from __future__ import annotations

import logging

from .config import DEFAULT_CONFIG
from .web.app import bootstrap_app

logger = logging.getLogger(__name__)


def run() -> None:
    """Entrypoint used by the CLI to launch the web UI."""

    logging.basicConfig(level=logging.INFO)
    config = DEFAULT_CONFIG
    app, *_ = bootstrap_app(config)
    logger.info("Serving ShukList from %s", config.data_directory.resolve())
    app.run(debug=config.environment == "development")


if __name__ == "__main__":  # pragma: no cover - manual execution only
    run()
