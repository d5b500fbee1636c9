"""
Entry point — start the Blockd engine.

Usage:
    python -m blockd.main
    uvicorn blockd.api.app:app --host 127.0.0.1 --port 8766
"""

import logging

import uvicorn

from .config import config


def main():
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # quieten request-level noise from HTTP clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    uvicorn.run(
        "blockd.api.app:app",
        host=config.api_host,
        port=config.api_port,
        reload=False,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
