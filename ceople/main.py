"""
ASGI entrypoint.

    uvicorn ceople.main:app --host 127.0.0.1 --port 3000

or ``python -m ceople.main`` to use SERVER_HOST / SERVER_PORT.
"""

import uvicorn

from .app.factory import create_app
from .config import get_config
from .structured_logging.enhanced_logging_config import get_logger, setup_enhanced_logging

config = get_config()
setup_enhanced_logging(config.logging.to_dict())

logger = get_logger(__name__)

app = create_app(config)


def main() -> None:
    logger.info("Starting relay server", host=config.server.host, port=config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
