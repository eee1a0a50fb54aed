import uvicorn
import constants
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=constants.LOG_LEVEL, log_file=constants.LOG_FILE)

from app import app
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    logger.info(f"Starting signaling server on {constants.HOST}:{constants.PORT}")
    logger.info(f"Health check: http://localhost:{constants.PORT}/")
    logger.info(f"ICE servers: http://localhost:{constants.PORT}/api/ice-servers")
    if constants.RELOAD:
        uvicorn.run("app:app", host=constants.HOST, port=constants.PORT, reload=True)
    else:
        uvicorn.run(app, host=constants.HOST, port=constants.PORT)


if __name__ == "__main__":
    main()
