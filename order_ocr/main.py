"""Application entry point for the order form OCR API server."""

import uvicorn

from order_ocr.api.app import create_app
from order_ocr.utils.config import load_config
from order_ocr.utils.logger import setup_logging


def main() -> None:
    """Start the FastAPI application server."""
    config = load_config()
    setup_logging(config.log_level)
    uvicorn.run(create_app(config), host=config.api.host, port=config.api.port)


if __name__ == "__main__":
    main()
