"""Configuration management for the order form OCR service.

Loads YAML configuration into pydantic models with defaults matching the
production deployment (Spanish Tesseract, 300 DPI A4 rasters), then applies
the environment overrides the service has always honored.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_DEFAULT_TESSDATA = "/usr/share/tesseract-ocr/5/tessdata"


class RasterConfig(BaseModel):
    """Configuration for PDF page rasterization."""

    dpi: int = 300
    width: int = 2480
    height: int = 3508
    fmt: str = "png"
    prefix: str = "page"
    output_dir: str = "uploads"


class OCRConfig(BaseModel):
    """Configuration for the Tesseract OCR engine."""

    tesseract_cmd: str | None = None
    lang: str = "spa"
    oem: int = 1
    psm: int = 3
    dpi: int = 300
    tessdata_dir: str = _DEFAULT_TESSDATA


class SheetsConfig(BaseModel):
    """Configuration for the Google Sheets sink."""

    spreadsheet_id: str | None = None
    credentials_file: str = "credentials.json"
    range: str = "A1"
    value_input_option: str = "USER_ENTERED"


class UploadConfig(BaseModel):
    """Configuration for accepted uploads."""

    upload_dir: str = "uploads"
    max_bytes: int = 10 * 1024 * 1024
    allowed_content_types: list[str] = Field(
        default_factory=lambda: ["application/pdf"]
    )


class APIConfig(BaseModel):
    """Configuration for the HTTP server."""

    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"]
    )


class AppConfig(BaseModel):
    """Top-level application configuration."""

    raster: RasterConfig = Field(default_factory=RasterConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    log_level: str = "INFO"


def apply_env_overrides(config: AppConfig) -> AppConfig:
    """Overlay deployment environment variables on a loaded config.

    Recognized variables: ``TESSDATA_PREFIX``, ``SPREADSHEET_ID``,
    ``GOOGLE_APPLICATION_CREDENTIALS``, ``CORS_ORIGIN`` and ``PORT``.

    Args:
        config: Configuration loaded from YAML or defaults.

    Returns:
        The same configuration object, updated in place.
    """
    env = os.environ
    if env.get("TESSDATA_PREFIX"):
        config.ocr.tessdata_dir = env["TESSDATA_PREFIX"]
    if env.get("SPREADSHEET_ID"):
        config.sheets.spreadsheet_id = env["SPREADSHEET_ID"]
    if env.get("GOOGLE_APPLICATION_CREDENTIALS"):
        config.sheets.credentials_file = env["GOOGLE_APPLICATION_CREDENTIALS"]
    if env.get("CORS_ORIGIN"):
        config.api.cors_origins = [
            origin.strip() for origin in env["CORS_ORIGIN"].split(",") if origin.strip()
        ]
    if env.get("PORT"):
        try:
            config.api.port = int(env["PORT"])
        except ValueError:
            logger.warning("Ignoring non-numeric PORT=%r", env["PORT"])
    return config


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration with environment overrides.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return apply_env_overrides(AppConfig(**raw))

    logger.info("No config file found at %s, using defaults", path)
    return apply_env_overrides(AppConfig())
