"""Shared test fixtures for the order form OCR test suite."""

from pathlib import Path

import pytest

from order_ocr.utils.config import AppConfig, OCRConfig, RasterConfig, UploadConfig

ORDER_TEXT = (
    "Número: 001\n"
    "Nombre: Juan Perez\n"
    "Teléfono: 555-0001\n"
    "Correo: juan@example.com\n"
    "Entregar a Nombre: Ana Lopez\n"
    "Entregar a Teléfono: 555-0002\n"
    "Dirección: Calle Falsa 123\n"
    "Notas: Tocar timbre"
)


@pytest.fixture
def order_text() -> str:
    """OCR text of a fully filled order form."""
    return ORDER_TEXT


@pytest.fixture
def tessdata_dir(tmp_path: Path) -> Path:
    """A tessdata directory containing Spanish trained data."""
    path = tmp_path / "tessdata"
    path.mkdir()
    (path / "spa.traineddata").write_bytes(b"trained")
    return path


@pytest.fixture
def app_config(tmp_path: Path, tessdata_dir: Path) -> AppConfig:
    """Application config pointing every directory into ``tmp_path``."""
    return AppConfig(
        raster=RasterConfig(output_dir=str(tmp_path / "images")),
        ocr=OCRConfig(tessdata_dir=str(tessdata_dir)),
        upload=UploadConfig(upload_dir=str(tmp_path / "uploads")),
    )


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """A small file standing in for an uploaded PDF."""
    path = tmp_path / "form.pdf"
    path.write_bytes(b"%PDF-1.4\n%fake order form\n")
    return path


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent
