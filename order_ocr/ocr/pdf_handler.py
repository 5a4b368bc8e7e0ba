"""First-page PDF rasterization for OCR.

Renders page 1 of an uploaded order form to a PNG on disk through
pdf2image (poppler), at a fixed 300 DPI A4 size.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from pdf2image import convert_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from order_ocr.errors import ConversionError
from order_ocr.utils.config import RasterConfig
from order_ocr.utils.logger import get_logger

logger = get_logger(__name__)

_POPPLER_ERRORS = (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)


@dataclass
class RasterPage:
    """A rasterized PDF page written to disk."""

    path: Path
    page_number: int
    dpi: int
    width: int
    height: int

    def to_dict(self) -> dict[str, object]:
        return {"path": str(self.path), "page": self.page_number}


class PDFRasterizer:
    """Converts the first page of a PDF into a PNG image.

    Args:
        config: Raster settings (DPI, target size, output directory, prefix).
        poppler_path: Directory holding the poppler binaries, if not on PATH.
    """

    def __init__(
        self, config: RasterConfig | None = None, poppler_path: str | None = None
    ) -> None:
        self.config = config or RasterConfig()
        self.poppler_path = poppler_path
        self.output_dir = Path(self.config.output_dir)

    def output_path(self, run_id: str, page_number: int = 1) -> Path:
        """Return the file the rasterizer writes for ``run_id``."""
        stem = f"{self.config.prefix}-{run_id}-{page_number}"
        return self.output_dir / f"{stem}.{self.config.fmt}"

    def rasterize(self, pdf_path: Path, run_id: str) -> RasterPage:
        """Render page 1 of ``pdf_path`` to disk.

        Args:
            pdf_path: Path to the source PDF.
            run_id: Unique run identifier used in the output filename.

        Returns:
            The rasterized page.

        Raises:
            ConversionError: If the PDF is missing or unreadable, poppler
                fails, or the expected image is absent afterwards.
        """
        pdf_path = Path(pdf_path)
        if not pdf_path.is_file() or not os.access(pdf_path, os.R_OK):
            raise ConversionError(f"PDF file not found or unreadable: {pdf_path}")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_path(run_id)
        logger.info("Rasterizing page 1 of %s at %d DPI", pdf_path, self.config.dpi)

        try:
            convert_from_path(
                str(pdf_path),
                dpi=self.config.dpi,
                output_folder=str(self.output_dir),
                first_page=1,
                last_page=1,
                fmt=self.config.fmt,
                single_file=True,
                output_file=target.stem,
                size=(self.config.width, self.config.height),
                paths_only=True,
                poppler_path=self.poppler_path,
            )
        except (*_POPPLER_ERRORS, OSError, ValueError) as exc:
            raise ConversionError(f"PDF conversion failed: {exc}") from exc

        if not target.is_file():
            raise ConversionError(f"Rasterized image was not created: {target}")

        logger.info("Rasterization complete: %s", target)
        return RasterPage(
            path=target,
            page_number=1,
            dpi=self.config.dpi,
            width=self.config.width,
            height=self.config.height,
        )
