"""Tesseract OCR wrapper with a fixed Spanish form configuration.

Recognition always runs with the LSTM engine, fully automatic page
segmentation and a 300 DPI hint against an explicit tessdata directory.
"""

import shutil
from pathlib import Path

import pytesseract
from PIL import Image, UnidentifiedImageError

from order_ocr.errors import MissingLanguageResource, OcrError
from order_ocr.utils.config import OCRConfig
from order_ocr.utils.logger import get_logger

logger = get_logger(__name__)


class TesseractEngine:
    """Wrapper around Tesseract for order form text recognition.

    Args:
        config: OCR settings. Defaults to the Spanish form configuration.
    """

    def __init__(self, config: OCRConfig | None = None) -> None:
        self.config = config or OCRConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

    @property
    def language_data_path(self) -> Path:
        """Path of the trained data file for the configured language."""
        return Path(self.config.tessdata_dir) / f"{self.config.lang}.traineddata"

    @property
    def tesseract_config(self) -> str:
        """Command-line options passed to Tesseract."""
        return (
            f"--oem {self.config.oem} --psm {self.config.psm} "
            f"--dpi {self.config.dpi} "
            f'--tessdata-dir "{self.config.tessdata_dir}"'
        )

    def is_available(self) -> bool:
        """Return whether the Tesseract binary can be found."""
        cmd = pytesseract.pytesseract.tesseract_cmd
        return Path(cmd).is_file() or shutil.which(cmd) is not None

    def check_language_data(self) -> Path:
        """Verify the trained data for the configured language exists.

        Returns:
            Path to the trained data file.

        Raises:
            MissingLanguageResource: If the file is absent.
        """
        path = self.language_data_path
        if not path.is_file():
            raise MissingLanguageResource(
                f"Language data for '{self.config.lang}' not found at {path}. "
                "Install it or point TESSDATA_PREFIX at the tessdata directory.",
                path=str(path),
            )
        logger.debug("Language data found: %s", path)
        return path

    def recognize(self, image_path: Path) -> str:
        """Recognize the text in an image file.

        Args:
            image_path: Path to the rasterized page.

        Returns:
            The recognized text.

        Raises:
            OcrError: If the image cannot be read or Tesseract fails.
        """
        logger.info("Running OCR on %s (lang=%s)", image_path, self.config.lang)
        try:
            with Image.open(image_path) as image:
                text = pytesseract.image_to_string(
                    image, lang=self.config.lang, config=self.tesseract_config
                )
        except (
            pytesseract.TesseractError,
            pytesseract.TesseractNotFoundError,
            UnidentifiedImageError,
            OSError,
            RuntimeError,
        ) as exc:
            raise OcrError(f"OCR failed for {image_path}: {exc}") from exc

        logger.info("OCR recognized %d characters", len(text))
        logger.debug("OCR text:\n%s", text)
        return text
