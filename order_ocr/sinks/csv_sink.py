"""Local CSV sink, mainly for command-line batch use."""

import csv
from datetime import datetime
from pathlib import Path

from order_ocr.errors import SinkError
from order_ocr.extraction.field_extractor import ExtractedRecord
from order_ocr.utils.logger import get_logger

from .base import ROW_HEADER, record_to_row

logger = get_logger(__name__)


class CsvSink:
    """Appends extracted records to a CSV file, writing a header on creation.

    Args:
        path: Output CSV file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def append(self, record: ExtractedRecord, processed_at: datetime) -> None:
        """Append one row for ``record``.

        Raises:
            SinkError: If the file cannot be written.
        """
        row = record_to_row(record, processed_at)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            new_file = not self.path.exists() or self.path.stat().st_size == 0
            with open(self.path, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                if new_file:
                    writer.writerow(ROW_HEADER)
                writer.writerow(row)
        except PermissionError as exc:
            raise SinkError(f"Cannot write {self.path}: {exc}", reason="permission") from exc
        except OSError as exc:
            raise SinkError(f"Cannot write {self.path}: {exc}") from exc

        logger.info("Appended record to %s", self.path)
