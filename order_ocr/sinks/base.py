"""Common sink contract and row layout for extracted records."""

from datetime import datetime, timezone
from typing import Protocol

from order_ocr.extraction.field_extractor import ExtractedRecord

ROW_HEADER = [
    "solicitado_por_nombre",
    "solicitado_por_numero",
    "solicitado_por_telefono",
    "solicitado_por_correo",
    "entregar_a_nombre",
    "entregar_a_telefono",
    "entregar_a_direccion",
    "entregar_a_notas",
    "procesado_en",
]


class RecordSink(Protocol):
    """Anything that can persist one extracted record."""

    def append(self, record: ExtractedRecord, processed_at: datetime) -> None: ...


def record_to_row(record: ExtractedRecord, processed_at: datetime) -> list[str]:
    """Flatten a record into the nine ordered spreadsheet columns.

    Args:
        record: Extracted order form record.
        processed_at: Processing time; naive values are taken as UTC.

    Returns:
        Column values in :data:`ROW_HEADER` order.
    """
    if processed_at.tzinfo is None:
        processed_at = processed_at.replace(tzinfo=timezone.utc)
    req, dest = record.requested_by, record.deliver_to
    return [
        req.name,
        req.id_number,
        req.phone,
        req.email,
        dest.name,
        dest.phone,
        dest.address,
        dest.notes,
        processed_at.isoformat(),
    ]
