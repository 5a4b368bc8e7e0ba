"""Label-driven field extraction for scanned order forms.

Each field is located by its printed Spanish label. A small ordered list of
matcher strategies is tried per label, from the most literal to the most
tolerant of OCR noise, and the first hit wins. Values are single-line and
trimmed; a field with no match is an empty string.
"""

import re
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

from order_ocr.utils.logger import get_logger

logger = get_logger(__name__)

# Horizontal separators only, so a label never captures the following line.
_SEP = r"[ \t]"

# A value starts at its first non-separator character; a label followed only
# by separators on its line has no value.
_VALUE = r"([^\n:\s][^\n]*)"

# Strategy templates, tried in order. ``{label}`` is a regex fragment.
_STRATEGIES: list[tuple[str, str]] = [
    ("colon", r"{label}" + _SEP + r"*:" + _SEP + r"*" + _VALUE),
    ("optional_colon", r"{label}" + _SEP + r"*:?" + _SEP + r"*" + _VALUE),
    ("noisy_separator", r"{label}[^\n]*?[: \t]+" + _VALUE),
]

# "Entregar a" may be a section header on the line above its labels.
_ENTREGAR_A = r"Entregar a[:\s]+"


@dataclass
class RequestedBy:
    """Requester block of the order form."""

    id_number: str = ""
    name: str = ""
    phone: str = ""
    email: str = ""


@dataclass
class DeliverTo:
    """Delivery block of the order form."""

    name: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""


@dataclass
class ExtractedRecord:
    """Structured result of field extraction."""

    requested_by: RequestedBy = field(default_factory=RequestedBy)
    deliver_to: DeliverTo = field(default_factory=DeliverTo)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return asdict(self)


# (group, attribute) -> label regex fragment
FIELD_LABELS: dict[tuple[str, str], str] = {
    ("requested_by", "id_number"): re.escape("Número"),
    ("requested_by", "name"): re.escape("Nombre"),
    ("requested_by", "phone"): re.escape("Teléfono"),
    ("requested_by", "email"): re.escape("Correo"),
    ("deliver_to", "name"): _ENTREGAR_A + re.escape("Nombre"),
    ("deliver_to", "phone"): _ENTREGAR_A + re.escape("Teléfono"),
    ("deliver_to", "address"): re.escape("Dirección"),
    ("deliver_to", "notes"): re.escape("Notas"),
}


def build_matchers(label: str) -> list[Callable[[str], re.Match[str] | None]]:
    """Compile the ordered matcher strategies for one label.

    Args:
        label: Regex fragment matching the printed label.

    Returns:
        Search callables, most literal first.
    """
    return [
        re.compile(template.format(label=label), re.IGNORECASE).search
        for _, template in _STRATEGIES
    ]


_MATCHERS = {key: build_matchers(label) for key, label in FIELD_LABELS.items()}


def try_patterns(
    text: str,
    label: str,
    matchers: list[Callable[[str], re.Match[str] | None]] | None = None,
) -> str | None:
    """Return the trimmed value following ``label``, or ``None``.

    Args:
        text: OCR text to search.
        label: Regex fragment matching the printed label.
        matchers: Precompiled strategies for ``label``. Built on the fly
            when omitted.

    Returns:
        The first strategy's captured value, stripped of whitespace.
    """
    for search in matchers or build_matchers(label):
        match = search(text)
        if match and match.group(1):
            return match.group(1).strip()
    return None


def extract(text: str) -> ExtractedRecord:
    """Extract the order form fields from OCR text.

    Never raises; every field absent from ``text`` is left as ``""``.

    Args:
        text: Raw text returned by the OCR engine.

    Returns:
        The populated record.
    """
    record = ExtractedRecord()
    text = text or ""

    for (group, attr), label in FIELD_LABELS.items():
        value = try_patterns(text, label, _MATCHERS[(group, attr)]) or ""
        setattr(getattr(record, group), attr, value)
        logger.debug("Field %s.%s -> %r", group, attr, value)

    found = sum(
        1 for group in asdict(record).values() for value in group.values() if value
    )
    logger.info("Field extraction matched %d of %d fields", found, len(FIELD_LABELS))
    return record
