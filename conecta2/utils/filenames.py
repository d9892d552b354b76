from __future__ import annotations

import re
import unicodedata
import uuid

_MAX_STEM_LENGTH = 100


def sanitize_file_name(filename: str) -> str:
    """Return *filename* safe for use as an object-storage key.

    Accents are stripped (NFD decomposition, combining marks dropped), every
    character outside ``[a-zA-Z0-9.-]`` becomes ``_``, runs of ``_`` collapse
    to one, and the part before the last dot is cut to 100 characters while
    the extension is kept.

    Args:
        filename: Original filename supplied by the uploader.

    Returns:
        Sanitized filename, e.g. ``"Cotizacion_ano_2024.pdf"`` for
        ``"Cotización año 2024.pdf"``.
    """
    decomposed = unicodedata.normalize("NFD", filename)
    name = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    name = re.sub(r"[^a-zA-Z0-9.\-]", "_", name)
    name = re.sub(r"_{2,}", "_", name)

    stem, dot, extension = name.rpartition(".")
    if not dot:
        return name[:_MAX_STEM_LENGTH]
    if len(stem) > _MAX_STEM_LENGTH:
        return f"{stem[:_MAX_STEM_LENGTH]}.{extension}"
    return name


def attachment_path(entity_id: str, filename: str) -> str:
    """Storage key ``{entity_id}/{sanitized}`` used by the attachment buckets."""
    return f"{entity_id}/{sanitize_file_name(filename)}"


def receipt_path(travel_request_id: str, filename: str) -> str:
    """Storage key ``{id}/{uuid}-{sanitized}`` used by ``travel-receipts``."""
    return f"{travel_request_id}/{uuid.uuid4()}-{sanitize_file_name(filename)}"
