"""Filename-driven selection of the ingestion strategy for an uploaded file."""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Tuple


LOGGER = logging.getLogger("laserdesk.classifier")


class FileKind(str, Enum):
    PLANNING = "planning"
    SLA_VIOLATION = "sla_violation"
    MAIN = "main"
    POST_SALE = "post_sale"
    FIELD_SERVICE = "field_service"
    SUPPLIER_TERRITORY = "supplier_territory"
    UNKNOWN = "unknown"


Rule = Tuple[Callable[[str], bool], FileKind]

# Evaluated top to bottom on the upper-cased file name; first match wins.
# "MTZ OUT" must be tested before the plain MTZ rule.
CLASSIFICATION_RULES: Tuple[Rule, ...] = (
    (lambda name: "PIANIFICAZIONI" in name, FileKind.PLANNING),
    (lambda name: "MTZ OUT" in name, FileKind.SLA_VIOLATION),
    (lambda name: "MTZ" in name and "OUT" not in name, FileKind.MAIN),
    (lambda name: "POST VENDITA" in name, FileKind.POST_SALE),
    (lambda name: "LDS" in name, FileKind.FIELD_SERVICE),
    (lambda name: "DISTRIBUZIONE TERRITORIALE" in name, FileKind.SUPPLIER_TERRITORY),
)


def classify_file(file_name: str | Path) -> FileKind:
    """Return the ingestion strategy for ``file_name`` (case-insensitive)."""

    name = Path(str(file_name)).name.upper()
    for predicate, kind in CLASSIFICATION_RULES:
        if predicate(name):
            LOGGER.debug("Classified %s as %s", file_name, kind.value)
            return kind
    LOGGER.info("Unrecognized file type, skipping: %s", file_name)
    return FileKind.UNKNOWN
