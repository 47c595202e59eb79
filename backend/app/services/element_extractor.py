"""
Element Pattern Extractor — labelled-pattern extraction from drawing text.

Turns raw OCR / PDF text into typed drafts:
  - StructuralElementDraft  — "Pilar 12 : 20x40", "Viga 3 : 15x50", "Laje 1 : 12cm"
  - TechnicalNote           — "fck=30", "aço=1.5%", "carga=3.5kN/m²"

Every pattern family is scanned independently over the whole text, so one
block yields every occurrence. Repeated labels are kept: a drawing can show
the same member in several views and persistence stores each one.

OCR noise is expected. A match whose numbers cannot be parsed (or are not
positive) is skipped and the scan continues; these functions never raise.
"""
from __future__ import annotations

import re
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional

logger = logging.getLogger("estrutura-extractor")


# ── Patterns ──────────────────────────────────────────────────────────────────

# Cross-section members: "<Label> <id> : <W>x<H>"
PILLAR_PATTERN = re.compile(r"Pilar\s+(\w+)\s*:\s*(\d+)\s*[xX×]\s*(\d+)")
BEAM_PATTERN = re.compile(r"Viga\s+(\w+)\s*:\s*(\d+)\s*[xX×]\s*(\d+)")
# Slabs carry only a thickness: "Laje <id> : <T>cm"
SLAB_PATTERN = re.compile(r"Laje\s+(\w+)\s*:\s*(\d+)\s*cm")

NOTE_PATTERNS: dict[str, re.Pattern] = {
    "fck": re.compile(r"fck\s*=\s*(\d+(?:[.,]\d+)?)", re.IGNORECASE),
    "steel": re.compile(r"a[çc]o\s*=\s*(\d+(?:[.,]\d+)?)\s*%", re.IGNORECASE),
    "load": re.compile(r"carga\s*=\s*(\d+(?:[.,]\d+)?)\s*kN/m(?:²|2)", re.IGNORECASE),
}


# ── Data Classes ──────────────────────────────────────────────────────────────

@dataclass
class StructuralElementDraft:
    type: str                       # pillar | beam | slab
    number: str                     # label as printed on the drawing
    dimensions: dict[str, float] = field(default_factory=dict)
    page: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TechnicalNote:
    type: str                       # fck | steel | load
    content: str                    # raw matched substring, kept for audit
    value: float
    page: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _positive_int(raw: str) -> Optional[int]:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _scan_sections(pattern: re.Pattern, element_type: str, text: str) -> list[StructuralElementDraft]:
    drafts = []
    for match in pattern.finditer(text):
        width = _positive_int(match.group(2))
        height = _positive_int(match.group(3))
        if width is None or height is None:
            logger.debug("Skipping unparseable %s match: %r", element_type, match.group(0))
            continue
        drafts.append(StructuralElementDraft(
            type=element_type,
            number=match.group(1),
            dimensions={"width": width, "height": height},
        ))
    return drafts


# ── Public API ────────────────────────────────────────────────────────────────

def extract_elements(text: str) -> list[StructuralElementDraft]:
    """Return every pillar, beam and slab draft found in ``text``.

    Order is pillars, then beams, then slabs, each in order of appearance.
    """
    if not text:
        return []

    elements = _scan_sections(PILLAR_PATTERN, "pillar", text)
    elements.extend(_scan_sections(BEAM_PATTERN, "beam", text))

    for match in SLAB_PATTERN.finditer(text):
        thickness = _positive_int(match.group(2))
        if thickness is None:
            logger.debug("Skipping unparseable slab match: %r", match.group(0))
            continue
        elements.append(StructuralElementDraft(
            type="slab",
            number=match.group(1),
            dimensions={"thickness": thickness},
        ))

    return elements


def extract_technical_notes(text: str) -> list[TechnicalNote]:
    """Return fck / steel / load annotations found in ``text``."""
    if not text:
        return []

    notes = []
    for note_type, pattern in NOTE_PATTERNS.items():
        for match in pattern.finditer(text):
            try:
                value = float(match.group(1).replace(",", "."))
            except ValueError:
                continue
            notes.append(TechnicalNote(type=note_type, content=match.group(0), value=value))
    return notes
