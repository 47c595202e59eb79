"""
Table Extractor — schedule tables from drawing text.

Two strategies:
  1. Line heuristic (always runs, never raises): a line containing "|" is a
     table row. The first pipe line after a non-pipe line is the header;
     following pipe lines become rows keyed by header position; any other
     line (or end of text) closes the table.
  2. Spatial detector (PDF pages only): pdfplumber's ruling/whitespace table
     finder. When it finds tables on a page they supersede the heuristic
     result for that page.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

logger = logging.getLogger("estrutura-tables")

HEURISTIC_TABLE_TYPE = "pipe_delimited"
SPATIAL_TABLE_TYPE = "detected_grid"


@dataclass
class TableDraft:
    type: str
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)
    location: dict[str, float] = field(default_factory=lambda: {"page": 0, "x": 0.0, "y": 0.0})

    @property
    def data(self) -> dict[str, Any]:
        return {"headers": self.headers, "rows": self.rows}

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.data, "location": dict(self.location)}


def _split_cells(line: str) -> list[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def _row_from_cells(headers: list[str], cells: list[Optional[str]]) -> dict[str, str]:
    row = {}
    for i, cell in enumerate(cells):
        key = headers[i] if i < len(headers) and headers[i] else f"col_{i}"
        row[key] = (cell or "").strip()
    return row


def extract_tables(text: str, page: int = 0) -> list[TableDraft]:
    """Split ``text`` into pipe-delimited tables."""
    tables: list[TableDraft] = []
    if not text:
        return tables

    current: Optional[TableDraft] = None
    for line in text.splitlines():
        if "|" in line:
            cells = _split_cells(line)
            if current is None:
                current = TableDraft(
                    type=HEURISTIC_TABLE_TYPE,
                    headers=cells,
                    location={"page": page, "x": 0.0, "y": 0.0},
                )
            else:
                current.rows.append(_row_from_cells(current.headers, cells))
        elif current is not None:
            tables.append(current)
            current = None

    if current is not None:
        tables.append(current)
    return tables


def detect_page_tables(pdf_page, page_number: int) -> list[TableDraft]:
    """Geometric table detection on a pdfplumber page.

    Returns an empty list when nothing is found or the detector fails, so the
    caller can fall back to the heuristic result.
    """
    drafts: list[TableDraft] = []
    try:
        found = pdf_page.find_tables()
    except Exception as exc:
        logger.debug("Spatial table detection failed on page %s: %s", page_number, exc)
        return drafts

    for table in found:
        matrix = table.extract() or []
        if not matrix:
            continue
        headers = [(cell or "").strip() for cell in matrix[0]]
        x0, top = table.bbox[0], table.bbox[1]
        drafts.append(TableDraft(
            type=SPATIAL_TABLE_TYPE,
            headers=headers,
            rows=[_row_from_cells(headers, cells) for cells in matrix[1:]],
            location={"page": page_number, "x": round(float(x0), 2), "y": round(float(top), 2)},
        ))
    return drafts
