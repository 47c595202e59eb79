"""
test_element_extractor.py — Unit tests for labelled-pattern extraction.

Tests cover:
  - extract_elements: pillar / beam / slab patterns, ordering, duplicates,
    skipping of unparseable or non-positive matches
  - extract_technical_notes: fck / aço / carga annotations, decimal commas,
    case-insensitivity

All tests are pure unit tests; no database or external services required.
"""

import pytest

from app.services.element_extractor import extract_elements, extract_technical_notes


DRAWING_TEXT = """
PLANTA DE FORMAS - PAVIMENTO TIPO
Pilar P1 : 20x40
Viga V1 : 15x50   Pilar P2: 25X60
ruído de OCR ### 12
Laje L1 : 12cm
Pilar P1 : 20x40
fck=30 MPa  aço=1,5%  CARGA = 3.5 kN/m²
"""


class TestExtractElements:
    """Tests for extract_elements."""

    def test_counts_every_pillar_including_duplicates(self):
        pillars = [e for e in extract_elements(DRAWING_TEXT) if e.type == "pillar"]
        assert len(pillars) == 3
        assert [p.number for p in pillars] == ["P1", "P2", "P1"]

    def test_pillar_dimensions(self):
        pillars = [e for e in extract_elements(DRAWING_TEXT) if e.type == "pillar"]
        assert pillars[0].dimensions == {"width": 20, "height": 40}
        assert pillars[1].dimensions == {"width": 25, "height": 60}

    def test_beam_dimensions(self):
        beams = [e for e in extract_elements(DRAWING_TEXT) if e.type == "beam"]
        assert len(beams) == 1
        assert beams[0].number == "V1"
        assert beams[0].dimensions == {"width": 15, "height": 50}

    def test_slab_carries_only_thickness(self):
        slabs = [e for e in extract_elements(DRAWING_TEXT) if e.type == "slab"]
        assert len(slabs) == 1
        assert slabs[0].dimensions == {"thickness": 12}

    def test_order_is_pillars_then_beams_then_slabs(self):
        types = [e.type for e in extract_elements(DRAWING_TEXT)]
        assert types == ["pillar", "pillar", "pillar", "beam", "slab"]

    @pytest.mark.parametrize("k", [0, 1, 5, 12])
    def test_k_pillar_labels_yield_k_drafts(self, k):
        """Pillar count is exact whatever the noise and interleaved labels."""
        lines = []
        for i in range(k):
            lines.append(f"Pilar P{i % 3} : {10 + i}x{30 + i}")
            lines.append(f"Viga V{i} : 12x40 ## lixo")
        pillars = [e for e in extract_elements("\n".join(lines)) if e.type == "pillar"]
        assert len(pillars) == k
        for i, pillar in enumerate(pillars):
            assert pillar.dimensions == {"width": 10 + i, "height": 30 + i}

    def test_zero_dimension_match_is_skipped(self):
        elements = extract_elements("Pilar P1 : 0x40\nPilar P2 : 20x40")
        assert [e.number for e in elements] == ["P2"]

    def test_zero_thickness_slab_is_skipped(self):
        assert extract_elements("Laje L1 : 0cm") == []

    def test_empty_text(self):
        assert extract_elements("") == []

    def test_text_without_labels(self):
        assert extract_elements("NOTAS GERAIS\ncobrimento 2,5 cm") == []

    def test_page_is_unset(self):
        assert all(e.page is None for e in extract_elements(DRAWING_TEXT))


class TestExtractTechnicalNotes:
    """Tests for extract_technical_notes."""

    def test_all_three_note_types(self):
        notes = extract_technical_notes(DRAWING_TEXT)
        by_type = {n.type: n for n in notes}
        assert set(by_type) == {"fck", "steel", "load"}

    def test_fck_value(self):
        notes = extract_technical_notes("fck=30 MPa")
        assert len(notes) == 1
        assert notes[0].value == 30.0
        assert notes[0].content == "fck=30"

    def test_decimal_comma_is_accepted(self):
        notes = extract_technical_notes("aço=1,5%")
        assert notes[0].type == "steel"
        assert notes[0].value == pytest.approx(1.5)

    def test_case_insensitive(self):
        notes = extract_technical_notes("FCK = 40\nAço = 2%")
        assert [n.type for n in notes] == ["fck", "steel"]

    def test_load_accepts_m2_spelling(self):
        notes = extract_technical_notes("carga=3.5kN/m2")
        assert notes[0].type == "load"
        assert notes[0].value == pytest.approx(3.5)

    def test_steel_without_percent_is_not_a_note(self):
        assert extract_technical_notes("aço=1.5") == []

    def test_repeated_notes_are_all_kept(self):
        notes = extract_technical_notes("fck=25 ... fck=30")
        assert [n.value for n in notes] == [25.0, 30.0]
