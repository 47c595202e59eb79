"""
Quantity & Compliance Engine — NBR 6118 checks over persisted structural elements.

Q1: Quantities
      pillar/beam volume = width × height × length
      slab volume        = width × length × (thickness / 100)
      concrete weight    = volume × concrete density
      steel ratio        = steel weight / (width × height)   (not normalised by length)
      steel weight       = ratio × (width × height) × length × steel density × safety factor
      total area         = Σ width × length over every element, whatever its type
C1: Inconsistencies (independent per element)
      fck < MIN_FCK → high        fck > MAX_FCK → medium
      ratio < type minimum → high ratio > type maximum → medium
C2: Optimizations (independent and additive, 0 to 3 per element)
      concrete   fck > MIN_FCK + 5 → lower to MIN_FCK + 5
      steel      ratio > type maximum → bring to the maximum
      dimensions slab thickness > 12 → 10

The steel ratio ignores member length and the slab-thickness saving has no
density term. Both are kept as-is so totals stay comparable with reports
already issued; confirm with the product owner before changing either.

The engine never touches the database: analyze() is a pure function of the
element list. analyze_project() loads a project's elements and calls it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger("estrutura-compliance")


# ── Constants (NBR 6118) ──────────────────────────────────────────────────────

MIN_FCK_MPA = 20.0
MAX_FCK_MPA = 90.0

# (minimum, maximum) longitudinal reinforcement ratio per member type
STEEL_RATIO_LIMITS: dict[str, tuple[float, float]] = {
    "pillar": (0.004, 0.04),     # 0.4 % – 4 %
    "beam":   (0.0015, 0.025),   # 0.15 % – 2.5 %
    "slab":   (0.001, 0.02),     # 0.1 % – 2 %
}

CONCRETE_DENSITY_KG_M3 = 2400.0
STEEL_DENSITY_KG_M3 = 7850.0
SAFETY_FACTOR = 1.4

CONCRETE_COST_PER_M3 = 300.0     # R$/m³
STEEL_COST_PER_KG = 8.0          # R$/kg

FCK_OPTIMIZATION_MARGIN_MPA = 5.0
SLAB_THICKNESS_LIMIT_CM = 12.0
SLAB_TARGET_THICKNESS_CM = 10.0

_MEMBER_PLURAL = {"pillar": "pilares", "beam": "vigas", "slab": "lajes"}


# ── Data Classes ──────────────────────────────────────────────────────────────

@dataclass
class ComplianceLimits:
    min_fck: float = MIN_FCK_MPA
    max_fck: float = MAX_FCK_MPA
    steel_ratio_limits: dict[str, tuple[float, float]] = field(
        default_factory=lambda: dict(STEEL_RATIO_LIMITS)
    )
    concrete_density: float = CONCRETE_DENSITY_KG_M3
    steel_density: float = STEEL_DENSITY_KG_M3
    safety_factor: float = SAFETY_FACTOR
    concrete_cost_per_m3: float = CONCRETE_COST_PER_M3
    steel_cost_per_kg: float = STEEL_COST_PER_KG
    fck_optimization_margin: float = FCK_OPTIMIZATION_MARGIN_MPA
    slab_thickness_limit: float = SLAB_THICKNESS_LIMIT_CM
    slab_target_thickness: float = SLAB_TARGET_THICKNESS_CM


@dataclass
class ElementInput:
    id: str
    type: str
    number: str
    dimensions: dict[str, Any]
    materials: dict[str, Any]
    location: Optional[dict[str, Any]] = None

    @classmethod
    def from_record(cls, record) -> "ElementInput":
        return cls(
            id=str(record.id),
            type=record.type,
            number=record.number,
            dimensions=dict(record.dimensions or {}),
            materials=dict(record.materials or {}),
            location=dict(record.location) if record.location else None,
        )

    def dim(self, key: str) -> float:
        try:
            return float(self.dimensions.get(key) or 0.0)
        except (TypeError, ValueError):
            return 0.0

    @property
    def fck(self) -> Optional[float]:
        value = (self.materials.get("concrete") or {}).get("fck")
        return float(value) if value is not None else None

    @property
    def steel_weight(self) -> float:
        return float((self.materials.get("steel") or {}).get("weight") or 0.0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "number": self.number,
            "dimensions": self.dimensions,
            "materials": self.materials,
            "location": self.location,
        }


@dataclass
class Inconsistency:
    type: str                   # concrete_strength | steel_ratio
    severity: str               # low | medium | high
    description: str
    element_id: str
    rule: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "severity": self.severity,
            "description": self.description,
            "element_id": self.element_id,
            "rule": self.rule,
        }


@dataclass
class Optimization:
    type: str                   # concrete | steel | dimensions
    description: str
    potential_savings: dict[str, float]
    element_id: str
    target: float               # proposed fck, steel ratio or slab thickness

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "potential_savings": dict(self.potential_savings),
            "element_id": self.element_id,
            "target": self.target,
        }


@dataclass
class StructuralAnalysis:
    project_id: str
    elements: list[dict]
    total_area: float
    total_concrete: float
    total_steel: float
    inconsistencies: list[Inconsistency]
    optimizations: list[Optimization]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "elements": self.elements,
            "total_area": self.total_area,
            "total_concrete": self.total_concrete,
            "total_steel": self.total_steel,
            "inconsistencies": [i.to_dict() for i in self.inconsistencies],
            "optimizations": [o.to_dict() for o in self.optimizations],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# ── Engine ────────────────────────────────────────────────────────────────────

class ComplianceEngine:

    def __init__(self, limits: Optional[ComplianceLimits] = None):
        self.limits = limits or ComplianceLimits()

    # -- Q1: quantities -------------------------------------------------------

    def element_volume(self, element: ElementInput) -> float:
        width, height, length = element.dim("width"), element.dim("height"), element.dim("length")
        if element.type in ("pillar", "beam"):
            return width * height * length
        if element.type == "slab":
            return width * length * (element.dim("thickness") / 100)
        return 0.0

    def concrete_weight(self, element: ElementInput) -> float:
        return self.element_volume(element) * self.limits.concrete_density

    def steel_ratio(self, element: ElementInput) -> Optional[float]:
        """steel weight / (width × height); None when the section area is unknown."""
        section = element.dim("width") * element.dim("height")
        if section <= 0:
            return None
        return element.steel_weight / section

    def steel_weight(self, element: ElementInput) -> float:
        ratio = self.steel_ratio(element)
        if ratio is None:
            return 0.0
        section = element.dim("width") * element.dim("height")
        return (
            ratio * section * element.dim("length")
            * self.limits.steel_density * self.limits.safety_factor
        )

    def total_area(self, elements: list[ElementInput]) -> float:
        return sum(e.dim("width") * e.dim("length") for e in elements)

    # -- C1: inconsistencies --------------------------------------------------

    def check_inconsistencies(self, elements: list[ElementInput]) -> list[Inconsistency]:
        limits = self.limits
        found: list[Inconsistency] = []

        for element in elements:
            fck = element.fck
            if fck is not None:
                if fck < limits.min_fck:
                    found.append(Inconsistency(
                        type="concrete_strength",
                        severity="high",
                        description=(
                            f"Resistência do concreto ({fck:g} MPa) abaixo do mínimo "
                            f"permitido ({limits.min_fck:g} MPa)"
                        ),
                        element_id=element.id,
                        rule="NBR 6118 - Resistência mínima do concreto",
                    ))
                if fck > limits.max_fck:
                    found.append(Inconsistency(
                        type="concrete_strength",
                        severity="medium",
                        description=(
                            f"Resistência do concreto ({fck:g} MPa) acima do máximo "
                            f"recomendado ({limits.max_fck:g} MPa)"
                        ),
                        element_id=element.id,
                        rule="NBR 6118 - Resistência máxima do concreto",
                    ))

            bounds = limits.steel_ratio_limits.get(element.type)
            ratio = self.steel_ratio(element)
            if bounds is None or ratio is None:
                continue
            min_ratio, max_ratio = bounds
            member = _MEMBER_PLURAL.get(element.type, element.type)
            if ratio < min_ratio:
                found.append(Inconsistency(
                    type="steel_ratio",
                    severity="high",
                    description=(
                        f"Taxa de armadura ({ratio * 100:.2f}%) abaixo do mínimo "
                        f"permitido ({min_ratio * 100:.2f}%)"
                    ),
                    element_id=element.id,
                    rule=f"NBR 6118 - Taxa mínima de armadura em {member}",
                ))
            if ratio > max_ratio:
                found.append(Inconsistency(
                    type="steel_ratio",
                    severity="medium",
                    description=(
                        f"Taxa de armadura ({ratio * 100:.2f}%) acima do máximo "
                        f"recomendado ({max_ratio * 100:.2f}%)"
                    ),
                    element_id=element.id,
                    rule=f"NBR 6118 - Taxa máxima de armadura em {member}",
                ))

        return found

    # -- C2: optimizations ----------------------------------------------------

    def _steel_volume_basis(self, element: ElementInput) -> float:
        if element.type == "slab":
            return element.dim("width") * element.dim("length") * element.dim("thickness") / 100
        return element.dim("width") * element.dim("height") * element.dim("length")

    def generate_optimizations(self, elements: list[ElementInput]) -> list[Optimization]:
        limits = self.limits
        suggestions: list[Optimization] = []

        for element in elements:
            fck = element.fck
            target_fck = limits.min_fck + limits.fck_optimization_margin
            if fck is not None and fck > target_fck:
                saved = self.element_volume(element) * (fck - target_fck) / fck
                suggestions.append(Optimization(
                    type="concrete",
                    description=f"Reduzir fck de {fck:g} MPa para {target_fck:g} MPa",
                    potential_savings={
                        "concrete": saved,
                        "cost": saved * limits.concrete_cost_per_m3,
                    },
                    element_id=element.id,
                    target=target_fck,
                ))

            bounds = limits.steel_ratio_limits.get(element.type)
            ratio = self.steel_ratio(element)
            if bounds is not None and ratio is not None and ratio > bounds[1]:
                target_ratio = bounds[1]
                saved = (
                    (ratio - target_ratio) * self._steel_volume_basis(element)
                    * limits.steel_density
                )
                suggestions.append(Optimization(
                    type="steel",
                    description=(
                        f"Ajustar taxa de armadura de {ratio * 100:.2f}% "
                        f"para {target_ratio * 100:.2f}%"
                    ),
                    potential_savings={
                        "steel": saved,
                        "cost": saved * limits.steel_cost_per_kg,
                    },
                    element_id=element.id,
                    target=target_ratio,
                ))

            thickness = element.dim("thickness")
            if element.type == "slab" and thickness > limits.slab_thickness_limit:
                target_t = limits.slab_target_thickness
                saved = (thickness - target_t) * element.dim("width") * element.dim("length")
                suggestions.append(Optimization(
                    type="dimensions",
                    description=(
                        f"Reduzir espessura da laje de {thickness:g} cm para {target_t:g} cm"
                    ),
                    potential_savings={
                        "concrete": saved,
                        "cost": saved * limits.concrete_cost_per_m3,
                    },
                    element_id=element.id,
                    target=target_t,
                ))

        return suggestions

    # -- Main entry point -----------------------------------------------------

    def analyze(
        self,
        project_id: str,
        elements: list[ElementInput],
        now: Optional[datetime] = None,
    ) -> StructuralAnalysis:
        timestamp = now or datetime.now(timezone.utc)
        total_concrete = sum(self.concrete_weight(e) for e in elements)
        total_steel = sum(self.steel_weight(e) for e in elements)
        inconsistencies = self.check_inconsistencies(elements)
        optimizations = self.generate_optimizations(elements)

        logger.info(
            f"[{project_id}] Analysis: {len(elements)} elements, "
            f"{len(inconsistencies)} inconsistencies, {len(optimizations)} optimizations"
        )

        return StructuralAnalysis(
            project_id=project_id,
            elements=[e.to_dict() for e in elements],
            total_area=self.total_area(elements),
            total_concrete=total_concrete,
            total_steel=total_steel,
            inconsistencies=inconsistencies,
            optimizations=optimizations,
            created_at=timestamp,
            updated_at=timestamp,
        )


async def load_project_elements(session: AsyncSession, project_id: str) -> list[ElementInput]:
    from app.models.orm_models import StructuralElement

    result = await session.execute(
        select(StructuralElement)
        .where(StructuralElement.project_id == project_id)
        .order_by(StructuralElement.created_at, StructuralElement.id)
    )
    return [ElementInput.from_record(r) for r in result.scalars().all()]


async def analyze_project(
    session: AsyncSession,
    project_id: str,
    engine: Optional[ComplianceEngine] = None,
) -> StructuralAnalysis:
    """Run the engine over the project's currently persisted elements."""
    elements = await load_project_elements(session, project_id)
    return (engine or ComplianceEngine()).analyze(project_id, elements)
