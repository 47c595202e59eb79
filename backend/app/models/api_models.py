"""
Request / response payload models for the files, analysis and project routers.

Snapshot fields (elements, inconsistencies, optimizations) are stored as JSON
on the report row and passed through as plain dicts.
"""
from typing import Optional
from pydantic import BaseModel


class ProjectCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class FileUploadResponse(BaseModel):
    file_id: str
    status: str                     # pending on upload


class FileStatusResponse(BaseModel):
    id: str
    project_id: str
    name: str
    type: str                       # pdf | image | dwg
    status: str                     # pending | processing | completed | error
    error_message: Optional[str] = None
    extracted_data: Optional[dict] = None


class AnalysisStartResponse(BaseModel):
    id: str
    project_id: str
    status: str


class StructuralAnalysisResponse(BaseModel):
    """Completed analysis snapshot, as stored on the report row."""
    id: str
    project_id: str
    elements: list[dict] = []
    total_area: float = 0.0
    total_concrete: float = 0.0     # kg
    total_steel: float = 0.0        # kg
    inconsistencies: list[dict] = []
    optimizations: list[dict] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {"json_schema_extra": {
        "example": {
            "id": "6f0c…",
            "project_id": "a1b2…",
            "total_area": 0.0,
            "total_concrete": 432.0,
            "total_steel": 0.0,
            "inconsistencies": [{
                "type": "steel_ratio",
                "severity": "high",
                "description": "Taxa de armadura (0.00%) abaixo do mínimo permitido (0.40%)",
                "element_id": "e-1",
                "rule": "NBR 6118 - Taxa mínima de armadura em pilares",
            }],
            "optimizations": [],
        }
    }}


class AnalysisStatusResponse(BaseModel):
    status: str                     # processing | completed | error | cancelled
    error_message: Optional[str] = None
    progress: int = 0               # 0–100
    results: Optional[StructuralAnalysisResponse] = None


class AnalysisCancelResponse(BaseModel):
    id: str
    status: str


class AnalysisHistoryItem(BaseModel):
    id: str
    status: str
    progress: int = 0
    error_message: Optional[str] = None
    total_area: Optional[float] = None
    total_concrete: Optional[float] = None
    total_steel: Optional[float] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
