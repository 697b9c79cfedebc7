from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class RatingLevelInfo(BaseModel):
    name: str
    value: str
    score: int


class AspectDefinitionView(BaseModel):
    name: str
    description: str


class PracticeDefinitionView(BaseModel):
    name: str
    has_aspects: bool
    slug: Optional[str] = None
    aspect_prefix: Optional[str] = None
    aspects: list[AspectDefinitionView] = Field(default_factory=list)


class PillarDefinitionView(BaseModel):
    title: str
    description: str
    color: str
    practices: list[PracticeDefinitionView]


class TaxonomyResponse(BaseModel):
    pillars: list[PillarDefinitionView]


class PracticeView(BaseModel):
    name: str
    rating: Optional[str] = None
    findings: Optional[str] = None
    has_aspects: bool = False
    slug: Optional[str] = None


class PillarView(BaseModel):
    title: str
    description: str
    color: str
    rated: int
    total: int
    percentage: float
    overall: Optional[str] = None
    practices: list[PracticeView]


class DashboardResponse(BaseModel):
    project_name: str
    assessment_date: str
    pillars: list[PillarView]


class AspectView(BaseModel):
    name: str
    description: str
    rating: Optional[str] = None
    findings: Optional[str] = None
    stored_name: str


class AspectFamilyResponse(BaseModel):
    project_name: str
    assessment_date: str
    pillar_title: str
    practice_name: str
    slug: str
    aspect_prefix: str
    overall: Optional[str] = None
    score: int
    max_score: int
    percentage: float
    rated: int
    total: int
    practice_findings: Optional[str] = None
    aspects: list[AspectView]


class FindingsUpdate(BaseModel):
    findings: Optional[str] = None


class PracticeRatingItem(BaseModel):
    pillar_title: str
    practice_name: str
    rating: Optional[str] = None
    findings: Optional[str] = None


class PracticeRatingsBatch(BaseModel):
    project_name: Optional[str] = None
    assessment_date: Optional[str] = None
    ratings: list[PracticeRatingItem] = Field(default_factory=list)


class SaveResponse(BaseModel):
    status: Literal["ok"] = "ok"
    message: str
    rows_written: int
    rating: Optional[str] = None
    overall: Optional[str] = None


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str
    errors: list[str] = Field(default_factory=list)
