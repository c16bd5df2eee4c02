from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire (model replies and API responses)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------
# Analysis
# ---------

class AnalysisPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    details: str


# Structured points and legacy plain strings are both valid list items.
GuidanceItem = Union[AnalysisPoint, str]


class SkinAnalysis(_CamelModel):
    is_skin: bool
    is_healthy: bool = False
    disease_name: Optional[str] = None
    description: Optional[str] = None

    symptoms: List[GuidanceItem] = Field(default_factory=list)
    reasons: List[GuidanceItem] = Field(default_factory=list)
    precautions: List[GuidanceItem] = Field(default_factory=list)
    prevention: List[GuidanceItem] = Field(default_factory=list)
    treatments: List[GuidanceItem] = Field(default_factory=list)

    medicines: List[str] = Field(default_factory=list)
    healing_period: Optional[str] = None


GUIDANCE_FIELDS = ("symptoms", "reasons", "precautions", "prevention", "treatments")


# ---------
# Progression comparison
# ---------

class Verdict(str, Enum):
    IMPROVED = "IMPROVED"
    WORSENED = "WORSENED"
    STABLE = "STABLE"
    UNCLEAR = "UNCLEAR"
    MISMATCH = "MISMATCH"


class ComparisonResult(_CamelModel):
    verdict: Verdict
    changes: List[str] = Field(default_factory=list)
    recommendation: str = ""


# ---------
# Timeline (owned by the caller, only image_data is read)
# ---------

class TimelineEntry(_CamelModel):
    id: str
    timestamp: int
    image_data: str
    label: str = ""
    analysis: Optional[SkinAnalysis] = None
