from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from skinscan.analysis.schemas import TimelineEntry


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class AnalyzeSkinRequest(_Request):
    image: str = Field(..., min_length=1, description="Data URL or raw base64 image")


class CompareProgressionRequest(_Request):
    """
    Either two images directly, or two timeline entries (earlier first).
    """
    image_a: Optional[str] = None
    image_b: Optional[str] = None
    entries: Optional[List[TimelineEntry]] = None

    @model_validator(mode="after")
    def _one_input_form(self) -> "CompareProgressionRequest":
        has_images = bool(self.image_a) and bool(self.image_b)
        if self.entries is not None:
            if has_images or self.image_a or self.image_b:
                raise ValueError("provide either imageA/imageB or entries, not both")
            if len(self.entries) != 2:
                raise ValueError("entries must contain exactly two timeline entries")
            if self.entries[0].id == self.entries[1].id:
                raise ValueError("entries must be two different timeline entries")
            return self
        if not has_images:
            raise ValueError("imageA and imageB are required")
        return self

    def image_pair(self) -> tuple[str, str]:
        if self.entries is not None:
            baseline, follow_up = self.entries
            return baseline.image_data, follow_up.image_data
        return self.image_a or "", self.image_b or ""


# ---------
# Consistent error payload
# ---------

class ErrorBody(BaseModel):
    code: str
    message: str
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody
