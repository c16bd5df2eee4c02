"""
Generic guidance used when the model leaves a guidance section empty.

The content is deliberately non-diagnostic (hygiene, sun protection,
hydration, seeing a dermatologist). It only fills sections that are empty
after parsing and never replaces anything the model returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from skinscan.analysis.schemas import GUIDANCE_FIELDS, AnalysisPoint, GuidanceItem


def _p(title: str, details: str) -> AnalysisPoint:
    return AnalysisPoint(title=title, details=details)


_GENERIC_GUIDANCE: Dict[str, Tuple[GuidanceItem, ...]] = {
    "symptoms": (
        _p("Visible Changes", "Changes in colour, texture or surface of the affected area."),
    ),
    "reasons": (
        _p("Multiple Factors", "Skin changes can be triggered by irritation, infection, allergy or environment."),
    ),
    "precautions": (
        _p("Keep It Clean", "Wash the area gently with mild soap and water and pat it dry."),
        _p("Avoid Scratching", "Scratching can irritate the skin further and lead to infection."),
    ),
    "prevention": (
        _p("Sun Protection", "Use a broad-spectrum sunscreen and cover exposed skin outdoors."),
        _p("Stay Hydrated", "Drink enough water and moisturise to support the skin barrier."),
    ),
    "treatments": (
        _p("Gentle Skin Care", "Use fragrance-free cleansers and moisturisers on the affected area."),
        _p("See a Dermatologist", "Consult a dermatologist for a confirmed diagnosis and treatment plan."),
    ),
}


@dataclass(frozen=True)
class BackfillPolicy:
    """
    Placeholder content for empty sections.

    `guidance` covers the five structured sections of an accepted analysis.
    The rejection_* fields explain a non-skin result, comparison_* fields
    back a progression report whose model reply left them empty.
    """
    guidance: Dict[str, Tuple[GuidanceItem, ...]] = field(
        default_factory=lambda: dict(_GENERIC_GUIDANCE)
    )

    no_skin_name: str = "No Skin Detected"
    no_skin_description: str = (
        "The AI could not identify human skin texture in this image. "
        "Please upload a clear, close-up photo of the affected area."
    )
    rejection_reasons: Tuple[GuidanceItem, ...] = (
        _p("Scan Failed", "The image quality is too low or no skin is visible."),
    )
    rejection_precautions: Tuple[GuidanceItem, ...] = (
        _p("Retake Photo", "Use good lighting and hold the camera close to the affected skin."),
    )

    comparison_changes: Tuple[str, ...] = (
        "No specific visual changes could be described between the two images.",
    )
    comparison_recommendation: str = (
        "Keep tracking the area with photos taken in similar lighting and consult a "
        "dermatologist if it changes noticeably."
    )

    def __post_init__(self) -> None:
        unknown = set(self.guidance) - set(GUIDANCE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown guidance sections: {sorted(unknown)}")
        for name in GUIDANCE_FIELDS:
            if not self.guidance.get(name):
                raise ValueError(f"Backfill guidance for '{name}' must not be empty")

    def fill(self, section: str, items: Sequence[GuidanceItem]) -> List[GuidanceItem]:
        """Return `items` unchanged if non-empty, otherwise the generic guidance."""
        if items:
            return list(items)
        return list(self.guidance[section])
