from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from skinscan.analysis.backfill import BackfillPolicy
from skinscan.analysis.schemas import (
    GUIDANCE_FIELDS,
    AnalysisPoint,
    ComparisonResult,
    GuidanceItem,
    SkinAnalysis,
    Verdict,
)
from skinscan.inference.errors import MalformedResponseError


logger = logging.getLogger(__name__)

# json_object mode should return bare JSON, but some models still wrap it in a fence
_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


# -----------------------------
# JSON parsing
# -----------------------------

def parse_json_object(text: Any) -> Dict[str, Any]:
    """
    Parse a model reply into a dict.
    Invalid JSON or a non-object document raises MalformedResponseError.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError("Empty model output")

    m = _FENCE_RE.match(text)
    raw = m.group(1) if m else text

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Model output JSON is not an object")
    return data


# -----------------------------
# Field coercion
# -----------------------------

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_item(item: Any) -> Optional[GuidanceItem]:
    """
    Accept an AnalysisPoint-shaped dict or a plain string.
    Partial dicts keep whichever half is present as plain text; anything unusable is dropped.
    """
    if isinstance(item, dict):
        title = _as_text(item.get("title"))
        details = _as_text(item.get("details"))
        if title and details:
            return AnalysisPoint(title=title, details=details)
        return title or details
    if isinstance(item, (list, tuple)):
        return None
    return _as_text(item)


def coerce_items(raw: Any) -> List[GuidanceItem]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raw = [raw]
    out: List[GuidanceItem] = []
    for item in raw:
        coerced = _coerce_item(item)
        if coerced is not None:
            out.append(coerced)
    return out


def coerce_strings(raw: Any) -> List[str]:
    """Plain-text list: structured points collapse to their title."""
    out: List[str] = []
    for item in coerce_items(raw):
        out.append(item.title if isinstance(item, AnalysisPoint) else item)
    return out


# -----------------------------
# Normalizer
# -----------------------------

class ResultNormalizer:
    """
    Turn a raw model reply into a schema-valid record.

    Rejections (not skin) never carry treatments, medicines or prevention and
    always explain themselves. Accepted results keep the model's content and
    only get generic guidance where a section came back empty.
    """

    def __init__(self, backfill: Optional[BackfillPolicy] = None):
        self.backfill = backfill or BackfillPolicy()

    def normalize(self, raw_reply: Any) -> SkinAnalysis:
        data = parse_json_object(raw_reply)

        if not _as_bool(data.get("isSkin")):
            return self._rejection(data)
        return self._accepted(data)

    def _rejection(self, data: Dict[str, Any]) -> SkinAnalysis:
        model_reasons = coerce_items(data.get("reasons"))
        model_precautions = coerce_items(data.get("precautions"))

        logger.info(
            "normalize rejection model_reasons=%d model_precautions=%d",
            len(model_reasons), len(model_precautions),
        )

        reasons = model_reasons or list(self.backfill.rejection_reasons)
        precautions = model_precautions or list(self.backfill.rejection_precautions)

        return SkinAnalysis(
            is_skin=False,
            is_healthy=False,
            disease_name=_as_text(data.get("diseaseName")) or self.backfill.no_skin_name,
            description=_as_text(data.get("description")) or self.backfill.no_skin_description,
            symptoms=coerce_items(data.get("symptoms")),
            reasons=reasons,
            precautions=precautions,
            prevention=[],
            treatments=[],
            medicines=[],
            healing_period=_as_text(data.get("healingPeriod")),
        )

    def _accepted(self, data: Dict[str, Any]) -> SkinAnalysis:
        sections: Dict[str, List[GuidanceItem]] = {}
        backfilled: List[str] = []
        for name in GUIDANCE_FIELDS:
            items = coerce_items(data.get(name))
            if not items:
                backfilled.append(name)
            sections[name] = self.backfill.fill(name, items)

        if backfilled:
            logger.info("normalize backfilled sections=%s", ",".join(backfilled))

        try:
            return SkinAnalysis(
                is_skin=True,
                is_healthy=_as_bool(data.get("isHealthy")),
                disease_name=_as_text(data.get("diseaseName")),
                description=_as_text(data.get("description")),
                medicines=coerce_strings(data.get("medicines")),
                healing_period=_as_text(data.get("healingPeriod")),
                **sections,
            )
        except ValidationError as e:
            raise MalformedResponseError(f"Model output does not match schema: {e}") from e

    def normalize_comparison(self, raw_reply: Any) -> ComparisonResult:
        data = parse_json_object(raw_reply)

        raw_verdict = str(data.get("verdict") or "").strip().upper()
        try:
            verdict = Verdict(raw_verdict)
        except ValueError:
            logger.warning("normalize_comparison unknown_verdict=%r", raw_verdict)
            verdict = Verdict.UNCLEAR

        changes = coerce_strings(data.get("changes")) or list(self.backfill.comparison_changes)
        recommendation = _as_text(data.get("recommendation")) or self.backfill.comparison_recommendation

        return ComparisonResult(verdict=verdict, changes=changes, recommendation=recommendation)
