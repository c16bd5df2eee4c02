from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import httpx

from skinscan.analysis.backfill import BackfillPolicy
from skinscan.analysis.normalizer import ResultNormalizer
from skinscan.analysis.schemas import ComparisonResult, SkinAnalysis, TimelineEntry, Verdict
from skinscan.config import DEFAULT_VISION_MODELS, Settings
from skinscan.inference.cascade import ModelCascadeClient
from skinscan.inference.errors import ConfigurationError, InferenceError
from skinscan.inference.prompting import (
    ANALYSIS_INSTRUCTION,
    COMPARISON_INSTRUCTION,
    build_chat_payload,
    extract_message_content,
)
from skinscan.observability.metrics import ANALYSIS_REQUESTS_TOTAL, ANALYSIS_SECONDS
from skinscan.preprocessing.image_compress import compress_image


logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API key missing"


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Everything the service needs, fixed at construction.
    Model order is priority order for the cascade.
    """
    api_key: Optional[str]
    endpoint: str = "https://api.groq.com/openai/v1/chat/completions"
    models: Tuple[str, ...] = tuple(DEFAULT_VISION_MODELS)
    temperature: float = 0.1
    timeout_s: float = 60.0

    image_max_width: int = 1024
    image_quality: float = 0.7

    analysis_instruction: str = ANALYSIS_INSTRUCTION
    comparison_instruction: str = COMPARISON_INSTRUCTION
    backfill: BackfillPolicy = field(default_factory=BackfillPolicy)

    @classmethod
    def from_settings(cls, s: Settings) -> "AnalysisConfig":
        return cls(
            api_key=s.groq_api_key,
            endpoint=s.inference_url,
            models=tuple(s.vision_models),
            temperature=s.temperature,
            timeout_s=s.request_timeout_seconds,
            image_max_width=s.image_max_width,
            image_quality=s.image_quality,
        )

    def require_credential(self) -> None:
        if not (self.api_key or "").strip():
            raise ConfigurationError(MISSING_KEY_MESSAGE)


# -----------------------------
# Safe fallback records
# -----------------------------

def error_analysis(message: str, *, disease_name: str = "Analysis Error") -> SkinAnalysis:
    """Well-formed record returned in place of any internal failure."""
    return SkinAnalysis(
        is_skin=False,
        is_healthy=False,
        disease_name=disease_name,
        description=message,
        healing_period="Unknown",
    )


def error_comparison(message: str) -> ComparisonResult:
    return ComparisonResult(
        verdict=Verdict.UNCLEAR,
        changes=[message],
        recommendation="The comparison could not be completed. Please try again with two clear photos.",
    )


def _describe(err: Exception) -> str:
    text = str(err).strip()
    return text or type(err).__name__


# -----------------------------
# Service
# -----------------------------

class AnalysisService:
    """
    Public entry point: preprocess -> model cascade -> normalize.

    Every operation resolves to a record and never raises. This is the only
    place where internal errors are turned into user-visible data.
    """

    def __init__(
        self,
        config: AnalysisConfig,
        *,
        cascade: Optional[ModelCascadeClient] = None,
        normalizer: Optional[ResultNormalizer] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not config.models:
            raise ValueError("AnalysisConfig.models must not be empty")

        self.config = config
        self._cascade = cascade or ModelCascadeClient(
            endpoint=config.endpoint,
            api_key=config.api_key or "",
            timeout_s=config.timeout_s,
            client=http_client,
        )
        self._normalizer = normalizer or ResultNormalizer(config.backfill)

    async def _prepare(self, image: str) -> str:
        return await compress_image(
            image,
            max_width=self.config.image_max_width,
            quality=self.config.image_quality,
        )

    async def _complete(self, instruction: str, images: Sequence[str]) -> str:
        payload = build_chat_payload(instruction, images, temperature=self.config.temperature)
        envelope = await self._cascade.attempt(payload, self.config.models)
        return extract_message_content(envelope)

    async def analyze_image(self, raw_image: str) -> SkinAnalysis:
        op = "analyze_image"

        try:
            self.config.require_credential()
        except ConfigurationError as e:
            logger.error("%s skipped reason=missing_credential", op)
            ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result=e.kind).inc()
            return error_analysis(_describe(e), disease_name="Error")

        t0 = time.perf_counter()
        try:
            image = await self._prepare(raw_image)
            content = await self._complete(self.config.analysis_instruction, [image])
            result = self._normalizer.normalize(content)
        except InferenceError as e:
            ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result=e.kind).inc()
            logger.warning("%s failed kind=%s status=%s error=%s", op, e.kind, e.status_code, e)
            return error_analysis(_describe(e))
        except Exception as e:
            ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result="failed").inc()
            logger.exception("%s failed unexpectedly", op)
            return error_analysis(_describe(e))
        finally:
            ANALYSIS_SECONDS.labels(operation=op).observe(time.perf_counter() - t0)

        ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result="ok").inc()
        logger.info(
            "%s ok is_skin=%s is_healthy=%s disease=%s",
            op, result.is_skin, result.is_healthy, result.disease_name,
        )
        return result

    async def compare_progression(self, image_a: str, image_b: str) -> ComparisonResult:
        op = "compare_progression"

        try:
            self.config.require_credential()
        except ConfigurationError as e:
            logger.error("%s skipped reason=missing_credential", op)
            ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result=e.kind).inc()
            return error_comparison(_describe(e))

        t0 = time.perf_counter()
        try:
            # images are preprocessed one after the other
            first = await self._prepare(image_a)
            second = await self._prepare(image_b)
            content = await self._complete(self.config.comparison_instruction, [first, second])
            result = self._normalizer.normalize_comparison(content)
        except InferenceError as e:
            ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result=e.kind).inc()
            logger.warning("%s failed kind=%s status=%s error=%s", op, e.kind, e.status_code, e)
            return error_comparison(_describe(e))
        except Exception as e:
            ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result="failed").inc()
            logger.exception("%s failed unexpectedly", op)
            return error_comparison(_describe(e))
        finally:
            ANALYSIS_SECONDS.labels(operation=op).observe(time.perf_counter() - t0)

        ANALYSIS_REQUESTS_TOTAL.labels(operation=op, result="ok").inc()
        logger.info("%s ok verdict=%s changes=%d", op, result.verdict.value, len(result.changes))
        return result

    async def compare_entries(self, earlier: TimelineEntry, later: TimelineEntry) -> ComparisonResult:
        return await self.compare_progression(earlier.image_data, later.image_data)
