from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Sequence

import httpx

from skinscan.inference.errors import (
    CredentialError,
    InferenceError,
    MalformedResponseError,
    ModelUnavailableError,
    TransportFailure,
    UpstreamError,
)
from skinscan.observability.metrics import CASCADE_ATTEMPTS_TOTAL, CASCADE_ATTEMPT_SECONDS


logger = logging.getLogger(__name__)

CREDENTIAL_STATUSES = frozenset({401, 403})
SKIPPABLE_STATUSES = frozenset({400, 404})

# keep logged upstream error bodies short
_BODY_SNIPPET_CHARS = 300


# -----------------------------
# Per-attempt outcome
# -----------------------------

Outcome = Literal["success", "skippable", "fatal"]


@dataclass(frozen=True)
class AttemptOutcome:
    """
    Tagged result of a single model attempt.

    Exactly one of `value` (success) or `error` (skippable/fatal) is set.
    """
    outcome: Outcome
    model: str
    value: Optional[Dict[str, Any]] = None
    error: Optional[InferenceError] = None

    @classmethod
    def success(cls, model: str, value: Dict[str, Any]) -> "AttemptOutcome":
        return cls(outcome="success", model=model, value=value)

    @classmethod
    def skippable(cls, model: str, error: InferenceError) -> "AttemptOutcome":
        return cls(outcome="skippable", model=model, error=error)

    @classmethod
    def fatal(cls, model: str, error: InferenceError) -> "AttemptOutcome":
        return cls(outcome="fatal", model=model, error=error)


def classify_response(model: str, response: httpx.Response) -> AttemptOutcome:
    """Map a transport response onto success / skippable / fatal by status code."""
    status = response.status_code

    if response.is_success:
        try:
            body = response.json()
        except ValueError as e:
            return AttemptOutcome.skippable(
                model,
                MalformedResponseError(f"Response body is not JSON: {e}", status_code=status, model=model),
            )
        if not isinstance(body, dict):
            return AttemptOutcome.skippable(
                model,
                MalformedResponseError("Response body is not a JSON object", status_code=status, model=model),
            )
        return AttemptOutcome.success(model, body)

    snippet = (response.text or "")[:_BODY_SNIPPET_CHARS]

    if status in CREDENTIAL_STATUSES:
        return AttemptOutcome.fatal(
            model,
            CredentialError(f"API key restricted or invalid ({status})", status_code=status, model=model),
        )

    if status in SKIPPABLE_STATUSES:
        return AttemptOutcome.skippable(
            model,
            ModelUnavailableError(f"Model {model} unavailable ({status}): {snippet}", status_code=status, model=model),
        )

    return AttemptOutcome.fatal(
        model,
        UpstreamError(f"Inference service error ({status}): {snippet}", status_code=status, model=model),
    )


# -----------------------------
# Cascade client
# -----------------------------

class ModelCascadeClient:
    """
    Try an ordered list of models against one chat-completions endpoint.

    - Strictly sequential: a model is only contacted after the previous one resolved
    - 401/403 abort the cascade; 400/404, unreadable 2xx bodies and network
      failures move to the next model
    - Any other non-success status aborts the cascade
    - Each model is attempted exactly once per call
    """

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: str,
        timeout_s: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _attempt_one(
        self,
        client: httpx.AsyncClient,
        payload: Dict[str, Any],
        model: str,
    ) -> AttemptOutcome:
        body = {**payload, "model": model}
        try:
            response = await client.post(self._endpoint, json=body, headers=self._headers())
        except httpx.TransportError as e:
            return AttemptOutcome.skippable(
                model,
                TransportFailure(f"{type(e).__name__}: {e}", model=model),
            )
        return classify_response(model, response)

    async def attempt(self, payload: Dict[str, Any], model_ids: Sequence[str]) -> Dict[str, Any]:
        """
        Return the parsed JSON body of the first model that succeeds.

        Raises the most recently captured InferenceError when the cascade
        is aborted or exhausted.
        """
        if not model_ids:
            raise ValueError("model_ids must not be empty")

        if self._client is not None:
            return await self._run(self._client, payload, model_ids)

        async with httpx.AsyncClient(timeout=self._timeout_s) as client:
            return await self._run(client, payload, model_ids)

    async def _run(
        self,
        client: httpx.AsyncClient,
        payload: Dict[str, Any],
        model_ids: Sequence[str],
    ) -> Dict[str, Any]:
        last_err: Optional[InferenceError] = None

        for position, model in enumerate(model_ids, start=1):
            logger.info("cascade_attempt model=%s position=%d/%d", model, position, len(model_ids))

            t0 = time.perf_counter()
            result = await self._attempt_one(client, payload, model)
            CASCADE_ATTEMPT_SECONDS.labels(model=model).observe(time.perf_counter() - t0)
            CASCADE_ATTEMPTS_TOTAL.labels(model=model, outcome=result.outcome).inc()

            if result.outcome == "success":
                assert result.value is not None
                logger.info("cascade_ok model=%s attempts=%d", model, position)
                return result.value

            assert result.error is not None
            last_err = result.error

            if result.outcome == "fatal":
                logger.error(
                    "cascade_abort model=%s kind=%s status=%s error=%s",
                    model, last_err.kind, last_err.status_code, last_err,
                )
                raise last_err

            logger.warning(
                "cascade_skip model=%s kind=%s status=%s error=%s",
                model, last_err.kind, last_err.status_code, last_err,
            )

        # Exhausted every candidate
        assert last_err is not None
        logger.error("cascade_exhausted models=%d last_kind=%s", len(model_ids), last_err.kind)
        raise last_err
