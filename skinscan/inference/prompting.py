from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from skinscan.inference.errors import MalformedResponseError


POINT_HINT = {"title": "short label", "details": "one or two sentence explanation"}

ANALYSIS_SCHEMA_HINT = {
    "isSkin": "boolean",
    "isHealthy": "boolean",
    "diseaseName": "string",
    "description": "string",
    "symptoms": [POINT_HINT],
    "reasons": [POINT_HINT],
    "treatments": [POINT_HINT],
    "medicines": ["string"],
    "healingPeriod": "string",
    "precautions": [POINT_HINT],
    "prevention": [POINT_HINT],
}

COMPARISON_SCHEMA_HINT = {
    "verdict": "IMPROVED | WORSENED | STABLE | UNCLEAR | MISMATCH",
    "changes": ["string"],
    "recommendation": "string",
}

ANALYSIS_INSTRUCTION = (
    "You are a professional dermatologist.\n\n"
    "STEP 0: IS THIS HUMAN SKIN?\n"
    "- If the image shows a wall, fabric, object, blurred mess, or a face with no clear skin details, "
    'return "isSkin": false and explain why in "reasons" and what to do in "precautions".\n'
    "- If it is clearly human skin, proceed to Step 1.\n\n"
    "STEP 1: Check for REAL abnormalities (rashes, lesions, severe acne, infections).\n"
    "STEP 2: Ignore normal features like pores, slight texture, goosebumps, or small harmless moles.\n"
    "STEP 3: If the skin looks generally normal, you MUST classify it as "
    '"isHealthy": true and "diseaseName": "Healthy Skin".\n\n'
    "Return ONLY valid JSON. No markdown, no extra text.\n"
    f"Structure: {json.dumps(ANALYSIS_SCHEMA_HINT)}"
)

COMPARISON_INSTRUCTION = (
    "You are a professional dermatologist comparing two photos of the same skin area. "
    "The FIRST image is the earlier baseline, the SECOND image is the later follow-up.\n\n"
    "STEP 0: If the two images do not show the same body region or condition, or either image "
    'has no analyzable skin, return "verdict": "MISMATCH".\n'
    "STEP 1: Otherwise classify the change as IMPROVED, WORSENED, STABLE or UNCLEAR.\n"
    'STEP 2: List the concrete visual differences in "changes" (at least one entry) and give '
    'a short "recommendation".\n\n'
    "Return ONLY valid JSON. No markdown, no extra text.\n"
    f"Structure: {json.dumps(COMPARISON_SCHEMA_HINT)}"
)


def build_chat_payload(
    instruction: str,
    image_urls: Sequence[str],
    *,
    temperature: float = 0.1,
) -> Dict[str, Any]:
    """
    Chat-completions request body with one user message holding the
    instruction followed by every image. `model` is filled in per attempt.
    """
    content = [{"type": "text", "text": instruction}]
    content.extend({"type": "image_url", "image_url": {"url": url}} for url in image_urls)

    return {
        "messages": [{"role": "user", "content": content}],
        "temperature": temperature,
        "response_format": {"type": "json_object"},
    }


def extract_message_content(envelope: Dict[str, Any]) -> str:
    """Return choices[0].message.content from a chat-completion envelope."""
    try:
        content = envelope["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError(f"Unexpected completion envelope: missing {e}") from e

    if not isinstance(content, str):
        raise MalformedResponseError("Completion message content is not text")
    return content
