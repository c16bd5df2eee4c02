import asyncio
import base64
import io
import json
from typing import List

import httpx
import pytest
from PIL import Image

from skinscan.analysis.schemas import TimelineEntry, Verdict
from skinscan.analysis.service import AnalysisConfig, AnalysisService
from skinscan.inference.errors import MalformedResponseError


def _make_data_url(w: int = 1600, h: int = 1200) -> str:
    img = Image.new("RGB", (w, h), color=(210, 160, 140))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def _completion(content) -> dict:
    text = content if isinstance(content, str) else json.dumps(content)
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class _Endpoint:
    """Returns scripted responses in order and keeps every request body."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.bodies: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        return self.responses.pop(0)


def _analyze(endpoint: _Endpoint, image: str, api_key: str = "k", **config):
    cfg = AnalysisConfig(api_key=api_key, models=("m1", "m2"), **config)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
            service = AnalysisService(cfg, http_client=client)
            return await service.analyze_image(image)

    return asyncio.run(go())


def _compare(endpoint: _Endpoint, a: str, b: str, api_key: str = "k"):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
            service = AnalysisService(AnalysisConfig(api_key=api_key, models=("m1",)), http_client=client)
            return await service.compare_progression(a, b)

    return asyncio.run(go())


# -----------------------------
# analyze_image
# -----------------------------

def test_missing_credential_returns_error_record_without_network():
    endpoint = _Endpoint()

    out = _analyze(endpoint, _make_data_url(), api_key="")

    assert out.is_skin is False
    assert out.disease_name == "Error"
    assert out.description == "API key missing"
    assert endpoint.bodies == []


def test_successful_analysis_is_normalized_and_backfilled():
    reply = {"isSkin": True, "isHealthy": True, "diseaseName": "Healthy Skin", "treatments": []}
    endpoint = _Endpoint(httpx.Response(200, json=_completion(reply)))

    out = _analyze(endpoint, _make_data_url())

    assert out.is_skin is True
    assert out.disease_name == "Healthy Skin"
    assert len(out.treatments) > 0
    assert len(out.precautions) > 0


def test_request_carries_compressed_image_and_json_mode():
    endpoint = _Endpoint(httpx.Response(200, json=_completion({"isSkin": False})))

    _analyze(endpoint, _make_data_url(2048, 1024), temperature=0.1)

    body = endpoint.bodies[0]
    assert body["model"] == "m1"
    assert body["temperature"] == 0.1
    assert body["response_format"] == {"type": "json_object"}

    text_part, image_part = body["messages"][0]["content"]
    assert text_part["type"] == "text"
    url = image_part["image_url"]["url"]
    assert url.startswith("data:image/jpeg;base64,")
    sent = Image.open(io.BytesIO(base64.b64decode(url.split(",", 1)[1])))
    assert sent.size == (1024, 512)


def test_undecodable_image_is_sent_as_is():
    endpoint = _Endpoint(httpx.Response(200, json=_completion({"isSkin": False})))

    _analyze(endpoint, "definitely-not-an-image")

    url = endpoint.bodies[0]["messages"][0]["content"][1]["image_url"]["url"]
    assert url == "definitely-not-an-image"


def test_rejection_always_explains_itself():
    endpoint = _Endpoint(httpx.Response(200, json=_completion({"isSkin": False, "isHealthy": True})))

    out = _analyze(endpoint, _make_data_url())

    assert out.is_skin is False
    assert out.is_healthy is False
    assert len(out.reasons) > 0
    assert len(out.precautions) > 0


def test_cascade_falls_back_to_second_model():
    endpoint = _Endpoint(
        httpx.Response(404, text="model decommissioned"),
        httpx.Response(200, json=_completion({"isSkin": True, "diseaseName": "Eczema"})),
    )

    out = _analyze(endpoint, _make_data_url())

    assert [b["model"] for b in endpoint.bodies] == ["m1", "m2"]
    assert out.disease_name == "Eczema"


@pytest.mark.parametrize(
    "responses, expected_calls",
    [
        ([httpx.Response(401, text="invalid key")], 1),
        ([httpx.Response(500, text="boom")], 1),
        ([httpx.Response(404, text="gone"), httpx.Response(400, text="bad")], 2),
        ([httpx.Response(200, json=_completion("this is not json"))], 1),
        ([httpx.Response(200, json={"unexpected": "envelope"})], 1),
    ],
)
def test_failures_become_fallback_record(responses, expected_calls):
    endpoint = _Endpoint(*responses)

    out = _analyze(endpoint, _make_data_url())

    assert len(endpoint.bodies) == expected_calls
    assert out.is_skin is False
    assert out.is_healthy is False
    assert out.disease_name == "Analysis Error"
    assert out.description
    assert out.healing_period == "Unknown"
    assert out.treatments == [] and out.medicines == [] and out.symptoms == []


def test_network_failure_on_every_model_becomes_fallback_record():
    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(offline)) as client:
            service = AnalysisService(AnalysisConfig(api_key="k", models=("m1", "m2")), http_client=client)
            return await service.analyze_image(_make_data_url())

    out = asyncio.run(go())

    assert out.disease_name == "Analysis Error"
    assert "offline" in out.description


def test_unexpected_exception_never_escapes():
    class _ExplodingNormalizer:
        def normalize(self, raw):
            raise RuntimeError("kaboom")

    endpoint = _Endpoint(httpx.Response(200, json=_completion({"isSkin": True})))

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
            service = AnalysisService(
                AnalysisConfig(api_key="k", models=("m1",)),
                http_client=client,
                normalizer=_ExplodingNormalizer(),
            )
            return await service.analyze_image(_make_data_url())

    out = asyncio.run(go())

    assert out.disease_name == "Analysis Error"
    assert out.description == "kaboom"


def test_empty_model_list_is_a_construction_error():
    with pytest.raises(ValueError):
        AnalysisService(AnalysisConfig(api_key="k", models=()))


# -----------------------------
# compare_progression
# -----------------------------

def test_comparison_sends_both_images_in_order():
    reply = {"verdict": "WORSENED", "changes": ["Lesion grew"], "recommendation": "See a dermatologist."}
    endpoint = _Endpoint(httpx.Response(200, json=_completion(reply)))

    out = _compare(endpoint, _make_data_url(100, 100), _make_data_url(200, 100))

    assert out.verdict is Verdict.WORSENED
    assert out.changes == ["Lesion grew"]

    parts = endpoint.bodies[0]["messages"][0]["content"]
    assert [p["type"] for p in parts] == ["text", "image_url", "image_url"]
    sizes = [
        Image.open(io.BytesIO(base64.b64decode(p["image_url"]["url"].split(",", 1)[1]))).size
        for p in parts[1:]
    ]
    assert sizes == [(100, 100), (200, 100)]


def test_comparison_mismatch_still_has_changes_and_recommendation():
    endpoint = _Endpoint(httpx.Response(200, json=_completion({"verdict": "MISMATCH"})))

    out = _compare(endpoint, _make_data_url(50, 50), _make_data_url(50, 50))

    assert out.verdict is Verdict.MISMATCH
    assert out.changes
    assert out.recommendation


def test_comparison_without_credential_makes_no_call():
    endpoint = _Endpoint()

    out = _compare(endpoint, "a", "b", api_key=" ")

    assert endpoint.bodies == []
    assert out.verdict is Verdict.UNCLEAR
    assert out.changes == ["API key missing"]
    assert out.recommendation


def test_comparison_failure_becomes_unclear_record():
    endpoint = _Endpoint(httpx.Response(403, text="forbidden"))

    out = _compare(endpoint, _make_data_url(50, 50), _make_data_url(50, 50))

    assert out.verdict is Verdict.UNCLEAR
    assert out.changes and out.recommendation


def test_compare_entries_reads_image_data():
    reply = {"verdict": "STABLE", "changes": ["No visible change"], "recommendation": "Keep monitoring."}
    endpoint = _Endpoint(httpx.Response(200, json=_completion(reply)))
    earlier = TimelineEntry(id="1", timestamp=1, image_data=_make_data_url(80, 40), label="Week 1")
    later = TimelineEntry(id="2", timestamp=2, image_data=_make_data_url(40, 80), label="Week 2")

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
            service = AnalysisService(AnalysisConfig(api_key="k", models=("m1",)), http_client=client)
            return await service.compare_entries(earlier, later)

    out = asyncio.run(go())

    assert out.verdict is Verdict.STABLE
    assert len(endpoint.bodies[0]["messages"][0]["content"]) == 3


def test_malformed_response_error_kind():
    assert MalformedResponseError("x").kind == "malformed_response"
