from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

import safewalk.advice as advice_module
from safewalk.advice import AdviceClient, build_prompt, fallback_advice, parse_advice_payload


def _gemini_body(payload: Any) -> dict[str, Any]:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(handler, *, api_key: str = "test-key", max_retries: int = 3) -> AdviceClient:  # noqa: ANN001
    return AdviceClient(
        api_key=api_key,
        base_url="https://advice.test/v1beta/",
        model="gemini-test",
        timeout_s=2.0,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def _ask(client: AdviceClient):  # noqa: ANN202
    async def _run():  # noqa: ANN202
        try:
            return await client.get_safety_advice("Parque Caldas", "Hospital San José", 3.456)
        finally:
            await client.aclose()

    return asyncio.run(_run())


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    sleeps: list[float] = []

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    monkeypatch.setattr(advice_module.asyncio, "sleep", _sleep)
    return sleeps


def test_prompt_mentions_route_and_rounded_score() -> None:
    prompt = build_prompt("Parque Caldas", "Hospital San José", 3.456)
    assert "Parque Caldas" in prompt
    assert "Hospital San José" in prompt
    assert "3.5" in prompt


def test_successful_generation() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_gemini_body({"summary": "Ruta tranquila.", "tips": ["a", "b", "c"]}))

    advice = _ask(_client(handler))

    assert advice.source == "model"
    assert advice.summary == "Ruta tranquila."
    assert advice.tips == ["a", "b", "c"]
    assert len(seen) == 1
    assert seen[0].url.path == "/v1beta/models/gemini-test:generateContent"
    assert seen[0].headers["x-goog-api-key"] == "test-key"
    body = json.loads(seen[0].content)
    assert "Parque Caldas" in body["contents"][0]["parts"][0]["text"]


def test_retries_transient_status_then_succeeds(_no_backoff: list[float]) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, json={"error": "busy"})
        return httpx.Response(200, json=_gemini_body({"summary": "ok", "tips": ["x"]}))

    advice = _ask(_client(handler))

    assert advice.source == "model"
    assert calls["n"] == 3
    assert _no_backoff == [0.25, 0.5]


def test_exhausted_retries_fall_back() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("down", request=request)

    advice = _ask(_client(handler, max_retries=2))

    assert advice == fallback_advice()
    assert calls["n"] == 2


def test_client_error_is_not_retried() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(400, json={"error": "bad request"})

    advice = _ask(_client(handler))

    assert advice.source == "fallback"
    assert calls["n"] == 1


def test_non_json_model_text_falls_back() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_gemini_body("Camina con cuidado"))

    assert _ask(_client(handler)).source == "fallback"


def test_missing_key_skips_the_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected without a key")

    client = _client(handler, api_key="  ")
    assert not client.enabled
    advice = _ask(client)

    assert advice.source == "fallback"
    assert len(advice.tips) == 3


def test_parse_rejects_incomplete_payloads() -> None:
    with pytest.raises(advice_module.AdviceError):
        parse_advice_payload({"candidates": []})
    with pytest.raises(advice_module.AdviceError):
        parse_advice_payload(_gemini_body({"summary": "x", "tips": "not-a-list"}))


def test_fallback_is_a_fresh_copy() -> None:
    first = fallback_advice()
    first.tips.append("mutated")
    assert "mutated" not in fallback_advice().tips
