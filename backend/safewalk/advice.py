from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Final

import httpx
from pydantic import ValidationError

from .logging_utils import log_event
from .models import SafetyAdvice


class AdviceError(RuntimeError):
    pass


class AdviceRetryableError(AdviceError):
    """An advice API error that is likely transient and safe to retry."""

    pass


_RETRYABLE_STATUS: Final[set[int]] = {408, 425, 429, 500, 502, 503, 504}

FALLBACK_ADVICE: Final[SafetyAdvice] = SafetyAdvice(
    summary="Ruta calculada con precaución.",
    tips=[
        "Mantén tus pertenencias guardadas.",
        "Camina por zonas iluminadas.",
        "Evita usar el celular visiblemente en esquinas solas.",
    ],
    source="fallback",
)

_RESPONSE_SCHEMA: Final[dict[str, Any]] = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "tips": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["summary", "tips"],
}


def build_prompt(origin: str, destination: str, safety_score: float) -> str:
    return (
        "Actúa como un experto en seguridad urbana para estudiantes en Popayán, Colombia.\n"
        f"Un estudiante va a caminar desde {origin} hasta {destination}.\n"
        f"El nivel de riesgo calculado de la ruta es {float(safety_score):.1f} "
        "(1 es muy seguro, 10 es muy peligroso).\n\n"
        "Provee un resumen corto y 3 consejos puntuales de seguridad.\n"
        "Responde estrictamente en formato JSON."
    )


def fallback_advice() -> SafetyAdvice:
    return FALLBACK_ADVICE.model_copy(deep=True)


def parse_advice_payload(data: Any) -> SafetyAdvice:
    """Extract `{summary, tips}` from a generateContent response body."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise AdviceError("advice response missing candidate text") from e
    if not isinstance(text, str) or not text.strip():
        raise AdviceError("advice response text is empty")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise AdviceError("advice response text is not JSON") from e
    try:
        return SafetyAdvice(summary=payload.get("summary", ""), tips=payload.get("tips", []), source="model")
    except (AttributeError, ValidationError) as e:
        raise AdviceError("advice response does not match {summary, tips}") from e


class AdviceClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        timeout_s: float = 8.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_retries = max(1, int(max_retries))
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(float(timeout_s), connect=min(5.0, float(timeout_s))),
            headers={"accept": "application/json"},
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _generate(self, prompt: str) -> SafetyAdvice:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": _RESPONSE_SCHEMA,
            },
        }
        last_err: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                resp = await self._client.post(url, json=body, headers={"x-goog-api-key": self.api_key})

                if resp.status_code in _RETRYABLE_STATUS:
                    raise AdviceRetryableError(f"advice API HTTP {resp.status_code}")
                if resp.status_code >= 400:
                    raise AdviceError(f"advice API HTTP {resp.status_code}")

                return parse_advice_payload(resp.json())

            except AdviceRetryableError as e:
                last_err = e
            except (httpx.TimeoutException, httpx.NetworkError, httpx.TransportError) as e:
                last_err = e
            except ValueError as e:
                # Body was not JSON at all.
                raise AdviceError("advice response body is not JSON") from e

            if attempt < self.max_retries - 1:
                await asyncio.sleep(min(0.25 * (2**attempt), 2.0))

        detail = f"{type(last_err).__name__}: {last_err}" if last_err is not None else "unknown error"
        raise AdviceError(f"advice request failed after {self.max_retries} attempts: {detail}")

    async def get_safety_advice(self, origin: str, destination: str, safety_score: float) -> SafetyAdvice:
        """Return advice for a walk; never raises, falls back to static tips."""
        if not self.enabled:
            log_event("advice_fallback", level=logging.WARNING, reason="missing_api_key")
            return fallback_advice()
        try:
            advice = await self._generate(build_prompt(origin, destination, safety_score))
        except AdviceError as e:
            log_event("advice_fallback", level=logging.WARNING, reason="request_failed", detail=str(e))
            return fallback_advice()
        log_event("advice_generated", model=self.model, tip_count=len(advice.tips))
        return advice
