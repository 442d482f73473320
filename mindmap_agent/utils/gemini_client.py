"""Async REST client for the Gemini ``v1beta`` API.

Only the two calls the orchestrator needs are wrapped: ``generateContent`` and
the model listing. The client does not retry and does not interpret the
response envelope; both are the orchestrator's job.
"""

import json
import traceback
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from api.config.settings import DEFAULT_GEMINI_API_BASE
from api.utils.debug import print__generation_debug
from mindmap_agent.utils.errors import GenerationApiError


@dataclass
class GeminiResponse:
    """Status and decoded body of one ``generateContent`` call.

    ``payload`` is the parsed JSON body, or the raw text when the body is not
    JSON so that text harvesting still has something to work with.
    """

    status: int
    payload: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class GeminiClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Args:
        api_key: Credential sent as the ``key`` query parameter.
        api_base: Root URL, without a trailing slash.
        timeout: Seconds per request; None disables timeouts.
        transport: Optional httpx transport, used by tests to fake the service.
    """

    def __init__(
        self,
        api_key: str,
        api_base: str = DEFAULT_GEMINI_API_BASE,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def generate_url(self, model: str) -> str:
        return f"{self.api_base}/{model}:generateContent"

    def models_url(self) -> str:
        return f"{self.api_base}/models"

    async def generate_content(self, model: str, body: Dict[str, Any]) -> GeminiResponse:
        """POST ``body`` to the model's ``generateContent`` endpoint.

        Non-success statuses are returned, not raised, so the caller can tell
        a 404 apart from other failures.

        Raises:
            GenerationApiError: with ``status=None`` when no HTTP answer arrived.
        """
        url = self.generate_url(model)
        print__generation_debug(f"📡 GEMINI: POST {url}")
        try:
            async with self._client() as client:
                response = await client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            print__generation_debug(f"❌ GEMINI: transport failure for {model}: {exc}")
            print__generation_debug(traceback.format_exc())
            raise GenerationApiError(None, f"{type(exc).__name__}: {exc}", model=model) from exc

        text = response.text
        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError):
            payload = text
        print__generation_debug(f"📥 GEMINI: {model} answered {response.status_code}")
        return GeminiResponse(status=response.status_code, payload=payload, text=text)

    async def list_models(self) -> List[str]:
        """Names of the models the credential can use; [] on any failure."""
        try:
            async with self._client() as client:
                response = await client.get(self.models_url(), params={"key": self.api_key})
            if response.status_code != 200:
                print__generation_debug(
                    f"⚠️ GEMINI: ListModels answered {response.status_code}"
                )
                return []
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            print__generation_debug(f"⚠️ GEMINI: ListModels failed: {exc}")
            return []

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        names = [
            entry["name"]
            for entry in models
            if isinstance(entry, dict) and isinstance(entry.get("name"), str)
        ]
        print__generation_debug(f"📋 GEMINI: {len(names)} models available")
        return names
