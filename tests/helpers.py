"""Test helpers and utilities for the test suite."""

import base64
import json
import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

TEST_API_BASE = "https://gemini.test/v1beta"
TEST_API_KEY = "test-key"
PAGE_URL = "https://chat.example.com/c/abc123"

VALID_FLAT_MAP = {
    "titulo_central": "Modelos de lenguaje",
    "conceptos_clave": [
        "entrenamiento",
        "corpus de texto",
        "tokens",
        "ajuste fino",
        "evaluación",
    ],
    "resumen_ejecutivo": "Cómo se entrenan y evalúan los modelos de lenguaje.",
}

VALID_GRAPH_MAP = {
    "titulo_central": "Arquitectura",
    "nodos": [
        {"id": "n1", "titulo": "API", "descripcion": "Capa HTTP", "source_ids": ["m1"]},
        {"id": "n2", "titulo": "Store", "descripcion": "Persistencia"},
    ],
    "relaciones": [{"desde": "n1", "hacia": "n2", "tipo": "usa"}],
}


class BaseTestResults:
    """Base class to track and analyze endpoint test results."""

    def __init__(self, required_endpoints: set = None):
        self.results: List[Dict[str, Any]] = []
        self.start_time = None
        self.end_time = None
        self.errors: List[Dict[str, Any]] = []
        self.required_endpoints = required_endpoints or set()

    def add_result(
        self,
        test_id: str,
        endpoint: str,
        description: str,
        response_data: Dict,
        status_code: int,
        expected_status: int = 200,
    ):
        """Add a test result."""
        result = {
            "test_id": test_id,
            "endpoint": endpoint,
            "description": description,
            "response_data": response_data,
            "status_code": status_code,
            "timestamp": datetime.now().isoformat(),
            "success": status_code == expected_status,
        }
        self.results.append(result)
        marker = "✅" if result["success"] else "❌"
        print(f"{marker} {test_id} {endpoint}: {description} -> {status_code}")

    def add_error(self, test_id: str, endpoint: str, description: str, error: Exception):
        """Add an error result."""
        self.errors.append(
            {
                "test_id": test_id,
                "endpoint": endpoint,
                "description": description,
                "error": str(error),
                "error_type": type(error).__name__,
                "timestamp": datetime.now().isoformat(),
            }
        )
        print(f"❌ Test {test_id} failed: {str(error)}")

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of test results."""
        total_requests = len(self.results) + len(self.errors)
        successful_requests = len([r for r in self.results if r["success"]])
        tested_endpoints = set(r["endpoint"] for r in self.results if r["success"])
        return {
            "total_requests": total_requests,
            "successful_requests": successful_requests,
            "failed_requests": total_requests - successful_requests,
            "errors": self.errors,
            "all_endpoints_tested": tested_endpoints.issuperset(self.required_endpoints),
            "tested_endpoints": tested_endpoints,
            "missing_endpoints": self.required_endpoints - tested_endpoints,
        }


# ==============================================================================
# GEMINI RESPONSE BUILDERS
# ==============================================================================
def text_envelope(text: str) -> Dict[str, Any]:
    """generateContent body with ``text`` in the conventional location."""
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def parts_envelope(parts: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"candidates": [{"content": {"parts": parts, "role": "model"}}]}


def inline_json_part(value: Any) -> Dict[str, Any]:
    data = base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")
    return {"inlineData": {"mimeType": "application/json", "data": data}}


def function_call_part(args: Dict[str, Any], name: str = "emit_mind_map") -> Dict[str, Any]:
    return {"functionCall": {"name": name, "args": args}}


# ==============================================================================
# FAKE GEMINI SERVICE
# ==============================================================================
class FakeGemini:
    """In-process stand-in for the Gemini REST API.

    ``responder(model, body, call_index)`` returns either an ``httpx.Response``
    or a ``(status, payload)`` tuple; payloads that are not strings are sent as
    JSON. Every generateContent call is recorded in ``calls``.
    """

    def __init__(
        self,
        responder: Callable[[str, Dict[str, Any], int], Any],
        models: Optional[List[str]] = None,
    ):
        self.responder = responder
        self.models = list(models or [])
        self.calls: List[Dict[str, Any]] = []
        self.list_calls = 0
        self.transport = httpx.MockTransport(self.handle)

    @property
    def models_called(self) -> List[str]:
        return [call["model"] for call in self.calls]

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path.endswith("/models"):
            self.list_calls += 1
            return httpx.Response(200, json={"models": [{"name": m} for m in self.models]})

        marker = "/v1beta/"
        model = path[path.index(marker) + len(marker) :].split(":generateContent")[0]
        body = json.loads(request.content.decode("utf-8"))
        self.calls.append({"model": model, "body": body, "key": request.url.params.get("key")})

        result = self.responder(model, body, len(self.calls) - 1)
        if isinstance(result, httpx.Response):
            return result
        status, payload = result
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)


def always(status: int, payload: Any) -> Callable[[str, Dict[str, Any], int], Any]:
    return lambda _model, _body, _index: (status, payload)


def sequence(*results) -> Callable[[str, Dict[str, Any], int], Any]:
    """Answer call N with ``results[N]``; the last result repeats."""
    return lambda _model, _body, index: results[min(index, len(results) - 1)]


# ==============================================================================
# FIXTURE BUILDERS
# ==============================================================================
def make_fragment(
    source_id: str,
    page_url: Optional[str] = PAGE_URL,
    text: str = "Los modelos de lenguaje aprenden patrones del texto.",
    title: Optional[str] = None,
    normalized_page: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "source_id": source_id,
        "title": title if title is not None else " ".join(text.split(" ")[:12]),
        "summary": text[:200],
        "key_points": [],
        "actions": [],
        "entities": [],
        "original_text": text,
        "pageUrl": page_url,
        "normalized_page": normalized_page,
        "paragraphIndex": None,
        "created_at": "2024-01-01T00:00:00+00:00",
    }


def make_config(**overrides):
    from mindmap_agent.utils.config import GenerationConfig

    values = {"api_key": TEST_API_KEY, "api_base": TEST_API_BASE}
    values.update(overrides)
    return GenerationConfig(**values)


def clear_generation_env():
    """Drop credential and model variables a developer .env may have set."""
    for name in ("GOOGLE_API_KEY", "GEMINI_MODEL", "GEMINI_API_BASE"):
        os.environ.pop(name, None)
