"""Resilient mind map generation.

``GenerationOrchestrator.generate`` drives the Gemini API through a bounded
sequence of prompt, model and decoding strategies until it yields a mind map
that passes schema validation, or the budget runs out.

Call budget for one run, with the default two outer iterations:

    outer_iterations x 2           main call plus one 404 fallback each
  + forced_invocations x len(seq)  forced-example sub-retries (at most 2)
  + 1                              model listing, cached for the whole run

All bookkeeping lives in a ``GenerationContext`` created per run, so
concurrent runs for different pages never observe each other's state.
"""

import traceback
from typing import Callable, List, Optional, Sequence, Tuple

from api.utils.debug import print__generation_debug
from mindmap_agent.utils.config import GenerationConfig
from mindmap_agent.utils.errors import (
    EmptyResponseError,
    GenerationApiError,
    GenerationError,
    ModelNotFoundError,
    OpaqueResponseError,
    SchemaViolationError,
    UnparsableTextError,
)
from mindmap_agent.utils.gemini_client import GeminiClient, GeminiResponse
from mindmap_agent.utils.page_key import fragment_page_key
from mindmap_agent.utils.prompts import (
    build_base_prompt,
    build_forced_prompt,
    build_request_body,
    build_strict_prompt,
    format_conversation,
)
from mindmap_agent.utils.response_decoder import (
    ResponseDecoder,
    looks_like_opaque_identifier,
    parse_json_strict,
    try_parse_mind_map,
)
from mindmap_agent.utils.state import (
    Fragment,
    GenerationAttempt,
    GenerationContext,
    GenerationOutcome,
)

SKIP_NO_CREDENTIAL = "no_credential"
SKIP_NO_RELEVANT_FRAGMENTS = "no_relevant_fragments"


class GenerationOrchestrator:
    """Two-tier retry around ``generateContent``.

    Args:
        decoder: Response decoder; tests inject one to spy on harvesting.
        client_factory: Builds a client from a ``GenerationConfig``. Defaults
            to ``GeminiClient`` using ``transport`` when given.
        transport: Optional httpx transport passed to the default client.
    """

    def __init__(
        self,
        decoder: Optional[ResponseDecoder] = None,
        client_factory: Optional[Callable[[GenerationConfig], GeminiClient]] = None,
        transport=None,
    ):
        self.decoder = decoder or ResponseDecoder()
        self.transport = transport
        self.client_factory = client_factory or self._default_client

    def _default_client(self, config: GenerationConfig) -> GeminiClient:
        return GeminiClient(
            api_key=config.api_key,
            api_base=config.api_base,
            timeout=config.timeout,
            transport=self.transport,
        )

    # ==========================================================================
    # PUBLIC ENTRY POINT
    # ==========================================================================
    async def generate(
        self,
        page_key: str,
        fragments: Sequence[Fragment],
        config: GenerationConfig,
    ) -> GenerationOutcome:
        """Produce a validated mind map for ``page_key``. Never raises.

        Only fragments whose recomputed page key equals ``page_key`` are sent.
        """
        print__generation_debug(f"🚀 GENERATE: start for page {page_key}")

        if not config.has_credential:
            print__generation_debug("⏭️ GENERATE: no API key configured, skipping")
            return GenerationOutcome.skipped(SKIP_NO_CREDENTIAL)

        relevant = [f for f in fragments if page_key and fragment_page_key(f) == page_key]
        if not relevant:
            print__generation_debug("⏭️ GENERATE: no fragments for this page, skipping")
            return GenerationOutcome.skipped(SKIP_NO_RELEVANT_FRAGMENTS)

        context = GenerationContext(page_key=page_key)
        client = self.client_factory(config)
        try:
            mind_map = await self._run(client, context, relevant, config)
        except GenerationError as exc:
            print__generation_debug(
                f"❌ GENERATE: {exc.error_type} after {context.calls_made} calls: {exc}"
            )
            return GenerationOutcome.failed(exc, context)
        except Exception as exc:
            print__generation_debug(f"💥 GENERATE: unexpected failure: {exc}")
            print__generation_debug(traceback.format_exc())
            error = GenerationError(f"Unexpected generation failure: {type(exc).__name__}: {exc}")
            return GenerationOutcome.failed(error, context)

        print__generation_debug(
            f"✅ GENERATE: valid mind map after {context.calls_made} calls "
            f"(models: {', '.join(context.models_tried)})"
        )
        return GenerationOutcome.succeeded(mind_map, context)

    # ==========================================================================
    # OUTER TIER
    # ==========================================================================
    def _model_for_iteration(self, index: int, config: GenerationConfig) -> str:
        if index > 0 and "flash" in config.model:
            return config.alternate_model
        return config.model

    async def _run(
        self,
        client: GeminiClient,
        context: GenerationContext,
        fragments: List[Fragment],
        config: GenerationConfig,
    ) -> dict:
        base_prompt = build_base_prompt(format_conversation(fragments))

        for index in range(config.outer_iterations):
            is_last = index == config.outer_iterations - 1
            strategy = "baseline" if index == 0 else "strict"
            prompt = base_prompt if index == 0 else build_strict_prompt(base_prompt)
            body = build_request_body(prompt, config.generation_settings())
            model = self._model_for_iteration(index, config)
            print__generation_debug(f"🔁 GENERATE: iteration {index} ({strategy}) on {model}")

            # 1. Call, falling back to a listed model on 404
            response, model = await self._call_with_fallback(
                client, context, index, model, strategy, body, config
            )

            # 2. Structured extraction without free-text harvesting
            structured = self.decoder.extract_structured(response.payload)
            if structured is not None:
                return structured

            # 3. Candidate text
            raw_text = self.decoder.extract_candidate_text(response.payload)
            if not raw_text or not raw_text.strip():
                print__generation_debug(f"⚠️ GENERATE: iteration {index} returned no text")
                if is_last:
                    raise EmptyResponseError(model)
                continue

            # 4. Opaque identifiers get the forced-example sub-retry
            if looks_like_opaque_identifier(raw_text):
                print__generation_debug(
                    f"🕵️ GENERATE: opaque response {raw_text.strip()[:60]!r} from {model}"
                )
                if context.forced_retries_used < config.max_forced_retries:
                    context.forced_retries_used += 1
                    forced = await self._forced_example_retry(
                        client, context, index, model, base_prompt, config
                    )
                    if forced is not None:
                        return forced
                if is_last:
                    raise OpaqueResponseError(raw_text, context.models_tried)
                continue

            # 5. Clean-up parse and validation
            try:
                parsed = parse_json_strict(raw_text)
            except UnparsableTextError as exc:
                print__generation_debug(f"⚠️ GENERATE: iteration {index} unparsable: {exc}")
                if is_last:
                    raise
                continue

            validated = self.decoder.validator(parsed)
            if validated is not None:
                return validated
            print__generation_debug(f"⚠️ GENERATE: iteration {index} failed schema validation")
            if is_last:
                raise SchemaViolationError(parsed)

        raise GenerationError("No valid JSON after all attempts")

    # ==========================================================================
    # CALLS AND MODEL FALLBACK
    # ==========================================================================
    async def _post(
        self,
        client: GeminiClient,
        context: GenerationContext,
        index: int,
        model: str,
        strategy: str,
        body: dict,
    ) -> GeminiResponse:
        forced = strategy == "forced"
        try:
            response = await client.generate_content(model, body)
        except GenerationApiError:
            context.record(
                GenerationAttempt(index, model, strategy, forced, None, "transport_error")
            )
            raise
        outcome = "ok" if response.ok else "http_error"
        context.record(
            GenerationAttempt(index, model, strategy, forced, response.status, outcome)
        )
        return response

    async def _available_models(self, client: GeminiClient, context: GenerationContext) -> List[str]:
        if context.available_models is None:
            context.available_models = await client.list_models()
        return context.available_models

    async def _pick_fallback(
        self,
        client: GeminiClient,
        context: GenerationContext,
        missing_model: str,
        config: GenerationConfig,
        body_text: str = "",
    ) -> str:
        available = await self._available_models(client, context)
        pick = next(
            (
                candidate
                for candidate in config.fallback_preference
                if candidate in available and candidate not in context.unavailable_models
            ),
            None,
        )
        if pick is None:
            raise ModelNotFoundError(missing_model, available, body_text)
        print__generation_debug(f"🔀 GENERATE: falling back from {missing_model} to {pick}")
        return pick

    async def _call_with_fallback(
        self,
        client: GeminiClient,
        context: GenerationContext,
        index: int,
        model: str,
        strategy: str,
        body: dict,
        config: GenerationConfig,
    ) -> Tuple[GeminiResponse, str]:
        if model in context.unavailable_models:
            model = await self._pick_fallback(client, context, model, config)
            strategy = "fallback"

        response = await self._post(client, context, index, model, strategy, body)

        if response.status == 404:
            context.unavailable_models.add(model)
            pick = await self._pick_fallback(client, context, model, config, response.text)
            response = await self._post(client, context, index, pick, "fallback", body)
            model = pick
            if response.status == 404:
                context.unavailable_models.add(pick)
                raise ModelNotFoundError(pick, context.available_models or [], response.text)

        if not response.ok:
            raise GenerationApiError(response.status, response.text, model=model)
        return response, model

    # ==========================================================================
    # FORCED-EXAMPLE SUB-RETRY
    # ==========================================================================
    def _forced_sequence(self, current_model: str, config: GenerationConfig) -> Tuple[str, ...]:
        ordered = (current_model, config.alternate_model, *config.fallback_preference)
        return tuple(dict.fromkeys(m for m in ordered if isinstance(m, str) and m.strip()))

    async def _forced_example_retry(
        self,
        client: GeminiClient,
        context: GenerationContext,
        index: int,
        current_model: str,
        base_prompt: str,
        config: GenerationConfig,
    ) -> Optional[dict]:
        """Walk the forced model sequence; first validated result wins."""
        body = build_request_body(
            build_forced_prompt(base_prompt), config.generation_settings(temperature=0.0)
        )
        sequence = self._forced_sequence(current_model, config)
        print__generation_debug(
            f"🧪 FORCED RETRY {context.forced_retries_used}: sequence {list(sequence)}"
        )

        for candidate in sequence:
            if candidate in context.unavailable_models:
                continue
            try:
                response = await self._post(client, context, index, candidate, "forced", body)
            except GenerationApiError as exc:
                print__generation_debug(f"⚠️ FORCED RETRY: {candidate} request failed: {exc}")
                continue

            if response.status == 404:
                context.unavailable_models.add(candidate)
                await self._available_models(client, context)
                print__generation_debug(f"⚠️ FORCED RETRY: {candidate} not found")
                continue
            if not response.ok:
                print__generation_debug(
                    f"⚠️ FORCED RETRY: {candidate} answered {response.status}: {response.text[:200]}"
                )
                continue

            structured = self.decoder.extract_structured(response.payload)
            if structured is not None:
                return structured

            raw_text = self.decoder.extract_candidate_text(response.payload)
            if not raw_text or not raw_text.strip():
                continue
            if looks_like_opaque_identifier(raw_text):
                print__generation_debug(f"⚠️ FORCED RETRY: {candidate} still opaque")
                continue
            found = try_parse_mind_map(raw_text, self.decoder.validator)
            if found is not None:
                return found
            print__generation_debug(f"⚠️ FORCED RETRY: {candidate} did not validate")

        return None
