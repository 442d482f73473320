"""Decoding of generation service responses into mind map data.

Gemini answers with an envelope of ``candidates``, each holding ``content.parts``
that can be text, inline base64 data with a media type, or a function call with
structured arguments. Models do not always put the JSON where they should, so
decoding is layered:

1. Direct path: ``candidates[0].content.parts[0].text`` when it is not blank.
2. Structured walk: every part is decoded into a tagged variant and accepted
   when it already holds a valid mind map (text that parses, JSON inline data,
   function-call arguments).
3. Harvesting: every string anywhere in the envelope is collected; a string
   with a fenced ```json block or an opening ``{"`` wins, otherwise the
   longest one.

``parse_json_strict`` turns harvested text into structured data, tolerating
prose around the JSON, fenced blocks and trailing junk.
"""

import base64
import binascii
import json
import re
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel

from api.utils.debug import print__decoder_debug
from mindmap_agent.utils.errors import NoStructuredDataError, UnparsableTextError
from mindmap_agent.utils.schema import validate_mind_map

# ==============================================================================
# CONSTANTS
# ==============================================================================
_JSON_LIKE_PATTERN = re.compile(r'```\s*json|\{\s*"', re.IGNORECASE)
_FENCED_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_FENCED_ANY_PATTERN = re.compile(r"```\s*([\s\S]*?)```")

_OPAQUE_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{10,}$")
_OPAQUE_PART_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{6,}$")
OPAQUE_MAX_LENGTH = 120
MAX_BALANCED_CANDIDATES = 64


# ==============================================================================
# TAGGED PART VARIANTS
# ==============================================================================
class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class InlineDataPart(BaseModel):
    kind: Literal["inline_data"] = "inline_data"
    mime_type: str = ""
    data: str

    @property
    def is_json(self) -> bool:
        return "json" in self.mime_type.lower()


class FunctionCallPart(BaseModel):
    kind: Literal["function_call"] = "function_call"
    name: str = ""
    args: Dict[str, Any]


class UnknownPart(BaseModel):
    kind: Literal["unknown"] = "unknown"
    raw: Any = None


Part = Union[TextPart, InlineDataPart, FunctionCallPart, UnknownPart]


def parse_part(raw: Any) -> Part:
    """Classify one raw ``content.parts`` entry."""
    if not isinstance(raw, dict):
        return UnknownPart(raw=raw)

    if isinstance(raw.get("text"), str):
        return TextPart(text=raw["text"])

    inline = raw.get("inlineData") or raw.get("inline_data")
    if isinstance(inline, dict) and isinstance(inline.get("data"), str):
        mime = inline.get("mimeType") or inline.get("mime_type") or ""
        return InlineDataPart(mime_type=str(mime), data=inline["data"])

    call = raw.get("functionCall") or raw.get("function_call")
    if isinstance(call, dict) and isinstance(call.get("args"), dict):
        return FunctionCallPart(name=str(call.get("name") or ""), args=call["args"])

    return UnknownPart(raw=raw)


def iter_candidate_parts(response: Any) -> Iterator[Part]:
    """Yield the parts of every candidate, in order."""
    if not isinstance(response, dict):
        return
    candidates = response.get("candidates")
    if not isinstance(candidates, list):
        return
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for raw in parts:
            yield parse_part(raw)


# ==============================================================================
# TEXT CLEAN-UP PARSER
# ==============================================================================
def _balanced_objects(text: str) -> List[str]:
    """Balanced ``{...}`` substrings, longest first, ignoring braces in strings.

    One pass with a stack of open-brace offsets: each ``}`` closes the most
    recent open brace. Only the ``MAX_BALANCED_CANDIDATES`` longest are kept.
    """
    spans = []
    open_braces: List[int] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            open_braces.append(index)
        elif char == "}" and open_braces:
            spans.append((open_braces.pop(), index + 1))

    spans.sort(key=lambda span: (span[0] - span[1], span[0]))
    return [text[start:end] for start, end in spans[:MAX_BALANCED_CANDIDATES]]


def parse_json_strict(raw: Any) -> Any:
    """Parse the JSON object embedded in ``raw``.

    Strategies, in order: slice from the first ``{`` to the last ``}`` and
    parse; parse the contents of a fenced code block; try the longest
    balanced ``{...}`` substrings, longest first.

    Raises:
        NoStructuredDataError: when no strategy yields valid JSON.
    """
    if not isinstance(raw, str):
        raise NoStructuredDataError(repr(raw), reason="Response is not a text string")

    cleaned = raw.strip()
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first == -1 or last == -1 or last <= first:
        print__decoder_debug(f"parse_json_strict: no braces in {cleaned[:200]!r}")
        raise NoStructuredDataError(cleaned, reason="Response has no apparent JSON object")

    sliced = cleaned[first : last + 1]
    try:
        return json.loads(sliced)
    except (json.JSONDecodeError, RecursionError) as primary_error:
        print__decoder_debug(f"parse_json_strict: sliced parse failed: {primary_error}")

    fenced = _FENCED_JSON_PATTERN.search(cleaned) or _FENCED_ANY_PATTERN.search(cleaned)
    if fenced and fenced.group(1).strip():
        try:
            return json.loads(fenced.group(1))
        except (json.JSONDecodeError, RecursionError):
            print__decoder_debug("parse_json_strict: fenced block did not parse")

    for candidate in _balanced_objects(sliced):
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, RecursionError):
            continue

    raise NoStructuredDataError(sliced)


def try_parse_mind_map(text: str, validator: Callable = validate_mind_map) -> Optional[dict]:
    """Parse and validate ``text``; None on any failure."""
    try:
        parsed = parse_json_strict(text)
    except UnparsableTextError:
        return None
    return validator(parsed)


# ==============================================================================
# OPAQUE IDENTIFIER HEURISTIC
# ==============================================================================
def looks_like_opaque_identifier(text: Optional[str]) -> bool:
    """True when ``text`` reads like a token or id rather than prose or JSON."""
    if not text:
        return False
    stripped = text.strip()
    if not stripped:
        return False
    if _OPAQUE_TOKEN_PATTERN.match(stripped) and len(stripped) < OPAQUE_MAX_LENGTH:
        return True
    return all(_OPAQUE_PART_PATTERN.match(part) for part in stripped.split())


# ==============================================================================
# DECODER
# ==============================================================================
class ResponseDecoder:
    """Extract mind map data or candidate text from a raw response envelope."""

    def __init__(self, validator: Callable[[Any], Optional[dict]] = validate_mind_map):
        self.validator = validator

    # --------------------------------------------------------------------------
    # Strategy 1: conventional location
    # --------------------------------------------------------------------------
    def direct_text(self, response: Any) -> Optional[str]:
        try:
            text = response["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        if isinstance(text, str) and text.strip():
            return text
        return None

    # --------------------------------------------------------------------------
    # Strategy 2: structured walk
    # --------------------------------------------------------------------------
    def _decode_part(self, part: Part) -> Optional[dict]:
        if isinstance(part, TextPart):
            return try_parse_mind_map(part.text, self.validator)

        if isinstance(part, InlineDataPart):
            if not part.is_json:
                return None
            try:
                decoded = base64.b64decode(part.data).decode("utf-8")
            except (binascii.Error, ValueError) as exc:
                print__decoder_debug(f"inline data could not be decoded: {exc}")
                return None
            return try_parse_mind_map(decoded, self.validator)

        if isinstance(part, FunctionCallPart):
            return self.validator(part.args)

        return None

    def extract_structured(self, response: Any) -> Optional[dict]:
        """Return a valid mind map found without free-text harvesting."""
        direct = self.direct_text(response)
        if direct is not None:
            found = try_parse_mind_map(direct, self.validator)
            if found is not None:
                print__decoder_debug("extract_structured: direct text path validated")
                return found

        if not isinstance(response, dict):
            return None

        if isinstance(response.get("text"), str):
            found = try_parse_mind_map(response["text"], self.validator)
            if found is not None:
                return found

        for index, part in enumerate(iter_candidate_parts(response)):
            found = self._decode_part(part)
            if found is not None:
                print__decoder_debug(
                    f"extract_structured: part {index} ({part.kind}) validated"
                )
                return found
        return None

    # --------------------------------------------------------------------------
    # Strategy 3: harvesting
    # --------------------------------------------------------------------------
    def harvest_strings(self, response: Any) -> List[str]:
        """Collect every string value in ``response``, depth first."""
        collected: List[str] = []
        stack = [response]
        while stack:
            node = stack.pop()
            if isinstance(node, str):
                collected.append(node)
            elif isinstance(node, dict):
                stack.extend(reversed(list(node.values())))
            elif isinstance(node, (list, tuple)):
                stack.extend(reversed(node))
        return collected

    def extract_candidate_text(self, response: Any) -> Optional[str]:
        """Best text candidate for the clean-up parser, or None."""
        direct = self.direct_text(response)
        if direct is not None:
            return direct

        strings = self.harvest_strings(response)
        if not strings:
            return None

        json_like = next((s for s in strings if _JSON_LIKE_PATTERN.search(s)), None)
        if json_like is not None:
            print__decoder_debug("extract_candidate_text: using JSON-like harvested string")
            return json_like

        return max(strings, key=len)
