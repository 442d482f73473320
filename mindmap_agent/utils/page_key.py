"""Page key canonicalization.

A page key correlates fragments, groups and generated mind maps with one
logical page. Two URLs that differ only in query-parameter order or trailing
slashes map to the same key, and normalizing a key again returns it unchanged.
"""

from typing import Optional
from urllib.parse import parse_qsl, quote, urlsplit

from api.utils.debug import print__debug
from mindmap_agent.utils.errors import InvalidUrlError

# ==============================================================================
# CONSTANTS
# ==============================================================================
DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}

# encodeURIComponent leaves these unescaped
_COMPONENT_SAFE = "-_.!~*'()"

# Characters a browser keeps verbatim in a pathname ('%' keeps escapes stable)
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"


# ==============================================================================
# HELPERS
# ==============================================================================
def _encode_component(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


def _origin(parts) -> str:
    scheme = parts.scheme.lower()
    try:
        hostname = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidUrlError(parts.geturl(), str(exc)) from exc

    if not hostname:
        raise InvalidUrlError(parts.geturl(), "missing host")

    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


def _path(raw_path: str) -> str:
    path = quote(raw_path or "/", safe=_PATH_SAFE)
    path = path.rstrip("/")
    return path or "/"


def _query(raw_query: str) -> str:
    params = parse_qsl(raw_query, keep_blank_values=True)
    if not params:
        return ""
    params.sort()
    return "?" + "&".join(
        f"{_encode_component(key)}={_encode_component(value)}" for key, value in params
    )


# ==============================================================================
# PUBLIC API
# ==============================================================================
def normalize_page_url(url: str) -> str:
    """Canonicalize ``url`` into a page key.

    The key is ``origin + path + query + hash`` where the origin drops the
    scheme's default port, the path loses trailing slashes (except a bare
    ``/``), query parameters are sorted by key then value and re-encoded, and
    the hash is kept unless it is a bare ``#``.

    Raises:
        InvalidUrlError: if ``url`` is not an absolute URL with a host.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(url, "empty or non-string URL")

    try:
        parts = urlsplit(url.strip())
    except ValueError as exc:
        raise InvalidUrlError(url, str(exc)) from exc

    if not parts.scheme:
        raise InvalidUrlError(url, "missing scheme")

    origin = _origin(parts)
    fragment = f"#{parts.fragment}" if parts.fragment else ""
    return f"{origin}{_path(parts.path)}{_query(parts.query)}{fragment}"


def resolve_page_key(url, fallback_to_raw: bool = True) -> Optional[str]:
    """Return the page key for ``url`` without raising.

    Callers that only need an opaque identity (not cross-URL correlation) get
    the raw string back when parsing fails; with ``fallback_to_raw=False`` an
    unparsable URL yields None.
    """
    if not url:
        return None
    try:
        return normalize_page_url(url)
    except InvalidUrlError as exc:
        print__debug(f"resolve_page_key: {exc}")
        if fallback_to_raw and isinstance(url, str):
            return url.strip() or None
        return None


def fragment_page_key(fragment) -> Optional[str]:
    """Page key of a stored fragment, recomputed from its ``pageUrl``.

    The stored ``normalized_page`` is used only when the URL is missing or
    cannot be parsed, so a change in canonicalization rules never leaves old
    fragments orphaned.
    """
    page_url = fragment.get("pageUrl")
    if page_url:
        key = resolve_page_key(page_url, fallback_to_raw=False)
        if key:
            return key
    return fragment.get("normalized_page") or None
