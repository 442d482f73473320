"""Keyword grouping of saved fragments.

The groups index is rebuilt wholesale from the full fragment list every time a
fragment is added or removed. Placement is greedy and order-dependent: a
fragment joins the first existing group keyed by one of its keywords,
otherwise it opens a group keyed by its first keyword. The result is not an
optimal clustering but it is deterministic for a given insertion order.
"""

import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from api.utils.debug import print__grouping_debug
from mindmap_agent.utils.state import Fragment, Group

# ==============================================================================
# CONSTANTS
# ==============================================================================
STOPWORDS = frozenset(
    {
        "the",
        "and",
        "or",
        "de",
        "la",
        "el",
        "y",
        "a",
        "en",
        "para",
        "con",
        "que",
        "is",
        "of",
        "to",
        "as",
        "it",
    }
)

MAX_KEYWORDS = 8

# Bucket for fragments whose text has no keyword left after filtering
OVERFLOW_GROUP_KEY = "otros"

# Anything outside latin letters, digits and the accented Spanish set splits words
_WORD_SPLIT_PATTERN = re.compile(r"[^a-z0-9áéíóúñ]+")


# ==============================================================================
# KEYWORD EXTRACTION
# ==============================================================================
def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """Lowercase, split, drop stopwords and keep the first ``limit`` unique words."""
    keywords: List[str] = []
    for word in _WORD_SPLIT_PATTERN.split((text or "").lower()):
        if not word or word in STOPWORDS or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) == limit:
            break
    return keywords


def fragment_keywords(fragment: Fragment) -> List[str]:
    return extract_keywords(f"{fragment.get('title') or ''} {fragment.get('summary') or ''}")


# ==============================================================================
# INDEX BUILDER
# ==============================================================================
def rebuild_groups_index(
    fragments: Iterable[Fragment], now: Optional[str] = None
) -> Dict[str, Group]:
    """Cluster ``fragments`` into keyword groups.

    Args:
        fragments: Fragments in insertion order. Entries without a
            ``source_id`` are ignored.
        now: ISO timestamp stamped on every touched group. Defaults to the
            current UTC time.

    Returns:
        Mapping of group key to group, in group creation order.
    """
    stamp = now or datetime.now(timezone.utc).isoformat()
    groups: Dict[str, Group] = {}

    for fragment in fragments:
        source_id = fragment.get("source_id")
        if not source_id:
            continue

        keywords = fragment_keywords(fragment)
        target = next((kw for kw in keywords if kw in groups), None)
        if target is None:
            target = keywords[0] if keywords else OVERFLOW_GROUP_KEY
            if target not in groups:
                groups[target] = Group(key=target, title=target, items=[], updated_at=stamp)

        groups[target]["items"].append(source_id)
        groups[target]["updated_at"] = stamp

    print__grouping_debug(
        f"rebuild_groups_index: {len(groups)} groups from fragments "
        f"({sum(len(g['items']) for g in groups.values())} placed)"
    )
    return groups
