"""Track A signals: how strongly a service points at a seed domain.

Each signal lands in [0, 1]. The code signal is name/keyword overlap and
is capped so a lucky naming match cannot dominate the other signals.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Set

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SPLIT_RE = re.compile(r"[^0-9a-zA-Z]+")

# Tokens every service name carries; they say nothing about a domain.
STOP_TOKENS: frozenset[str] = frozenset(
    {"api", "app", "svc", "service", "server", "client", "worker", "core", "v1", "v2"}
)


def _stem(token: str) -> str:
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def name_tokens(text: str) -> set[str]:
    """Split *text* on punctuation and camelCase into stemmed lowercase tokens.

    Examples:
        >>> sorted(name_tokens("orders-api"))
        ['order']
        >>> sorted(name_tokens("PaymentGateway"))
        ['gateway', 'payment']
    """
    parts = _SPLIT_RE.split(_CAMEL_RE.sub(" ", text))
    tokens = {_stem(p.lower()) for p in parts if p}
    return tokens - STOP_TOKENS


def domain_tokens(name: str, metadata: Mapping[str, object] | None = None) -> set[str]:
    """Tokens describing a domain: its name plus any ``keywords`` metadata."""
    tokens = name_tokens(name)
    keywords = (metadata or {}).get("keywords")
    if isinstance(keywords, list):
        for keyword in keywords:
            tokens |= name_tokens(str(keyword))
    return tokens


def code_signal(service_name: str, tokens: Set[str], cap: float) -> float:
    """Share of the domain's *tokens* present in *service_name*, capped at *cap*."""
    if not tokens:
        return 0.0
    overlap = len(name_tokens(service_name) & tokens) / len(tokens)
    return min(cap, overlap)


def overlap_signal(own: Set[str], domain_side: Iterable[str]) -> float:
    """Share of *own* resources also touched by the domain's members."""
    if not own:
        return 0.0
    shared = own & set(domain_side)
    return len(shared) / len(own)


def combine_signals(
    code: float,
    db: float,
    msg: float,
    *,
    w_code: float,
    w_db: float,
    w_msg: float,
) -> float:
    """Weighted sum of the three signals (weights need not sum to 1)."""
    return w_code * code + w_db * db + w_msg * msg
