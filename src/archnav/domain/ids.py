"""Identifier generation for objects created by the core.

Objects and relations arriving from snapshots keep their opaque ids.
The core only mints ids for rows it creates itself: discovered domains,
candidates, discovery runs and rollup edges.

INVARIANT: IDs are permanent. Once generated, an ID never changes.
"""

from __future__ import annotations

import re
import uuid

ID_PREFIXES: dict[str, str] = {
    "domain": "dom_",
    "candidate": "cand_",
    "run": "run_",
    "rollup_edge": "rue_",
    "profile": "prof_",
}

CLUSTER_ID_PATTERN = re.compile(r"^c-\d+$")


def generate_id(kind: str) -> str:
    """Return a fresh random id with the prefix registered for *kind*.

    Raises:
        KeyError: if *kind* has no registered prefix.
    """
    return f"{ID_PREFIXES[kind]}{uuid.uuid4().hex}"


def cluster_id(index: int) -> str:
    """Stable cluster identifier for the *index*-th community of a run.

    Examples:
        >>> cluster_id(0)
        'c-0'
    """
    return f"c-{index}"


def discovered_domain_name(index: int) -> str:
    """Machine name of a discovered domain object.

    Examples:
        >>> discovered_domain_name(2)
        'discovered:cluster-2'
    """
    return f"discovered:cluster-{index}"
