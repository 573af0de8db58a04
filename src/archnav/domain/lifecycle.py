"""Lifecycle models for rollup generations, candidates and discovery runs.

Generations move BUILDING -> ACTIVE -> ARCHIVED and never backwards.
Candidates are reviewed exactly once: PENDING -> APPROVED | REJECTED.
"""

from __future__ import annotations

from enum import StrEnum


class GenerationStatus(StrEnum):
    """Status of one rollup snapshot."""

    BUILDING = "BUILDING"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class CandidateStatus(StrEnum):
    """Review status of a Track A domain candidate."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RunStatus(StrEnum):
    """Status of a discovery run."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# --- Transition maps ---

GENERATION_TRANSITIONS: dict[str, list[str]] = {
    "BUILDING": ["ACTIVE"],
    "ACTIVE": ["ARCHIVED"],
    "ARCHIVED": [],
}

CANDIDATE_TRANSITIONS: dict[str, list[str]] = {
    "PENDING": ["APPROVED", "REJECTED"],
    "APPROVED": [],
    "REJECTED": [],
}

RUN_TRANSITIONS: dict[str, list[str]] = {
    "RUNNING": ["COMPLETED", "FAILED"],
    "COMPLETED": [],
    "FAILED": [],
}

# Generations a query may read: finalized at some point.
READABLE_GENERATION_STATUSES: frozenset[str] = frozenset({"ACTIVE", "ARCHIVED"})


def is_valid_transition(
    current: str,
    target: str,
    transitions: dict[str, list[str]],
) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    allowed = transitions.get(current, [])
    return target in allowed
