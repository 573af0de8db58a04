"""Materialized object hierarchy: paths, depth and ancestor resolution.

A path is the slash-joined chain of ancestor ids ending with the object's
own id (``/svc/endpoint``). Depth is the number of ancestors.

INVARIANT: an ATOMIC object's parent, if present, is COMPOUND.
INVARIANT: ``path`` always agrees with ``parent_id``.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping

from archnav.domain.types import Granularity, ObjectType, granularity_of


class HierarchyError(ValueError):
    """Raised when a set of objects violates the hierarchy invariants."""

    def __init__(self, object_id: str, reason: str) -> None:
        super().__init__(f"{object_id}: {reason}")
        self.object_id = object_id
        self.reason = reason


def build_path(parent_path: str | None, object_id: str) -> str:
    """Append *object_id* to *parent_path*.

    Examples:
        >>> build_path(None, "svc")
        '/svc'
        >>> build_path("/svc", "ep")
        '/svc/ep'
    """
    if not parent_path:
        return f"/{object_id}"
    return f"{parent_path}/{object_id}"


def depth_of(path: str) -> int:
    """Number of ancestors encoded in *path* (root objects have depth 0)."""
    return path.count("/") - 1


def check_parent(object_type: ObjectType | str, parent_type: ObjectType | str | None) -> str | None:
    """Return a reason string if *parent_type* may not own *object_type*."""
    if parent_type is None:
        return None
    if (
        granularity_of(object_type) is Granularity.ATOMIC
        and granularity_of(parent_type) is not Granularity.COMPOUND
    ):
        return f"ATOMIC {object_type} must have a COMPOUND parent, got {parent_type}"
    return None


def materialize_paths(
    parents: Mapping[str, str | None],
    types: Mapping[str, ObjectType],
    known_paths: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Compute the path of every object in *parents*.

    Args:
        parents: object id -> parent id for the objects being placed.
        types: object type for every id in *parents* and every parent id.
        known_paths: already-stored paths for parents outside *parents*.

    Raises:
        HierarchyError: on unknown parents, cycles or granularity violations.
    """
    known = dict(known_paths or {})
    resolved: dict[str, str] = {}

    def resolve(object_id: str, trail: list[str]) -> str:
        if object_id in resolved:
            return resolved[object_id]
        if object_id not in parents:
            if object_id in known:
                return known[object_id]
            raise HierarchyError(trail[-1] if trail else object_id, f"unknown parent {object_id!r}")
        if object_id in trail:
            raise HierarchyError(object_id, "parent chain forms a cycle")
        parent_id = parents[object_id]
        if parent_id is None:
            path = build_path(None, object_id)
        else:
            if parent_id not in types:
                raise HierarchyError(object_id, f"unknown parent {parent_id!r}")
            reason = check_parent(types[object_id], types[parent_id])
            if reason:
                raise HierarchyError(object_id, reason)
            path = build_path(resolve(parent_id, [*trail, object_id]), object_id)
        resolved[object_id] = path
        return path

    for object_id in sorted(parents):
        resolve(object_id, [])
    return resolved


def resolve_ancestor(
    object_id: str,
    parents: Mapping[str, str | None],
    types: Mapping[str, ObjectType],
    targets: Collection[ObjectType],
) -> str | None:
    """Walk up from *object_id* to the first object whose type is in *targets*.

    The object itself counts when its own type matches. Returns None when
    the chain ends (or loops) without a match.
    """
    seen: set[str] = set()
    current: str | None = object_id
    while current is not None and current not in seen:
        seen.add(current)
        if types.get(current) in targets:
            return current
        current = parents.get(current)
    return None
