"""Object, relation and rollup classification enums.

Object types are a closed enumeration; category and granularity are
derived from the type and never stored independently of it. Relation
types carry a fixed interaction-kind / direction semantic.
"""

from __future__ import annotations

from enum import StrEnum


class ObjectType(StrEnum):
    """Kinds of architecture objects tracked in an inventory."""

    SERVICE = "service"
    API_ENDPOINT = "api_endpoint"
    FUNCTION = "function"
    DATABASE = "database"
    DB_TABLE = "db_table"
    DB_VIEW = "db_view"
    CACHE_INSTANCE = "cache_instance"
    CACHE_KEY = "cache_key"
    MESSAGE_BROKER = "message_broker"
    TOPIC = "topic"
    QUEUE = "queue"
    DOMAIN = "domain"


class Category(StrEnum):
    """Coarse category derived from the object type."""

    COMPUTE = "COMPUTE"
    STORAGE = "STORAGE"
    CHANNEL = "CHANNEL"
    META = "META"


class Granularity(StrEnum):
    """COMPOUND objects aggregate ATOMIC children."""

    COMPOUND = "COMPOUND"
    ATOMIC = "ATOMIC"


class Visibility(StrEnum):
    VISIBLE = "VISIBLE"
    HIDDEN = "HIDDEN"


class RelationType(StrEnum):
    """Directed relation types between two objects."""

    CALL = "call"
    EXPOSE = "expose"
    READ = "read"
    WRITE = "write"
    PRODUCE = "produce"
    CONSUME = "consume"
    DEPEND_ON = "depend_on"


class InteractionKind(StrEnum):
    CONTROL = "CONTROL"
    DATA = "DATA"
    ASYNC = "ASYNC"
    STATIC = "STATIC"


class FlowDirection(StrEnum):
    """Direction of the interaction as seen from the relation subject."""

    IN = "IN"
    OUT = "OUT"


class RelationStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RelationSource(StrEnum):
    MANUAL = "MANUAL"
    INFERRED = "INFERRED"
    ROLLUP = "ROLLUP"


class RollupLevel(StrEnum):
    """The four fixed aggregation levels a rebuild materializes."""

    SERVICE_TO_SERVICE = "SERVICE_TO_SERVICE"
    SERVICE_TO_DATABASE = "SERVICE_TO_DATABASE"
    SERVICE_TO_BROKER = "SERVICE_TO_BROKER"
    DOMAIN_TO_DOMAIN = "DOMAIN_TO_DOMAIN"


class DomainKind(StrEnum):
    """SEED domains are human-authored; DISCOVERED ones come from clustering."""

    SEED = "SEED"
    DISCOVERED = "DISCOVERED"


class AffinitySource(StrEnum):
    """Origin of an approved object-to-domain membership."""

    MANUAL = "MANUAL"
    APPROVED_INFERENCE = "APPROVED_INFERENCE"
    DISCOVERY = "DISCOVERY"


class QueryType(StrEnum):
    IMPACT_ANALYSIS = "IMPACT_ANALYSIS"
    PATH_DISCOVERY = "PATH_DISCOVERY"
    USAGE_DISCOVERY = "USAGE_DISCOVERY"
    DOMAIN_SUMMARY = "DOMAIN_SUMMARY"


class Direction(StrEnum):
    """Traversal direction: DOWNSTREAM follows out-edges, UPSTREAM in-edges."""

    DOWNSTREAM = "DOWNSTREAM"
    UPSTREAM = "UPSTREAM"
    BOTH = "BOTH"


class ScopeLevel(StrEnum):
    """Graph a query runs against: live relations or one rollup level."""

    RELATION = "RELATION"
    SERVICE_TO_SERVICE = "SERVICE_TO_SERVICE"
    SERVICE_TO_DATABASE = "SERVICE_TO_DATABASE"
    SERVICE_TO_BROKER = "SERVICE_TO_BROKER"
    DOMAIN_TO_DOMAIN = "DOMAIN_TO_DOMAIN"

    @property
    def rollup_level(self) -> RollupLevel | None:
        if self is ScopeLevel.RELATION:
            return None
        return RollupLevel(self.value)


class VisibilityFilter(StrEnum):
    VISIBLE_ONLY = "VISIBLE_ONLY"
    INCLUDE_HIDDEN = "INCLUDE_HIDDEN"


# --- Derived attributes ---

OBJECT_CATEGORY: dict[ObjectType, Category] = {
    ObjectType.SERVICE: Category.COMPUTE,
    ObjectType.API_ENDPOINT: Category.COMPUTE,
    ObjectType.FUNCTION: Category.COMPUTE,
    ObjectType.DATABASE: Category.STORAGE,
    ObjectType.DB_TABLE: Category.STORAGE,
    ObjectType.DB_VIEW: Category.STORAGE,
    ObjectType.CACHE_INSTANCE: Category.STORAGE,
    ObjectType.CACHE_KEY: Category.STORAGE,
    ObjectType.MESSAGE_BROKER: Category.CHANNEL,
    ObjectType.TOPIC: Category.CHANNEL,
    ObjectType.QUEUE: Category.CHANNEL,
    ObjectType.DOMAIN: Category.META,
}

OBJECT_GRANULARITY: dict[ObjectType, Granularity] = {
    ObjectType.SERVICE: Granularity.COMPOUND,
    ObjectType.API_ENDPOINT: Granularity.ATOMIC,
    ObjectType.FUNCTION: Granularity.ATOMIC,
    ObjectType.DATABASE: Granularity.COMPOUND,
    ObjectType.DB_TABLE: Granularity.ATOMIC,
    ObjectType.DB_VIEW: Granularity.ATOMIC,
    ObjectType.CACHE_INSTANCE: Granularity.COMPOUND,
    ObjectType.CACHE_KEY: Granularity.ATOMIC,
    ObjectType.MESSAGE_BROKER: Granularity.COMPOUND,
    ObjectType.TOPIC: Granularity.ATOMIC,
    ObjectType.QUEUE: Granularity.ATOMIC,
    ObjectType.DOMAIN: Granularity.COMPOUND,
}

RELATION_SEMANTICS: dict[RelationType, tuple[InteractionKind, FlowDirection]] = {
    RelationType.CALL: (InteractionKind.CONTROL, FlowDirection.OUT),
    RelationType.EXPOSE: (InteractionKind.CONTROL, FlowDirection.IN),
    RelationType.READ: (InteractionKind.DATA, FlowDirection.IN),
    RelationType.WRITE: (InteractionKind.DATA, FlowDirection.OUT),
    RelationType.PRODUCE: (InteractionKind.ASYNC, FlowDirection.OUT),
    RelationType.CONSUME: (InteractionKind.ASYNC, FlowDirection.IN),
    RelationType.DEPEND_ON: (InteractionKind.STATIC, FlowDirection.OUT),
}


def category_of(object_type: ObjectType | str) -> Category:
    """Derive the category of an object type."""
    return OBJECT_CATEGORY[ObjectType(object_type)]


def granularity_of(object_type: ObjectType | str) -> Granularity:
    """Derive the granularity of an object type."""
    return OBJECT_GRANULARITY[ObjectType(object_type)]
