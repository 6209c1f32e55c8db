# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enum-backed concept identifiers for the learning domain.

Conversation metadata (commands used, patterns detected) and the curriculum
both refer to concepts by ConceptId instead of free strings, so a typo such
as "hgte" fails validation rather than silently creating a new node in the
concept graph.

Three kinds of concepts exist:
- COMMAND: a single data-store command (GET, HSET, EXPIRE, ...)
- PATTERN: a usage pattern built from commands (caching, pub/sub, ...)
- TOPIC: a curriculum topic; every building block is keyed by a topic

Commands and patterns roll up into topics via topic_for(). Memory concept
tags stay free-form (a learner may talk about anything) but are normalized
with normalize_concept() so known concepts always share one spelling.
"""

import re
from enum import Enum


class ConceptKind(str, Enum):
    """Kind of a known concept."""

    COMMAND = "command"
    PATTERN = "pattern"
    TOPIC = "topic"


class ConceptId(str, Enum):
    """Known concepts of the bundled data-store curriculum."""

    # Commands
    GET = "get"
    SET = "set"
    DEL = "del"
    EXISTS = "exists"
    INCR = "incr"
    MGET = "mget"
    MSET = "mset"
    SCAN = "scan"
    EXPIRE = "expire"
    TTL = "ttl"
    HSET = "hset"
    HGET = "hget"
    HGETALL = "hgetall"
    LPUSH = "lpush"
    LRANGE = "lrange"
    SADD = "sadd"
    SMEMBERS = "smembers"
    ZADD = "zadd"
    ZRANGE = "zrange"
    PUBLISH = "publish"
    SUBSCRIBE = "subscribe"
    MULTI = "multi"
    EXEC = "exec"
    PIPELINE = "pipeline"

    # Patterns
    CACHING = "caching"
    CACHE_ASIDE = "cache_aside"
    WRITE_THROUGH = "write_through"
    SESSION_STORE = "session_store"
    RATE_LIMITING = "rate_limiting"
    LEADERBOARD = "leaderboard"
    DISTRIBUTED_LOCK = "distributed_lock"
    PUB_SUB = "pub_sub"
    QUEUE = "queue"

    # Topics
    BASIC_OPERATIONS = "basic_operations"
    KEY_EXPIRATION = "key_expiration"
    DATA_STRUCTURES = "data_structures"
    HASH_OPERATIONS = "hash_operations"
    CACHING_PATTERNS = "caching_patterns"
    MESSAGING = "messaging"
    TRANSACTIONS = "transactions"
    PERFORMANCE_OPTIMIZATION = "performance_optimization"
    PRODUCTION_DEPLOYMENT = "production_deployment"

    @classmethod
    def parse(cls, value: "str | ConceptId") -> "ConceptId":
        """Parse a concept identifier leniently.

        Case, surrounding whitespace, hyphens and spaces are normalized and
        a few common aliases are accepted.

        Args:
            value: Raw identifier such as "HSET", "cache-aside" or "pubsub".

        Returns:
            The matching ConceptId.

        Raises:
            ValueError: If the value does not name a known concept.
        """
        if isinstance(value, ConceptId):
            return value
        key = _canonical_key(value)
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown concept identifier: {value!r}") from None

    @classmethod
    def try_parse(cls, value: str) -> "ConceptId | None":
        """Parse a concept identifier, returning None when unknown."""
        try:
            return cls.parse(value)
        except ValueError:
            return None

    @property
    def kind(self) -> ConceptKind:
        """Return whether this is a command, pattern or topic."""
        return _KINDS[self]


_ALIASES: dict[str, str] = {
    "pubsub": "pub_sub",
    "cache": "caching",
    "cacheaside": "cache_aside",
    "delete": "del",
    "expiry": "expire",
    "pipelining": "pipeline",
    "transaction": "multi",
    "lock": "distributed_lock",
    "hashes": "hash_operations",
    "performance": "performance_optimization",
}

_COMMANDS = {
    ConceptId.GET, ConceptId.SET, ConceptId.DEL, ConceptId.EXISTS,
    ConceptId.INCR, ConceptId.MGET, ConceptId.MSET, ConceptId.SCAN,
    ConceptId.EXPIRE, ConceptId.TTL, ConceptId.HSET, ConceptId.HGET,
    ConceptId.HGETALL, ConceptId.LPUSH, ConceptId.LRANGE, ConceptId.SADD,
    ConceptId.SMEMBERS, ConceptId.ZADD, ConceptId.ZRANGE, ConceptId.PUBLISH,
    ConceptId.SUBSCRIBE, ConceptId.MULTI, ConceptId.EXEC, ConceptId.PIPELINE,
}

_PATTERNS = {
    ConceptId.CACHING, ConceptId.CACHE_ASIDE, ConceptId.WRITE_THROUGH,
    ConceptId.SESSION_STORE, ConceptId.RATE_LIMITING, ConceptId.LEADERBOARD,
    ConceptId.DISTRIBUTED_LOCK, ConceptId.PUB_SUB, ConceptId.QUEUE,
}

_KINDS: dict[ConceptId, ConceptKind] = {
    concept: (
        ConceptKind.COMMAND if concept in _COMMANDS
        else ConceptKind.PATTERN if concept in _PATTERNS
        else ConceptKind.TOPIC
    )
    for concept in ConceptId
}

# Commands and patterns roll up into the curriculum topic they exercise
_TOPIC_OF: dict[ConceptId, ConceptId] = {
    ConceptId.GET: ConceptId.BASIC_OPERATIONS,
    ConceptId.SET: ConceptId.BASIC_OPERATIONS,
    ConceptId.DEL: ConceptId.BASIC_OPERATIONS,
    ConceptId.EXISTS: ConceptId.BASIC_OPERATIONS,
    ConceptId.INCR: ConceptId.BASIC_OPERATIONS,
    ConceptId.MGET: ConceptId.BASIC_OPERATIONS,
    ConceptId.MSET: ConceptId.BASIC_OPERATIONS,
    ConceptId.SCAN: ConceptId.BASIC_OPERATIONS,
    ConceptId.EXPIRE: ConceptId.KEY_EXPIRATION,
    ConceptId.TTL: ConceptId.KEY_EXPIRATION,
    ConceptId.HSET: ConceptId.HASH_OPERATIONS,
    ConceptId.HGET: ConceptId.HASH_OPERATIONS,
    ConceptId.HGETALL: ConceptId.HASH_OPERATIONS,
    ConceptId.LPUSH: ConceptId.DATA_STRUCTURES,
    ConceptId.LRANGE: ConceptId.DATA_STRUCTURES,
    ConceptId.SADD: ConceptId.DATA_STRUCTURES,
    ConceptId.SMEMBERS: ConceptId.DATA_STRUCTURES,
    ConceptId.ZADD: ConceptId.DATA_STRUCTURES,
    ConceptId.ZRANGE: ConceptId.DATA_STRUCTURES,
    ConceptId.LEADERBOARD: ConceptId.DATA_STRUCTURES,
    ConceptId.PUBLISH: ConceptId.MESSAGING,
    ConceptId.SUBSCRIBE: ConceptId.MESSAGING,
    ConceptId.PUB_SUB: ConceptId.MESSAGING,
    ConceptId.QUEUE: ConceptId.MESSAGING,
    ConceptId.MULTI: ConceptId.TRANSACTIONS,
    ConceptId.EXEC: ConceptId.TRANSACTIONS,
    ConceptId.DISTRIBUTED_LOCK: ConceptId.TRANSACTIONS,
    ConceptId.CACHING: ConceptId.CACHING_PATTERNS,
    ConceptId.CACHE_ASIDE: ConceptId.CACHING_PATTERNS,
    ConceptId.WRITE_THROUGH: ConceptId.CACHING_PATTERNS,
    ConceptId.SESSION_STORE: ConceptId.CACHING_PATTERNS,
    ConceptId.PIPELINE: ConceptId.PERFORMANCE_OPTIMIZATION,
    ConceptId.RATE_LIMITING: ConceptId.PERFORMANCE_OPTIMIZATION,
}

_NON_WORD = re.compile(r"[\s\-]+")


def _canonical_key(value: str) -> str:
    return _NON_WORD.sub("_", value.strip().lower())


def normalize_concept(value: "str | ConceptId") -> str:
    """Normalize a free-form concept tag.

    Known concepts (including aliases) map to their ConceptId value; any
    other tag is lower-cased with whitespace and hyphens turned into
    underscores.

    Args:
        value: Raw concept tag.

    Returns:
        Normalized tag, or an empty string if the tag was blank.
    """
    if isinstance(value, ConceptId):
        return value.value
    known = ConceptId.try_parse(value)
    if known is not None:
        return known.value
    return _canonical_key(value).strip("_")


def topic_for(concept: "str | ConceptId") -> str:
    """Return the curriculum topic a concept belongs to.

    Topics map to themselves and unknown concepts map to their normalized
    tag, which lets the learning engine open a new building block for a
    concept it has never seen.

    Args:
        concept: Concept identifier or free-form tag.

    Returns:
        Topic identifier.
    """
    known = concept if isinstance(concept, ConceptId) else ConceptId.try_parse(concept)
    if known is None:
        return normalize_concept(concept)
    return _TOPIC_OF.get(known, known).value


def concepts_of_topic(topic: "str | ConceptId") -> list[str]:
    """Return every known command and pattern rolling up into a topic."""
    topic_value = normalize_concept(topic)
    return [
        concept.value
        for concept, parent in _TOPIC_OF.items()
        if parent.value == topic_value
    ]


# Fixed skill categories used by skill assessment
SKILL_CATEGORIES: dict[str, tuple[ConceptId, ...]] = {
    "basic_operations": (ConceptId.GET, ConceptId.SET, ConceptId.DEL, ConceptId.EXISTS),
    "data_structures": (
        ConceptId.HSET, ConceptId.HGET, ConceptId.LPUSH, ConceptId.SADD, ConceptId.ZADD,
    ),
    "caching": (ConceptId.EXPIRE, ConceptId.TTL, ConceptId.CACHING),
    "performance": (
        ConceptId.PIPELINE, ConceptId.MULTI, ConceptId.PERFORMANCE_OPTIMIZATION,
    ),
}

# Category progression used to propose next learning goals
NEXT_SKILLS: dict[str, tuple[str, ...]] = {
    "basic_operations": ("data_structures", "caching"),
    "data_structures": ("caching", "performance"),
    "caching": ("performance", "advanced_patterns"),
    "performance": ("advanced_patterns", "production_deployment"),
}
