# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learning path templates, one per experience level.

Templates can be overridden with a YAML file named by
PROGRESSION_PATH_TEMPLATES_FILE, deep-merged over these defaults.
"""

from pathlib import Path
from typing import Any

from learnsync.core.config.yaml_loader import load_overrides

DEFAULT_PATH_TEMPLATES: dict[str, Any] = {
    "beginner": {
        "name": "Data Store Fundamentals",
        "description": "Complete introduction for newcomers",
        "milestones": [
            {
                "id": "store-basics",
                "title": "Store Basics",
                "description": "Data types and basic operations",
                "block_id": "basic_operations",
                "estimated_minutes": 240,
                "keywords": ["basics", "get", "set", "strings", "keys"],
                "learning_objectives": [
                    "Understand typical use cases",
                    "Learn the basic data types: strings, lists, sets",
                    "Use GET, SET, LPUSH and SADD",
                ],
                "practical_exercises": [
                    {
                        "id": "basic-operations",
                        "title": "Basic Operations",
                        "description": "Practice GET and SET with different data types",
                        "difficulty": "beginner",
                        "estimated_minutes": 30,
                        "instructions": [
                            "Connect with the client",
                            "Store and retrieve string values",
                            "Work with lists using LPUSH and LRANGE",
                            "Experiment with sets using SADD and SMEMBERS",
                        ],
                        "expected_outcome": "Basic operations on every data type succeed",
                        "hints": [
                            "Keys are case-sensitive",
                            "Use descriptive key names",
                        ],
                    },
                ],
                "prerequisites": [],
                "next_steps": ["key-expiration"],
            },
            {
                "id": "key-expiration",
                "title": "Key Expiration",
                "description": "Bounding key lifetime",
                "block_id": "key_expiration",
                "estimated_minutes": 90,
                "keywords": ["expire", "ttl", "expiration", "timeout"],
                "learning_objectives": [
                    "Set expirations with EXPIRE",
                    "Inspect remaining lifetime with TTL",
                ],
                "practical_exercises": [
                    {
                        "id": "session-tokens",
                        "title": "Expiring Session Tokens",
                        "description": "Store login tokens that expire",
                        "difficulty": "beginner",
                        "estimated_minutes": 30,
                        "instructions": [
                            "Store a token with SET",
                            "Give it a lifetime with EXPIRE",
                            "Check the remaining lifetime with TTL",
                        ],
                        "expected_outcome": "Tokens disappear after their lifetime",
                        "hints": ["A negative TTL means the key has no expiration or is gone"],
                    },
                ],
                "prerequisites": ["store-basics"],
                "next_steps": ["hashes-and-sorted-sets"],
            },
            {
                "id": "hashes-and-sorted-sets",
                "title": "Hashes and Sorted Sets",
                "description": "Working with complex data structures",
                "block_id": "hash_operations",
                "estimated_minutes": 300,
                "keywords": ["hash", "hashes", "sorted", "zset", "structures", "profiles"],
                "learning_objectives": [
                    "Use HSET, HGET and HGETALL",
                    "Use ZADD and ZRANGE",
                    "Choose the right data structure",
                ],
                "practical_exercises": [
                    {
                        "id": "user-profiles",
                        "title": "User Profile Storage",
                        "description": "Build a user profile store with hashes",
                        "difficulty": "beginner",
                        "estimated_minutes": 45,
                        "instructions": [
                            "Create profiles with HSET",
                            "Read them with HGET and HGETALL",
                            "Update single fields",
                            "Handle missing users",
                        ],
                        "expected_outcome": "A working profile store",
                        "hints": ["Use consistent key names like user:123"],
                    },
                ],
                "prerequisites": ["store-basics"],
                "next_steps": ["caching-patterns"],
            },
        ],
    },
    "intermediate": {
        "name": "Patterns and Best Practices",
        "description": "Common usage patterns and production practices",
        "milestones": [
            {
                "id": "caching-patterns",
                "title": "Caching Patterns",
                "description": "Cache-aside, write-through and invalidation",
                "block_id": "caching_patterns",
                "estimated_minutes": 420,
                "keywords": ["cache", "caching", "invalidation", "ttl"],
                "learning_objectives": [
                    "Implement cache-aside",
                    "Understand invalidation strategies",
                    "Warm caches ahead of traffic",
                ],
                "practical_exercises": [
                    {
                        "id": "cache-layer",
                        "title": "Build a Caching Layer",
                        "description": "Implement a production-ready cache",
                        "difficulty": "intermediate",
                        "estimated_minutes": 120,
                        "instructions": [
                            "Implement cache-aside",
                            "Add TTL-based expiration",
                            "Handle cache misses",
                            "Add bulk operations",
                        ],
                        "expected_outcome": "A cache layer with proper error handling",
                        "hints": ["Consider serialization strategies"],
                    },
                ],
                "prerequisites": [],
                "next_steps": ["pub-sub-patterns"],
            },
            {
                "id": "pub-sub-patterns",
                "title": "Publish/Subscribe",
                "description": "Fan out events to subscribers",
                "block_id": "messaging",
                "estimated_minutes": 240,
                "keywords": ["pubsub", "pub", "sub", "publish", "subscribe", "messaging", "events"],
                "learning_objectives": [
                    "Publish events with PUBLISH",
                    "Consume them with SUBSCRIBE",
                ],
                "practical_exercises": [
                    {
                        "id": "chat-room",
                        "title": "Chat Room",
                        "description": "Broadcast chat messages to subscribers",
                        "difficulty": "intermediate",
                        "estimated_minutes": 60,
                        "instructions": [
                            "Subscribe two clients to a channel",
                            "Publish messages from a third",
                        ],
                        "expected_outcome": "Both subscribers receive every message",
                        "hints": ["Subscribed connections cannot run other commands"],
                    },
                ],
                "prerequisites": ["caching-patterns"],
                "next_steps": ["transactions"],
            },
            {
                "id": "transactions",
                "title": "Transactions",
                "description": "Atomic command groups",
                "block_id": "transactions",
                "estimated_minutes": 180,
                "keywords": ["transaction", "transactions", "multi", "exec", "atomic"],
                "learning_objectives": ["Group commands with MULTI and EXEC"],
                "practical_exercises": [
                    {
                        "id": "inventory-transfer",
                        "title": "Inventory Transfer",
                        "description": "Move stock between warehouses atomically",
                        "difficulty": "intermediate",
                        "estimated_minutes": 45,
                        "instructions": ["Wrap both updates in MULTI/EXEC"],
                        "expected_outcome": "Stock totals never drift",
                        "hints": ["Commands queue until EXEC"],
                    },
                ],
                "prerequisites": ["caching-patterns"],
                "next_steps": ["performance-optimization"],
            },
        ],
    },
    "advanced": {
        "name": "Performance and Production",
        "description": "Tuning and operating at scale",
        "milestones": [
            {
                "id": "performance-optimization",
                "title": "Performance Optimization",
                "description": "Pipelining and round-trip reduction",
                "block_id": "performance_optimization",
                "estimated_minutes": 360,
                "keywords": ["performance", "pipeline", "pipelining", "latency", "throughput"],
                "learning_objectives": [
                    "Batch commands with pipelines",
                    "Measure latency and throughput",
                ],
                "practical_exercises": [
                    {
                        "id": "bulk-loader",
                        "title": "Bulk Loader",
                        "description": "Load a million keys with pipelines",
                        "difficulty": "advanced",
                        "estimated_minutes": 90,
                        "instructions": [
                            "Load keys one by one and time it",
                            "Repeat with pipelines of 1000 commands",
                        ],
                        "expected_outcome": "An order of magnitude faster load",
                        "hints": ["Very large pipelines use a lot of client memory"],
                    },
                ],
                "prerequisites": [],
                "next_steps": ["production-deployment"],
            },
            {
                "id": "production-deployment",
                "title": "Production Deployment",
                "description": "Persistence, replication and failover",
                "block_id": "production_deployment",
                "estimated_minutes": 480,
                "keywords": ["production", "deployment", "cluster", "replication", "failover"],
                "learning_objectives": [
                    "Choose a persistence mode",
                    "Plan replication and failover",
                ],
                "practical_exercises": [
                    {
                        "id": "failover-drill",
                        "title": "Failover Drill",
                        "description": "Survive the loss of a primary",
                        "difficulty": "expert",
                        "estimated_minutes": 120,
                        "instructions": [
                            "Run a primary with one replica",
                            "Stop the primary and observe failover",
                        ],
                        "expected_outcome": "Clients reconnect without data loss",
                        "hints": ["Configure client retry behaviour first"],
                    },
                ],
                "prerequisites": ["performance-optimization"],
                "next_steps": [],
            },
        ],
    },
}

PACE_FACTORS = {
    "relaxed": 1.5,
    "normal": 1.0,
    "intensive": 0.7,
}


def load_path_templates(path: str | Path | None = None) -> dict[str, Any]:
    """Return path templates with an optional YAML override applied."""
    return load_overrides(DEFAULT_PATH_TEMPLATES, path)
