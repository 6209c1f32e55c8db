# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum definition: learning phases and the building block DAG.

The bundled curriculum covers key-value data-store client usage. Each
phase lists its objectives, completion criteria and the context layers
it focuses on; each block lists its level, phase and prerequisites.

A deployment can override any part with a YAML file named by
LEARNING_CURRICULUM_FILE. The file is deep-merged over the defaults:

    phases:
      foundation:
        criteria:
          concept_familiarity:
            threshold: 0.9
    blocks:
      streams:
        title: Streams
        level: 3
        phase: connecting
        prerequisites: [data_structures]
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from learnsync.core.concepts import concepts_of_topic
from learnsync.core.config.yaml_loader import load_overrides
from learnsync.core.exceptions import ValidationError
from learnsync.core.learning.models import (
    CompletionCriterion,
    LayerType,
    LearningPhase,
    LearningPhaseName,
)

logger = logging.getLogger(__name__)


DEFAULT_CURRICULUM: dict[str, Any] = {
    "phases": {
        "foundation": {
            "objectives": [
                "Read and write string keys",
                "Understand key expiration",
            ],
            "criteria": {
                "concept_familiarity": {
                    "threshold": 0.8,
                    "description": "Average mastery of foundation blocks",
                },
            },
            "focus_layers": ["conceptual"],
        },
        "building": {
            "objectives": [
                "Choose the right data structure",
                "Work with hashes, lists, sets and sorted sets",
            ],
            "criteria": {
                "practical_application": {
                    "threshold": 0.7,
                    "description": "Share of blocks practiced or exercised",
                },
            },
            "focus_layers": ["procedural"],
        },
        "connecting": {
            "objectives": [
                "Combine commands into caching and messaging patterns",
                "Group commands atomically",
            ],
            "criteria": {
                "concept_connections": {
                    "threshold": 0.6,
                    "description": "Share of blocks connected to another concept",
                },
            },
            "focus_layers": ["conditional"],
        },
        "applying": {
            "objectives": [
                "Apply patterns to realistic workloads",
                "Reduce round trips with pipelining",
            ],
            "criteria": {
                "applied_success_rate": {
                    "threshold": 0.75,
                    "description": "Mean performance of recent application work",
                },
            },
            "focus_layers": ["procedural", "conditional"],
        },
        "mastering": {
            "objectives": [
                "Operate the data store in production",
                "Reflect on trade-offs and teach others",
            ],
            "criteria": {},
            "focus_layers": ["metacognitive"],
        },
    },
    "blocks": {
        "basic_operations": {
            "title": "Basic key operations",
            "level": 1,
            "phase": "foundation",
            "prerequisites": [],
            "objectives": ["Use GET, SET, DEL and EXISTS"],
        },
        "key_expiration": {
            "title": "Key expiration",
            "level": 1,
            "phase": "foundation",
            "prerequisites": [],
            "objectives": ["Bound key lifetime with EXPIRE and TTL"],
        },
        "data_structures": {
            "title": "Lists, sets and sorted sets",
            "level": 2,
            "phase": "building",
            "prerequisites": ["basic_operations"],
            "objectives": ["Model data with LPUSH, SADD and ZADD"],
        },
        "hash_operations": {
            "title": "Hash operations",
            "level": 2,
            "phase": "building",
            "prerequisites": ["basic_operations"],
            "objectives": ["Store objects with HSET and HGET"],
        },
        "caching_patterns": {
            "title": "Caching patterns",
            "level": 3,
            "phase": "connecting",
            "prerequisites": ["basic_operations", "key_expiration", "hash_operations"],
            "objectives": ["Implement cache-aside with expiring keys"],
        },
        "messaging": {
            "title": "Publish/subscribe messaging",
            "level": 3,
            "phase": "connecting",
            "prerequisites": ["basic_operations"],
            "objectives": ["Fan out events with PUBLISH and SUBSCRIBE"],
        },
        "transactions": {
            "title": "Transactions",
            "level": 3,
            "phase": "connecting",
            "prerequisites": ["data_structures"],
            "objectives": ["Group commands with MULTI and EXEC"],
        },
        "performance_optimization": {
            "title": "Performance optimization",
            "level": 4,
            "phase": "applying",
            "prerequisites": ["caching_patterns", "transactions"],
            "objectives": ["Batch commands with pipelines"],
        },
        "production_deployment": {
            "title": "Production deployment",
            "level": 5,
            "phase": "mastering",
            "prerequisites": ["performance_optimization"],
            "objectives": ["Plan memory, persistence and failover"],
        },
    },
}


class BlockDefinition(BaseModel):
    """Curriculum definition of a building block."""

    block_id: str
    title: str
    level: int = Field(ge=1)
    phase: LearningPhaseName
    prerequisites: list[str] = Field(default_factory=list)
    objectives: list[str] = Field(default_factory=list)

    @property
    def concepts(self) -> list[str]:
        """The block's own concept plus every concept rolling up into it."""
        return [self.block_id, *concepts_of_topic(self.block_id)]


class Curriculum:
    """Validated phases and building block DAG.

    Raises ValidationError on construction if a phase is missing, a
    prerequisite names an unknown block, or the prerequisites form a cycle.
    """

    def __init__(self, data: dict[str, Any]):
        try:
            self._phases = {
                LearningPhaseName(name): LearningPhase(
                    name=name,
                    objectives=spec.get("objectives", []),
                    criteria=[
                        CompletionCriterion(name=criterion, **values)
                        for criterion, values in spec.get("criteria", {}).items()
                    ],
                    focus_layers=[LayerType(t) for t in spec.get("focus_layers", [])],
                )
                for name, spec in data.get("phases", {}).items()
            }
            self._blocks = {
                block_id: BlockDefinition(block_id=block_id, **spec)
                for block_id, spec in data.get("blocks", {}).items()
            }
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "curriculum") from e
        except ValueError as e:
            raise ValidationError(f"Invalid curriculum: {e}", fields=["phases"]) from e

        missing = [p.value for p in LearningPhaseName if p not in self._phases]
        if missing:
            raise ValidationError(
                "Curriculum must define every learning phase",
                fields=["phases"],
                details={"missing": missing},
            )
        self._validate_dag()

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Curriculum":
        """Build the curriculum from defaults plus an optional YAML override."""
        return cls(load_overrides(DEFAULT_CURRICULUM, path))

    def _validate_dag(self) -> None:
        for block in self._blocks.values():
            unknown = [p for p in block.prerequisites if p not in self._blocks]
            if unknown:
                raise ValidationError(
                    f"Block {block.block_id} has unknown prerequisites",
                    fields=["blocks"],
                    details={"block_id": block.block_id, "unknown": unknown},
                )

        # Kahn's algorithm; anything left unvisited sits on a cycle
        indegree = {block_id: len(b.prerequisites) for block_id, b in self._blocks.items()}
        ready = [block_id for block_id, degree in indegree.items() if degree == 0]
        visited = 0
        while ready:
            current = ready.pop()
            visited += 1
            for dependent in self.dependents_of(current):
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    ready.append(dependent)
        if visited != len(self._blocks):
            cyclic = sorted(b for b, degree in indegree.items() if degree > 0)
            raise ValidationError(
                "Curriculum prerequisites contain a cycle",
                fields=["blocks"],
                details={"blocks": cyclic},
            )

    @property
    def phases(self) -> list[LearningPhase]:
        return [self._phases[name] for name in LearningPhaseName]

    def phase(self, name: LearningPhaseName) -> LearningPhase:
        return self._phases[name]

    def definition(self, block_id: str) -> BlockDefinition | None:
        return self._blocks.get(block_id)

    @property
    def blocks(self) -> list[BlockDefinition]:
        """All block definitions ordered by level, then definition order."""
        return sorted(self._blocks.values(), key=lambda b: b.level)

    def blocks_in(self, phase: LearningPhaseName) -> list[BlockDefinition]:
        return [b for b in self.blocks if b.phase == phase]

    def blocks_through(self, phase: LearningPhaseName) -> list[BlockDefinition]:
        """Blocks of ``phase`` and every earlier phase."""
        return [b for b in self.blocks if b.phase.rank <= phase.rank]

    def dependents_of(self, block_id: str) -> list[str]:
        return [b.block_id for b in self._blocks.values() if block_id in b.prerequisites]
