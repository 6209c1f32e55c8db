# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for YAML override loading."""

from pathlib import Path

import pytest

from learnsync.core.config.yaml_loader import (
    YAMLLoadError,
    deep_merge,
    load_overrides,
    load_yaml,
)
from learnsync.core.exceptions import ValidationError
from learnsync.core.learning.curriculum import Curriculum
from learnsync.core.learning.models import LearningPhaseName
from learnsync.core.progression.templates import load_path_templates


@pytest.mark.unit
class TestLoadYaml:
    """Tests for load_yaml function."""

    def test_load_valid_yaml_file(self, tmp_path: Path) -> None:
        """Test loading a valid YAML file."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("key: value\nnested:\n  inner: 42\n")

        result = load_yaml(yaml_file)

        assert result == {"key": "value", "nested": {"inner": 42}}

    def test_load_empty_yaml_file_returns_empty_dict(self, tmp_path: Path) -> None:
        """Test that empty YAML files return empty dict."""
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("# Just a comment\n")

        assert load_yaml(yaml_file) == {}

    def test_load_yaml_with_list_root_raises_error(self, tmp_path: Path) -> None:
        """Test that YAML files with list root raise error."""
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- item1\n- item2\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(yaml_file)

        assert "YAML root must be a mapping" in str(exc_info.value)

    def test_load_nonexistent_file_raises_error(self, tmp_path: Path) -> None:
        """Test that loading non-existent file raises error."""
        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(tmp_path / "nonexistent.yaml")

        assert "File does not exist" in str(exc_info.value)

    def test_load_invalid_yaml_syntax_raises_error(self, tmp_path: Path) -> None:
        """Test that invalid YAML syntax raises error."""
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("key: value\n  invalid indentation")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(yaml_file)

        assert "Invalid YAML syntax" in str(exc_info.value)


@pytest.mark.unit
class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_nested_dicts_are_merged_recursively(self) -> None:
        """Test that nested dicts are merged recursively."""
        base = {"a": 1, "nested": {"b": 2, "c": 3}}
        override = {"nested": {"c": 30, "d": 4}}

        result = deep_merge(base, override)

        assert result == {"a": 1, "nested": {"b": 2, "c": 30, "d": 4}}

    def test_list_values_are_replaced(self) -> None:
        """Test that list values are replaced, not merged."""
        result = deep_merge({"items": [1, 2, 3]}, {"items": [4, 5]})

        assert result == {"items": [4, 5]}

    def test_original_dicts_not_modified(self) -> None:
        """Test that original dicts are not modified."""
        base = {"a": 1, "nested": {"b": 2}}

        deep_merge(base, {"a": 10, "nested": {"c": 3}})

        assert base == {"a": 1, "nested": {"b": 2}}


@pytest.mark.unit
class TestLoadOverrides:
    """Tests for load_overrides and the components that use it."""

    def test_none_path_returns_defaults(self) -> None:
        defaults = {"a": 1}

        assert load_overrides(defaults, None) == {"a": 1}

    def test_missing_override_file_raises_error(self, tmp_path: Path) -> None:
        with pytest.raises(YAMLLoadError):
            load_overrides({"a": 1}, tmp_path / "missing.yaml")

    def test_curriculum_threshold_override(self, tmp_path: Path) -> None:
        """Test that a curriculum file overrides a single criterion."""
        override = tmp_path / "curriculum.yaml"
        override.write_text(
            "phases:\n"
            "  foundation:\n"
            "    criteria:\n"
            "      concept_familiarity:\n"
            "        threshold: 0.9\n"
        )

        curriculum = Curriculum.load(override)

        criteria = curriculum.phase(LearningPhaseName.FOUNDATION).criteria
        assert [(c.name, c.threshold) for c in criteria] == [("concept_familiarity", 0.9)]
        # Untouched phases keep their defaults
        building = curriculum.phase(LearningPhaseName.BUILDING).criteria
        assert building[0].threshold == 0.7

    def test_curriculum_new_block(self, tmp_path: Path) -> None:
        """Test that a curriculum file can add a building block."""
        override = tmp_path / "curriculum.yaml"
        override.write_text(
            "blocks:\n"
            "  streams:\n"
            "    title: Streams\n"
            "    level: 3\n"
            "    phase: connecting\n"
            "    prerequisites: [data_structures]\n"
        )

        curriculum = Curriculum.load(override)

        assert curriculum.definition("streams") is not None
        assert "streams" in curriculum.dependents_of("data_structures")

    def test_curriculum_cycle_is_rejected(self, tmp_path: Path) -> None:
        """Test that a prerequisite cycle fails validation."""
        override = tmp_path / "curriculum.yaml"
        override.write_text(
            "blocks:\n"
            "  basic_operations:\n"
            "    prerequisites: [production_deployment]\n"
        )

        with pytest.raises(ValidationError) as exc_info:
            Curriculum.load(override)

        assert "cycle" in exc_info.value.message

    def test_path_template_override(self, tmp_path: Path) -> None:
        """Test that a template file renames a template."""
        override = tmp_path / "templates.yaml"
        override.write_text("advanced:\n  name: Scaling Up\n")

        templates = load_path_templates(override)

        assert templates["advanced"]["name"] == "Scaling Up"
        assert len(templates["advanced"]["milestones"]) == 2


@pytest.mark.unit
class TestYAMLLoadError:
    """Tests for YAMLLoadError exception."""

    def test_error_contains_path_and_reason(self) -> None:
        """Test that error message contains path and reason."""
        path = Path("/some/path/file.yaml")

        error = YAMLLoadError(path, "File not found")

        assert str(path) in str(error)
        assert "File not found" in str(error)
        assert error.path == path
        assert error.reason == "File not found"
