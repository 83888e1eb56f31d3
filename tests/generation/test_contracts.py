"""Tests for output contracts."""

import pytest

from mockexam.core.contracts import (
    MC_OPTION_COUNT,
    build_exam_contract,
    build_grading_contract,
    build_training_contract,
)


def _walk_objects(schema):
    """Yield every object schema nested in `schema`."""
    if isinstance(schema, dict):
        if schema.get("type") == "object":
            yield schema
        for value in schema.values():
            yield from _walk_objects(value)
    elif isinstance(schema, list):
        for value in schema:
            yield from _walk_objects(value)


def _question_items(contract):
    return contract.schema["properties"]["questions"]["items"]


class TestContractNames:
    """Contracts carry their version in the name."""

    def test_versioned_names(self):
        assert build_exam_contract(5, "mix").full_name == "mock_exam_v1"
        assert build_grading_contract(2).full_name == "open_grading_v1"
        assert build_training_contract().full_name == "training_material_v1"


class TestStrictness:
    """Every object is closed and requires all of its properties."""

    @pytest.mark.parametrize(
        "contract",
        [
            build_exam_contract(3, "mix"),
            build_exam_contract(12, "mc"),
            build_exam_contract(4, "essay"),
            build_grading_contract(3),
            build_training_contract(),
        ],
        ids=["exam-mix", "exam-mc", "exam-essay", "grading", "training"],
    )
    def test_all_objects_strict(self, contract):
        objects = list(_walk_objects(contract.schema))
        assert objects
        for obj in objects:
            assert obj["additionalProperties"] is False
            assert sorted(obj["required"]) == sorted(obj["properties"])

    def test_no_union_keywords(self):
        """No oneOf/anyOf anywhere in the exam contract."""
        text = repr(build_exam_contract(6, "mix").schema)
        assert "oneOf" not in text
        assert "anyOf" not in text


class TestExamContract:
    """Shape narrowing by count and type filter."""

    def test_exact_question_count(self):
        questions = build_exam_contract(7, "mix").schema["properties"]["questions"]
        assert questions["minItems"] == 7
        assert questions["maxItems"] == 7

    def test_mix_allows_all_types(self):
        items = _question_items(build_exam_contract(5, "mix"))
        assert items["properties"]["type"]["enum"] == ["mc", "short", "essay"]
        assert items["properties"]["correctIndex"]["minimum"] == -1

    def test_mc_filter_narrows_options(self):
        items = _question_items(build_exam_contract(5, "mc"))
        assert items["properties"]["type"]["enum"] == ["mc"]
        assert items["properties"]["options"]["minItems"] == MC_OPTION_COUNT
        assert items["properties"]["options"]["maxItems"] == MC_OPTION_COUNT
        assert items["properties"]["correctIndex"]["minimum"] == 0
        assert items["properties"]["correctIndex"]["maximum"] == MC_OPTION_COUNT - 1

    @pytest.mark.parametrize("type_filter", ["short", "essay"])
    def test_open_filters_use_sentinels(self, type_filter):
        items = _question_items(build_exam_contract(5, type_filter))
        assert items["properties"]["type"]["enum"] == [type_filter]
        assert items["properties"]["options"]["maxItems"] == 0
        assert items["properties"]["correctIndex"]["enum"] == [-1]

    def test_points_range(self):
        points = _question_items(build_exam_contract(3, "mix"))["properties"]["points"]
        assert points == {"type": "integer", "minimum": 1, "maximum": 10}

    def test_level_enum(self):
        level = build_exam_contract(3, "mix").schema["properties"]["level"]
        assert level["enum"] == ["E", "C", "A"]


class TestGradingContract:
    """open_grading_v1 shape."""

    def test_item_count(self):
        per_question = build_grading_contract(4).schema["properties"]["perQuestion"]
        assert per_question["minItems"] == 4
        assert per_question["maxItems"] == 4

    def test_item_fields(self):
        item = build_grading_contract(1).schema["properties"]["perQuestion"]["items"]
        assert set(item["properties"]) == {"id", "points", "maxPoints", "feedback", "modelAnswer"}


class TestTrainingContract:
    """training_material_v1 shape."""

    def test_focus_topic_fields(self):
        schema = build_training_contract().schema
        topic = schema["properties"]["focusTopics"]["items"]
        assert set(topic["properties"]) == {"topic", "why", "microDrills"}
        assert "materialText" in schema["required"]
