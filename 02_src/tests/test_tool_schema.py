"""Tests for tool parameter schemas."""

import math

from agentflow.tools import (
    ArrayParam,
    BooleanParam,
    NumberParam,
    ObjectParam,
    StringParam,
    to_json_schema,
    validate_tool_input,
)


class TestValidateToolInput:
    """Tests for validate_tool_input."""

    def test_non_object_input(self):
        result = validate_tool_input(["a"], {})

        assert result.valid is False
        assert result.errors == ["Input must be an object"]

    def test_required_and_defaults(self):
        """Test that missing required params fail and optional ones take defaults."""
        schema = {
            "name": StringParam(required=True),
            "count": NumberParam(default=3),
            "flag": BooleanParam(),
        }

        missing = validate_tool_input({}, schema)
        ok = validate_tool_input({"name": "x", "extra": 1}, schema)

        assert missing.valid is False
        assert missing.errors == ["Parameter 'name' is required"]
        assert missing.sanitized is None
        assert ok.valid is True
        assert ok.sanitized == {"name": "x", "count": 3}

    def test_string_constraints(self):
        """Test that each string constraint reports its own message."""
        schema = {
            "code": StringParam(min_length=2, max_length=4, pattern=r"^[A-Z]+$"),
            "color": StringParam(enum=("red", "green")),
        }

        short = validate_tool_input({"code": "A", "color": "blue"}, schema)
        long = validate_tool_input({"code": "ABCDE"}, schema)
        lower = validate_tool_input({"code": "ab"}, schema)

        assert short.errors == [
            "Parameter 'code' must be at least 2 characters",
            "Parameter 'color' must be one of: red, green",
        ]
        assert long.errors == ["Parameter 'code' must be at most 4 characters"]
        assert lower.errors == ["Parameter 'code' does not match required pattern"]
        assert validate_tool_input({"code": 12}, schema).errors == [
            "Parameter 'code' must be a string"
        ]

    def test_number_rejects_bool_and_nan(self):
        """Test that booleans and NaN are not numbers."""
        schema = {"n": NumberParam()}

        assert validate_tool_input({"n": True}, schema).errors == ["Parameter 'n' must be a number"]
        assert validate_tool_input({"n": math.nan}, schema).errors == [
            "Parameter 'n' must be a number"
        ]
        assert validate_tool_input({"n": "1"}, schema).valid is False

    def test_number_bounds_and_integer(self):
        schema = {"n": NumberParam(minimum=1, maximum=10, integer=True)}

        assert validate_tool_input({"n": 4.0}, schema).sanitized == {"n": 4}
        assert validate_tool_input({"n": 4.5}, schema).errors == [
            "Parameter 'n' must be an integer"
        ]
        assert validate_tool_input({"n": 11}, schema).errors == [
            "Parameter 'n' must be at most 10"
        ]

    def test_huge_integers_are_validated_not_raised(self):
        """Test that ints beyond float range are checked against bounds without overflowing."""
        huge = 10**400

        assert validate_tool_input({"n": huge}, {"n": NumberParam(integer=True)}).sanitized == {
            "n": huge
        }
        assert validate_tool_input({"n": huge}, {"n": NumberParam()}).sanitized == {"n": huge}
        assert validate_tool_input({"n": huge}, {"n": NumberParam(maximum=10)}).errors == [
            "Parameter 'n' must be at most 10"
        ]
        positive = {"n": NumberParam(minimum=0, integer=True)}
        assert validate_tool_input({"n": -huge}, positive).errors == [
            "Parameter 'n' must be at least 0"
        ]

    def test_infinity_is_not_a_number(self):
        for schema in ({"n": NumberParam()}, {"n": NumberParam(integer=True)}):
            for value in (math.inf, -math.inf):
                result = validate_tool_input({"n": value}, schema)
                assert result.valid is False
                assert result.errors == ["Parameter 'n' must be a number"]

    def test_float_bounds(self):
        schema = {"n": NumberParam(minimum=0.5, maximum=1.5)}

        assert validate_tool_input({"n": 1.25}, schema).sanitized == {"n": 1.25}
        assert validate_tool_input({"n": 1.75}, schema).errors == [
            "Parameter 'n' must be at most 1.5"
        ]
        assert validate_tool_input({"n": 0}, schema).errors == [
            "Parameter 'n' must be at least 0.5"
        ]

    def test_integer_rejects_bool_and_numeric_string(self):
        schema = {"n": NumberParam(integer=True)}

        for value in (False, "4"):
            assert validate_tool_input({"n": value}, schema).errors == [
                "Parameter 'n' must be a number"
            ]

    def test_array_of_numbers_rejects_bool_item(self):
        """Test that a bool inside an array of numbers is reported by index."""
        schema = {"values": ArrayParam(items=NumberParam())}

        ok = validate_tool_input({"values": [1, 2.5]}, schema)
        bad = validate_tool_input({"values": [1, True, math.inf]}, schema)

        assert ok.sanitized == {"values": [1, 2.5]}
        assert bad.errors == [
            "Parameter 'values[1]' must be a number",
            "Parameter 'values[2]' must be a number",
        ]

    def test_none_counts_as_missing(self):
        schema = {"name": StringParam(required=True), "mode": StringParam(default="fast")}

        missing = validate_tool_input({"name": None}, schema)
        assert missing.errors == ["Parameter 'name' is required"]
        assert validate_tool_input({"name": "x", "mode": None}, schema).sanitized == {
            "name": "x",
            "mode": "fast",
        }

    def test_array_and_object_type_errors(self):
        schema = {
            "tags": ArrayParam(min_items=1),
            "user": ObjectParam(properties={"name": StringParam()}),
            "flag": BooleanParam(),
        }

        result = validate_tool_input({"tags": "a", "user": "ann", "flag": "yes"}, schema)
        empty = validate_tool_input({"tags": []}, schema)

        assert result.errors == [
            "Parameter 'tags' must be an array",
            "Parameter 'user' must be an object",
            "Parameter 'flag' must be a boolean",
        ]
        assert empty.errors == ["Parameter 'tags' must have at least 1 items"]

    def test_errors_inside_array_of_objects(self):
        person = ObjectParam(properties={"name": StringParam(required=True)})
        schema = {"people": ArrayParam(items=person)}

        result = validate_tool_input({"people": [{"name": "a"}, {}]}, schema)

        assert result.errors == ["people[1].Parameter 'name' is required"]

    def test_array_items(self):
        """Test that array items are validated with indexed names."""
        schema = {"tags": ArrayParam(items=StringParam(), max_items=3)}

        ok = validate_tool_input({"tags": ("a", "b")}, schema)
        bad = validate_tool_input({"tags": ["a", 2]}, schema)
        too_many = validate_tool_input({"tags": ["a", "b", "c", "d"]}, schema)

        assert ok.sanitized == {"tags": ["a", "b"]}
        assert bad.errors == ["Parameter 'tags[1]' must be a string"]
        assert too_many.errors == ["Parameter 'tags' must have at most 3 items"]

    def test_nested_object(self):
        """Test nested object validation and error prefixes."""
        schema = {
            "user": ObjectParam(
                properties={"name": StringParam(required=True), "age": NumberParam()}
            )
        }

        ok = validate_tool_input({"user": {"name": "Ann", "age": 30, "x": 1}}, schema)
        bad = validate_tool_input({"user": {"age": 30}}, schema)

        assert ok.sanitized == {"user": {"name": "Ann", "age": 30}}
        assert bad.errors == ["user.Parameter 'name' is required"]


class TestToJsonSchema:
    """Tests for to_json_schema."""

    def test_renders_json_schema(self):
        schema = {
            "expression": StringParam(description="Expression", required=True, pattern="^.+$"),
            "precision": NumberParam(integer=True, minimum=0, default=2),
            "items": ArrayParam(items=BooleanParam()),
        }

        rendered = to_json_schema(schema)

        assert rendered["type"] == "object"
        assert rendered["required"] == ["expression"]
        assert rendered["properties"]["expression"] == {
            "type": "string",
            "pattern": "^.+$",
            "description": "Expression",
        }
        assert rendered["properties"]["precision"] == {
            "type": "integer",
            "minimum": 0,
            "default": 2,
        }
        assert rendered["properties"]["items"] == {"type": "array", "items": {"type": "boolean"}}
