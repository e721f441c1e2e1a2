"""
Unit tests for validator.
"""

from structure_guard.validation import (
    format_validation_errors,
    quick_validate,
    validate,
    validate_value,
)


class TestValidator:
    """Test JSON Schema validation."""

    def test_validate_valid_json(self):
        """Test validating valid JSON."""
        schema = {
            "type": "object",
            "properties": {
                "name": {"type": "string"}
            },
            "required": ["name"]
        }

        result = validate('{"name": "Alice"}', schema)

        assert result.is_valid is True
        assert len(result.errors) == 0
        assert result.parsed_output == {"name": "Alice"}

    def test_validate_invalid_json_syntax(self):
        """Test validating invalid JSON syntax."""
        result = validate('{invalid json}', {"type": "object"})

        assert result.is_valid is False
        assert len(result.errors) == 1
        assert "Invalid JSON" in result.errors[0].message
        assert result.errors[0].enforced_by_grammar is True
        assert result.parsed_output is None

    def test_validate_missing_required_field(self):
        """Test validating JSON with missing required field."""
        schema = {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "age": {"type": "integer"}
            },
            "required": ["name", "age"]
        }

        result = validate('{"name": "Alice"}', schema)

        assert result.is_valid is False
        assert any("age" in error.message.lower() for error in result.errors)
        assert all(error.validator == "required" for error in result.errors)

    def test_validate_min_max_constraints(self):
        """Test numeric ranges, which only post-generation validation checks."""
        schema = {
            "type": "object",
            "properties": {
                "age": {"type": "integer", "minimum": 0, "maximum": 150}
            }
        }

        assert validate('{"age": 25}', schema).is_valid is True

        too_low = validate('{"age": -1}', schema)
        assert too_low.is_valid is False
        assert too_low.errors[0].path == ".age"
        assert too_low.errors[0].validator == "minimum"
        assert too_low.errors[0].expected == 0
        assert too_low.errors[0].actual == -1
        assert too_low.errors[0].enforced_by_grammar is False

        assert validate('{"age": 200}', schema).is_valid is False

    def test_wrong_type_is_flagged_as_grammar_enforced(self):
        """Test type errors are marked as something the grammar should prevent."""
        schema = {"type": "object", "properties": {"age": {"type": "integer"}}}

        result = validate('{"age": "not a number"}', schema)

        assert result.is_valid is False
        assert result.errors[0].validator == "type"
        assert result.errors[0].enforced_by_grammar is True

    def test_nested_array_path(self):
        """Test error paths through arrays."""
        schema = {
            "type": "object",
            "properties": {
                "scores": {"type": "array", "items": {"type": "integer", "minimum": 0}}
            }
        }

        result = validate('{"scores": [1, -2]}', schema)

        assert result.is_valid is False
        assert result.errors[0].path == ".scores.1"
        assert result.errors[0].actual == -2

    def test_validate_value(self):
        """Test validating an already parsed value."""
        schema = {"type": "array", "items": {"type": "string"}, "uniqueItems": True}

        assert validate_value(["a", "b"], schema).is_valid is True

        result = validate_value(["a", "a"], schema, raw_output='["a", "a"]')
        assert result.is_valid is False
        assert result.raw_output == '["a", "a"]'
        assert result.errors[0].path == "root"

    def test_quick_validate(self):
        """Test quick validation (bool only)."""
        schema = {"type": "object", "properties": {"name": {"type": "string"}}}

        assert quick_validate('{"name": "Alice"}', schema) is True
        assert quick_validate('{invalid}', schema) is False

    def test_format_validation_errors(self):
        """Test formatting validation errors."""
        schema = {
            "type": "object",
            "properties": {"age": {"type": "integer"}},
            "required": ["age"]
        }

        result = validate('{"age": "not a number"}', schema)
        formatted = format_validation_errors(result.errors)

        assert "Validation failed with 1 error(s)" in formatted
        assert "At .age" in formatted
        assert "grammar should have prevented" in formatted

    def test_format_no_errors(self):
        """Test formatting an empty error list."""
        assert format_validation_errors([]) == "No validation errors"
