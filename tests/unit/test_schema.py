"""Tests for input schemas, validation and URI templates."""

from __future__ import annotations

import pytest

from users_mcp.capabilities import FieldSpec, FieldType, InputSchema, UriTemplate
from users_mcp.errors import UnresolvedTemplate

# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    """InputSchema.validate reports every violation."""

    def test_valid_arguments(self) -> None:
        schema = InputSchema.strings("name", "email")

        result = schema.validate({"name": "Ada", "email": "ada@example.com"})

        assert result.ok
        assert result.values == {"name": "Ada", "email": "ada@example.com"}

    def test_missing_and_null_fields_are_required(self) -> None:
        schema = InputSchema.strings("name", "email")

        result = schema.validate({"name": None})

        assert result.errors == ["name: required", "email: required"]

    def test_wrong_type(self) -> None:
        schema = InputSchema((FieldSpec("age", FieldType.INTEGER),))

        result = schema.validate({"age": "forty"})

        assert result.errors == ["age: expected integer, got str"]

    def test_bool_is_not_an_integer(self) -> None:
        schema = InputSchema((FieldSpec("count", FieldType.INTEGER),))

        assert not schema.validate({"count": True}).ok
        assert schema.validate({"count": 3}).ok

    def test_number_accepts_int_and_float(self) -> None:
        schema = InputSchema((FieldSpec("score", FieldType.NUMBER),))

        assert schema.validate({"score": 3}).ok
        assert schema.validate({"score": 2.5}).ok

    def test_optional_field_may_be_absent(self) -> None:
        schema = InputSchema((FieldSpec("nickname", required=False),))

        result = schema.validate({})

        assert result.ok
        assert result.values == {}

    def test_unknown_keys_are_dropped(self) -> None:
        result = InputSchema.strings("name").validate({"name": "Ada", "admin": True})

        assert result.values == {"name": "Ada"}

    def test_non_mapping_arguments(self) -> None:
        result = InputSchema.strings("name").validate(["Ada"])  # type: ignore[arg-type]

        assert result.errors == ["arguments must be an object"]

    def test_duplicate_field_names_rejected(self) -> None:
        with pytest.raises(ValueError):
            InputSchema.strings("name", "name")

    def test_json_schema(self) -> None:
        schema = InputSchema(
            (
                FieldSpec("name", description="Full name"),
                FieldSpec("age", FieldType.INTEGER, required=False),
            )
        )

        assert schema.to_json_schema() == {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Full name"},
                "age": {"type": "integer"},
            },
            "required": ["name"],
        }

    def test_empty_schema(self) -> None:
        schema = InputSchema()

        assert schema.is_empty
        assert schema.to_json_schema() == {"type": "object", "properties": {}}


# =============================================================================
# URI templates
# =============================================================================


class TestUriTemplate:
    """Segment-wise template matching."""

    def test_match(self) -> None:
        template = UriTemplate("users://{userId}/profile")

        assert template.variables == ("userId",)
        assert template.match("users://7/profile") == {"userId": "7"}

    def test_literal_mismatch(self) -> None:
        assert UriTemplate("users://{userId}/profile").match("users://7/settings") is None

    def test_scheme_mismatch(self) -> None:
        assert UriTemplate("users://{userId}/profile").match("posts://7/profile") is None

    def test_empty_placeholder_value(self) -> None:
        assert UriTemplate("users://{userId}/profile").match("users:///profile") is None

    def test_segment_count_mismatch(self) -> None:
        with pytest.raises(UnresolvedTemplate):
            UriTemplate("users://{userId}/profile").match("users://7")

    def test_expand(self) -> None:
        template = UriTemplate("orgs://{org}/users/{userId}")

        assert template.expand({"org": "acme", "userId": "3"}) == "orgs://acme/users/3"
        with pytest.raises(KeyError):
            template.expand({"org": "acme"})

    def test_partial_segment_placeholder_rejected(self) -> None:
        with pytest.raises(ValueError):
            UriTemplate("users://user-{id}")

    def test_duplicate_placeholder_rejected(self) -> None:
        with pytest.raises(ValueError):
            UriTemplate("pairs://{id}/{id}")
