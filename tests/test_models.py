import pytest
from pydantic import ValidationError

from openapi_rulegen.parser.base import (
    Constraints,
    EndpointDefinition,
    OpenApiDocument,
    SchemaNode,
    check_pattern,
    generate_operation_id,
    normalize_parameters,
    to_pascal_case,
)


class TestConstraints:
    def test_aliases_and_field_names(self):
        c = Constraints.model_validate({"minLength": 2, "maxLength": 10})
        assert c.min_length == 2
        assert Constraints(min_length=2).min_length == 2

    def test_min_greater_than_max_rejected(self):
        with pytest.raises(ValidationError, match="minLength cannot be greater than maxLength"):
            Constraints.from_schema({"minLength": 5, "maxLength": 2})

    def test_minimum_greater_than_maximum_rejected(self):
        with pytest.raises(ValidationError):
            Constraints.from_schema({"minimum": 10, "maximum": 1})

    def test_exclusive_bounds_must_be_ordered(self):
        with pytest.raises(ValidationError):
            Constraints.from_schema({"exclusiveMinimum": 5, "exclusiveMaximum": 5})

    def test_multiple_of_must_be_positive(self):
        with pytest.raises(ValidationError):
            Constraints.from_schema({"multipleOf": 0})

    def test_negative_length_rejected(self):
        with pytest.raises(ValidationError):
            Constraints.from_schema({"minItems": -1})

    def test_boolean_exclusive_minimum_takes_companion_value(self):
        c = Constraints.from_schema({"minimum": 5, "exclusiveMinimum": True})
        assert c.exclusive_minimum == 5
        assert c.minimum == 5

    def test_boolean_exclusive_false_means_no_bound(self):
        c = Constraints.from_schema({"maximum": 9, "exclusiveMaximum": False})
        assert c.exclusive_maximum is None
        assert c.maximum == 9

    def test_boolean_exclusive_without_companion_is_dropped(self):
        c = Constraints.from_schema({"exclusiveMinimum": True})
        assert c.exclusive_minimum is None

    def test_from_schema_ignores_other_keywords(self):
        c = Constraints.from_schema({"type": "string", "format": "email", "maxLength": 3})
        assert c.to_dict() == {"maxLength": 3}

    def test_empty_enum_is_not_an_enum(self):
        c = Constraints(enum=[])
        assert c.has_enum() is False
        assert "enum" not in c.to_dict()

    def test_type_specific_queries(self):
        c = Constraints.from_schema({"minItems": 1, "pattern": "^a"})
        assert c.has_array_constraints()
        assert c.has_string_constraints()
        assert not c.has_numeric_constraints()

    def test_escaped_pattern(self):
        assert Constraints(pattern="^a/b$").escaped_pattern() == "^a\\/b$"
        assert Constraints().escaped_pattern() == ""

    def test_merge_prefers_other(self):
        merged = Constraints(min_length=1, max_length=5).merge(Constraints(max_length=8))
        assert merged.min_length == 1
        assert merged.max_length == 8

    def test_complexity_score_weights_pattern(self):
        assert Constraints(pattern="x", min_length=1).complexity_score() == 3

    def test_summary_lines(self):
        lines = Constraints(enum=["a", "b"], unique_items=True).summary()
        assert "enum: [a, b]" in lines
        assert "uniqueItems: true" in lines


class TestSchemaNode:
    def _user(self) -> SchemaNode:
        return SchemaNode(
            type="object",
            properties={
                "name": SchemaNode(type="string"),
                "tags": SchemaNode(type="array", items=SchemaNode(type="string")),
                "address": SchemaNode(type="object", properties={"city": SchemaNode(type="string")}),
            },
            required=["name", "ghost"],
        )

    def test_defaults(self):
        node = SchemaNode()
        assert node.type == "string"
        assert node.properties == {}
        assert node.items is None
        assert node.is_primitive()

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            SchemaNode(type="file")

    def test_array_without_items_is_constructible(self):
        assert SchemaNode(type="array").items is None

    def test_required_queries(self):
        node = self._user()
        assert node.required_properties() == ["name"]
        assert node.optional_properties() == ["tags", "address"]
        assert node.missing_required() == ["ghost"]
        assert node.is_required("name")

    def test_nested_schemas_keys(self):
        assert list(self._user().nested_schemas()) == ["name", "tags", "tags.*", "address", "address.city"]

    def test_depth(self):
        node = self._user()
        assert node.max_depth() == 2
        assert node.nesting_level() == 2
        assert SchemaNode(type="integer").nesting_level() == 0

    def test_type_and_format_rules(self):
        assert SchemaNode(type="number").type_rule() == "numeric"
        assert SchemaNode(type="object").type_rule() == "array"
        assert SchemaNode(format="uuid").format_rule() == "uuid"
        assert SchemaNode(format="date").format_rule() == "date_format:Y-m-d"
        assert SchemaNode(format="unheard-of").format_rule() is None

    def test_circular_reference_detection(self):
        node = SchemaNode(ref="#/components/schemas/A", properties={"self": SchemaNode(ref="#/components/schemas/A")})
        assert node.has_circular_reference()
        assert not self._user().has_circular_reference()

    def test_to_dict_flattens_constraints(self):
        node = SchemaNode(type="string", constraints=Constraints(max_length=4), description="Code")
        assert node.to_dict() == {"type": "string", "maxLength": 4, "description": "Code"}


class TestEndpointDefinition:
    def test_method_is_upper_cased(self):
        endpoint = EndpointDefinition(path="/users", method="post", operation_id="createUser")
        assert endpoint.method == "POST"
        assert endpoint.display_name == "POST /users"

    def test_invalid_method_rejected(self):
        with pytest.raises(ValidationError, match="Invalid HTTP method"):
            EndpointDefinition(path="/users", method="FETCH", operation_id="x")

    def test_path_must_start_with_slash(self):
        with pytest.raises(ValidationError):
            EndpointDefinition(path="users", method="GET", operation_id="x")

    def test_operation_id_must_start_with_letter(self):
        with pytest.raises(ValidationError, match="Invalid operation ID"):
            EndpointDefinition(path="/users", method="GET", operation_id="1list")

    def test_normalized_signature_ignores_parameter_names(self):
        first = EndpointDefinition(path="/users/{id}/posts/{post}", method="GET", operation_id="a")
        second = EndpointDefinition(path="/users/{userId}/posts/{postId}", method="GET", operation_id="b")
        assert first.normalized_signature() == second.normalized_signature() == "GET:/users/{param1}/posts/{param2}"
        assert first.path_parameters() == ["id", "post"]

    def test_form_request_class_name(self):
        assert EndpointDefinition(path="/u", method="POST", operation_id="createUser").form_request_class_name() == "CreateUserRequest"
        assert EndpointDefinition(path="/u", method="POST", operation_id="storeRequest").form_request_class_name() == "StoreRequest"

    def test_from_operation_generates_operation_id(self):
        endpoint = EndpointDefinition.from_operation("/user-profiles/{id}", "get", {"tags": ["profiles", 3]})
        assert endpoint.operation_id == "getUserProfilesId"
        assert endpoint.tags == ["profiles"]
        assert endpoint.is_read_operation()

    def test_parameter_names(self):
        endpoint = EndpointDefinition(
            path="/users",
            method="GET",
            operation_id="listUsers",
            parameters=[{"name": "page", "in": "query"}, {"name": "q", "in": "query", "required": True}],
        )
        assert endpoint.parameter_names() == ["page", "q"]
        assert endpoint.required_parameter_names() == ["q"]


class TestOpenApiDocument:
    def test_from_dict_tolerates_garbage(self):
        doc = OpenApiDocument.from_dict({"openapi": "3.1.0", "info": "nope", "paths": None, "servers": ["x", {"url": "/"}]})
        assert doc.info == {}
        assert doc.paths == {}
        assert doc.servers == [{"url": "/"}]
        assert doc.title == "Untitled API"

    def test_operation_queries(self):
        doc = OpenApiDocument.from_dict(
            {
                "openapi": "3.0.0",
                "paths": {
                    "/a": {"get": {}, "post": {}, "parameters": []},
                    "/b": {"get": {}, "delete": {}},
                },
            }
        )
        assert doc.operation_count() == 4
        assert doc.all_methods() == ["GET", "POST", "DELETE"]


class TestHelpers:
    def test_generate_operation_id(self):
        assert generate_operation_id("/users", "POST") == "postUsers"
        assert generate_operation_id("/user-profiles/{id}", "GET") == "getUserProfilesId"

    def test_normalize_parameters(self):
        assert normalize_parameters("/a/{x}/b/{y}") == "/a/{param1}/b/{param2}"
        assert normalize_parameters("/plain") == "/plain"

    def test_to_pascal_case(self):
        assert to_pascal_case("create_user-profile") == "CreateUserProfile"
        assert to_pascal_case("createUser") == "CreateUser"

    def test_check_pattern_balanced(self):
        assert check_pattern("^[a-z(]+\\($") == []
        assert check_pattern("^\\d{5}$") == []

    def test_check_pattern_unbalanced(self):
        assert "Unbalanced '('" in check_pattern("(abc")[0]
        assert "Unbalanced ']'" in check_pattern("abc]")[0]
        assert "Unterminated character class" in check_pattern("[abc")[0]

    def test_check_pattern_flags_rule_separator(self):
        warnings = check_pattern("^(cat|dog)$")
        assert len(warnings) == 1
        assert "'|'" in warnings[0]
