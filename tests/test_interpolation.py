"""Tests for template interpolation."""

from automation.core.interpolation import MISSING, interpolate, resolve_path, to_text


class TestResolvePath:
    """Test cases for dotted path resolution."""

    def test_nested_mapping(self):
        assert resolve_path("a.b.c", {"a": {"b": {"c": 3}}}) == 3

    def test_missing_segment(self):
        assert resolve_path("a.x", {"a": {"b": 1}}) is MISSING
        assert resolve_path("a", {}) is MISSING

    def test_list_index(self):
        context = {"items": [{"name": "first"}, {"name": "second"}]}
        assert resolve_path("items.1.name", context) == "second"
        assert resolve_path("items.5.name", context) is MISSING
        assert resolve_path("items.first", context) is MISSING

    def test_negative_index_does_not_resolve(self):
        context = {"items": ["first", "last"]}
        assert resolve_path("items.-1", context) is MISSING
        assert resolve_path("items.-0", context) is MISSING
        assert interpolate("{{items.-1}}", context) == "{{items.-1}}"

    def test_hyphenated_keys_resolve(self):
        assert resolve_path("headers.x-request-id", {"headers": {"x-request-id": "r1"}}) == "r1"

    def test_attribute_access(self):
        class User:
            name = "ada"
            _secret = "hidden"

        assert resolve_path("user.name", {"user": User()}) == "ada"
        assert resolve_path("user._secret", {"user": User()}) is MISSING

    def test_none_along_path(self):
        assert resolve_path("a.b", {"a": None}) is MISSING

    def test_explicit_none_value(self):
        assert resolve_path("a", {"a": None}) is None


class TestInterpolate:
    """Test cases for interpolate()."""

    def test_string_without_placeholders_is_unchanged(self):
        text = "plain text with {single} braces"
        assert interpolate(text, {"single": "x"}) == text

    def test_dotted_placeholder(self):
        assert interpolate("{{a.b}}", {"a": {"b": "X"}}) == "X"

    def test_missing_placeholder_left_as_is(self):
        assert interpolate("{{a.b}}", {}) == "{{a.b}}"

    def test_none_value_left_as_is(self):
        assert interpolate("Hi {{name}}", {"name": None}) == "Hi {{name}}"

    def test_falsy_values_are_substituted(self):
        assert interpolate("{{n}}|{{s}}|{{f}}", {"n": 0, "s": "", "f": False}) == "0||false"

    def test_whitespace_inside_braces(self):
        assert interpolate("Hello {{ user.name }}!", {"user": {"name": "Ada"}}) == "Hello Ada!"

    def test_multiple_placeholders(self):
        result = interpolate("{{greeting}}, {{user.name}} ({{missing}})", {
            "greeting": "Hi",
            "user": {"name": "Ada"},
        })
        assert result == "Hi, Ada ({{missing}})"

    def test_structured_values_render_as_json(self):
        assert interpolate("{{data}}", {"data": {"k": [1, 2]}}) == '{"k":[1,2]}'

    def test_nested_structures(self):
        template = {
            "title": "Report for {{user.name}}",
            "tags": ["{{tag}}", "static"],
            "count": 3,
            "nested": {"flag": True, "text": "{{missing.path}}"},
        }
        result = interpolate(template, {"user": {"name": "Ada"}, "tag": "weekly"})
        assert result == {
            "title": "Report for Ada",
            "tags": ["weekly", "static"],
            "count": 3,
            "nested": {"flag": True, "text": "{{missing.path}}"},
        }

    def test_keys_are_not_interpolated(self):
        assert interpolate({"{{k}}": "{{k}}"}, {"k": "v"}) == {"{{k}}": "v"}

    def test_tuple_type_is_preserved(self):
        assert interpolate(("{{a}}", 1), {"a": "x"}) == ("x", 1)

    def test_scalars_pass_through(self):
        for value in (None, 1, 2.5, True):
            assert interpolate(value, {"a": 1}) is value

    def test_inputs_are_not_mutated(self):
        template = {"list": ["{{a}}"]}
        context = {"a": "x"}
        interpolate(template, context)
        assert template == {"list": ["{{a}}"]}
        assert context == {"a": "x"}

    def test_unprintable_integer_is_left_as_is(self):
        huge = 10 ** 5000
        assert interpolate("{{n}}", {"n": huge}) == "{{n}}"
        assert interpolate("{{data}}", {"data": {"n": huge}}) == "{{data}}"
        assert interpolate({"a": "{{n}}", "b": "{{ok}}"}, {"n": huge, "ok": 1}) == {"a": "{{n}}", "b": "1"}


class TestToText:

    def test_booleans(self):
        assert to_text(True) == "true"
        assert to_text(False) == "false"

    def test_numbers(self):
        assert to_text(1.5) == "1.5"
