"""Unit tests for model reply parsing helpers."""

from smeta.utils.json_parser import parse_json_safely, strip_code_fences


class TestStripCodeFences:

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"

    def test_fence_inside_prose(self):
        text = 'Here is the result:\n```json\n{"rooms": []}\n```\nHope this helps.'
        assert strip_code_fences(text) == '{"rooms": []}'

    def test_unterminated_fence(self):
        assert strip_code_fences('```json\n{"a": 1}') == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseJsonSafely:

    def test_fenced_array(self):
        result = parse_json_safely('```json\n[{"page_number": 1}]\n```')
        assert result == [{"page_number": 1}]

    def test_object_with_surrounding_text(self):
        result = parse_json_safely('Result: {"address": "Москва", "rooms": []} done')
        assert result == {"address": "Москва", "rooms": []}

    def test_concatenated_objects_become_list(self):
        result = parse_json_safely('{"title": "A"}\n{"title": "B"}')
        assert result == [{"title": "A"}, {"title": "B"}]

    def test_garbage_returns_none(self):
        assert parse_json_safely("I could not read the document.") is None

    def test_empty_returns_none(self):
        assert parse_json_safely("") is None
        assert parse_json_safely("```json\n```") is None
