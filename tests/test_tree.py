import copy

import pytest

from jsontranslate.errors import TranslateError, UnsupportedJsonType
from jsontranslate.tree import NodeKind, node_kind, translate_tree

SOURCE = {
    "languages": {"en": "English", "zh": "中文"},
    "title": "Settings",
    "greeting": "Hello {name}, welcome!",
    "menu": {
        "open": "Open",
        "recent": {"empty": "No recent files", "count": "{n} files"},
    },
}


def key_sets(tree: dict) -> list:
    keys = [sorted(tree)]
    for key, value in tree.items():
        if key != "languages" and isinstance(value, dict):
            keys.append((key, key_sets(value)))
    return keys


class TestNodeKind:
    @pytest.mark.parametrize(
        "value, kind",
        [
            ("text", NodeKind.STRING),
            ({}, NodeKind.OBJECT),
            (5, NodeKind.UNSUPPORTED),
            (1.5, NodeKind.UNSUPPORTED),
            (True, NodeKind.UNSUPPORTED),
            (None, NodeKind.UNSUPPORTED),
            ([1, 2], NodeKind.UNSUPPORTED),
        ],
    )
    def test_classification(self, value, kind) -> None:
        assert node_kind(value) is kind


class TestTranslateTree:
    def test_translates_all_leaves(self, upper) -> None:
        output = translate_tree(SOURCE, {}, upper)
        assert output == {
            "languages": {"en": "English", "zh": "中文"},
            "title": "SETTINGS",
            "greeting": "HELLO {name}, WELCOME!",
            "menu": {
                "open": "OPEN",
                "recent": {"empty": "NO RECENT FILES", "count": "{n} FILES"},
            },
        }

    def test_output_has_source_key_set(self, upper) -> None:
        reference = {"extra": "gone", "menu": {"stale": "x", "open": "Ouvrir"}}
        output = translate_tree(SOURCE, reference, upper)
        assert key_sets(output) == key_sets(SOURCE)

    def test_reserved_key_copied_verbatim(self, upper) -> None:
        output = translate_tree({"languages": [1, 2, 3], "a": "x"}, {}, upper)
        assert output == {"languages": [1, 2, 3], "a": "X"}
        assert upper.calls == ["x"]

    def test_reserved_key_in_nested_object(self, upper) -> None:
        output = translate_tree({"sub": {"languages": None, "b": "y"}}, {}, upper)
        assert output == {"sub": {"languages": None, "b": "Y"}}

    def test_unsupported_type_fails_without_translating(self, never_called) -> None:
        with pytest.raises(UnsupportedJsonType) as excinfo:
            translate_tree({"a": 5}, {}, never_called)
        assert excinfo.value.key == "a"
        assert excinfo.value.type_name == "int"

    def test_unsupported_type_reports_nested_path(self, upper) -> None:
        with pytest.raises(UnsupportedJsonType) as excinfo:
            translate_tree({"a": {"b": {"c": [1]}}}, {}, upper)
        assert excinfo.value.path == "a.b.c"

    @pytest.mark.parametrize("value", [[], True, None, 2.5])
    def test_other_unsupported_values(self, value, upper) -> None:
        with pytest.raises(UnsupportedJsonType):
            translate_tree({"k": value}, {}, upper)

    def test_nested_reuse(self, never_called) -> None:
        output = translate_tree({"a": {"b": "hi"}}, {"a": {"b": "reused"}}, never_called)
        assert output == {"a": {"b": "reused"}}

    def test_reuse_is_idempotent(self, upper, never_called) -> None:
        first = translate_tree(SOURCE, {}, upper)
        second = translate_tree(SOURCE, first, never_called)
        assert second == first

    def test_partial_reference(self, upper) -> None:
        output = translate_tree(
            {"a": "one", "b": "two"}, {"a": "uno", "c": "tres"}, upper
        )
        assert output == {"a": "uno", "b": "TWO"}
        assert upper.calls == ["two"]

    def test_non_string_reference_value_is_ignored(self, upper) -> None:
        output = translate_tree({"a": "one"}, {"a": {"nested": "x"}}, upper)
        assert output == {"a": "ONE"}

    def test_non_object_reference_subtree_is_ignored(self, upper) -> None:
        output = translate_tree({"a": {"b": "two"}}, {"a": "flat"}, upper)
        assert output == {"a": {"b": "TWO"}}

    def test_missing_reference(self, upper) -> None:
        assert translate_tree({"a": "x"}, None, upper) == {"a": "X"}

    def test_inputs_not_mutated(self, upper) -> None:
        source = copy.deepcopy(SOURCE)
        reference = {"title": "Réglages", "menu": {"open": "Ouvrir"}}
        reference_copy = copy.deepcopy(reference)
        translate_tree(source, reference, upper)
        assert source == SOURCE
        assert reference == reference_copy

    def test_translate_failure_propagates(self) -> None:
        def broken(text: str) -> str:
            raise ConnectionError("offline")

        with pytest.raises(TranslateError):
            translate_tree({"a": {"b": "text"}}, {}, broken)

    def test_iterates_in_source_order(self, upper) -> None:
        translate_tree({"z": "last", "a": "first", "m": {"x": "mid"}}, {}, upper)
        assert upper.calls == ["last", "first", "mid"]

    def test_on_leaf_reports_paths(self, upper) -> None:
        seen = []
        translate_tree(
            {"a": "x", "b": {"c": "y"}},
            {"b": {"c": "done"}},
            upper,
            lambda path, reused: seen.append((path, reused)),
        )
        assert seen == [("a", False), ("b.c", True)]

    def test_dotted_keys_give_distinct_paths(self, upper) -> None:
        with pytest.raises(UnsupportedJsonType) as dotted:
            translate_tree({"a.b": {"c": 1}}, {}, upper)
        with pytest.raises(UnsupportedJsonType) as nested:
            translate_tree({"a": {"b": {"c": 1}}}, {}, upper)
        assert dotted.value.path == '"a.b".c'
        assert nested.value.path == "a.b.c"
        assert dotted.value.parts == ("a.b", "c")
        assert nested.value.parts == ("a", "b", "c")
