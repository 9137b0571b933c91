import json

import pytest

from jsontranslate.errors import ReadJsonError, TranslateError, UnsupportedJsonType, WriteJsonError
from jsontranslate.json_files import (
    discover_languages,
    language_path,
    load_reference,
    read_json,
    translate_language_file,
    write_json,
)


def write(path, data) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


class TestReadWriteJson:
    def test_read_missing_file(self, tmp_path) -> None:
        with pytest.raises(ReadJsonError):
            read_json(str(tmp_path / "missing.json"))

    def test_read_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ReadJsonError):
            read_json(str(path))

    def test_read_requires_object(self, tmp_path) -> None:
        path = tmp_path / "list.json"
        write(path, ["a"])
        with pytest.raises(ReadJsonError):
            read_json(str(path))

    def test_write_pretty_utf8(self, tmp_path) -> None:
        path = tmp_path / "zh.json"
        write_json(str(path), {"a": "你好", "b": {"c": "d"}})
        text = path.read_text(encoding="utf-8")
        assert '"a": "你好"' in text
        assert text.endswith("\n")
        assert json.loads(text) == {"a": "你好", "b": {"c": "d"}}

    def test_write_failure(self, tmp_path) -> None:
        with pytest.raises(WriteJsonError):
            write_json(str(tmp_path / "missing" / "zh.json"), {"a": "b"})

    def test_load_reference_degrades_to_empty(self, tmp_path, caplog) -> None:
        assert load_reference(str(tmp_path / "zh.json")) == {}
        assert "Read target json error" in caplog.text


class TestDiscoverLanguages:
    def test_lists_json_stems_without_source(self, tmp_path) -> None:
        for name in ["en.json", "zh.json", "ja.json", "notes.txt"]:
            (tmp_path / name).write_text("{}", encoding="utf-8")
        (tmp_path / "fr.json").mkdir()
        assert discover_languages(str(tmp_path), "en") == ["ja", "zh"]


class TestTranslateLanguageFile:
    def test_writes_translated_file(self, tmp_path, upper) -> None:
        write(tmp_path / "en.json", {"languages": ["en", "zh"], "hi": "Hello {name}"})
        result = translate_language_file(str(tmp_path), "en", "zh", upper)
        written = json.loads((tmp_path / "zh.json").read_text(encoding="utf-8"))
        assert written == {"languages": ["en", "zh"], "hi": "HELLO {name}"}
        assert result.translated == ["hi"]
        assert result.reused == []
        assert result.output_path == language_path(str(tmp_path), "zh")

    def test_reuses_existing_translations(self, tmp_path, upper) -> None:
        write(tmp_path / "en.json", {"a": "one", "b": {"c": "two"}, "d": "three"})
        write(tmp_path / "zh.json", {"a": "一", "b": {"c": "二"}, "old": "x"})
        result = translate_language_file(str(tmp_path), "en", "zh", upper)
        written = json.loads((tmp_path / "zh.json").read_text(encoding="utf-8"))
        assert written == {"a": "一", "b": {"c": "二"}, "d": "THREE"}
        assert result.reused == ["a", "b.c"]
        assert upper.calls == ["three"]

    def test_invalid_reference_is_not_fatal(self, tmp_path, upper) -> None:
        write(tmp_path / "en.json", {"a": "one"})
        (tmp_path / "zh.json").write_text("garbage", encoding="utf-8")
        translate_language_file(str(tmp_path), "en", "zh", upper)
        written = json.loads((tmp_path / "zh.json").read_text(encoding="utf-8"))
        assert written == {"a": "ONE"}

    def test_missing_source_is_fatal(self, tmp_path, upper) -> None:
        with pytest.raises(ReadJsonError):
            translate_language_file(str(tmp_path), "en", "zh", upper)
        assert not (tmp_path / "zh.json").exists()

    def test_unsupported_type_leaves_destination_untouched(self, tmp_path, upper) -> None:
        write(tmp_path / "en.json", {"a": "one", "n": 3})
        write(tmp_path / "zh.json", {"a": "一"})
        with pytest.raises(UnsupportedJsonType):
            translate_language_file(str(tmp_path), "en", "zh", upper)
        assert json.loads((tmp_path / "zh.json").read_text(encoding="utf-8")) == {"a": "一"}

    def test_translate_failure_writes_nothing(self, tmp_path) -> None:
        write(tmp_path / "en.json", {"a": "one"})

        def broken(text: str) -> str:
            raise OSError("timeout")

        with pytest.raises(TranslateError):
            translate_language_file(str(tmp_path), "en", "zh", broken)
        assert not (tmp_path / "zh.json").exists()
