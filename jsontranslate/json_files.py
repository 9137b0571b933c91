import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import ReadJsonError, WriteJsonError
from .tree import translate_tree

LOGGER = logging.getLogger(__name__)


@dataclass
class LanguageResult:
    source_lang: str
    target_lang: str
    output_path: str
    reused: list[str] = field(default_factory=list)
    translated: list[str] = field(default_factory=list)


def language_path(root_path: str, lang: str) -> str:
    return os.path.join(root_path, f"{lang}.json")


def read_json(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise ReadJsonError(path, str(exc)) from exc
    if not isinstance(data, dict):
        raise ReadJsonError(path, f"top level must be an object, got {type(data).__name__}")
    return data


def write_json(path: str, tree: dict) -> None:
    try:
        text = json.dumps(tree, ensure_ascii=False, indent=2)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
            f.write("\n")
    except (OSError, TypeError, ValueError) as exc:
        raise WriteJsonError(path, str(exc)) from exc


def load_reference(path: str) -> dict:
    try:
        return read_json(path)
    except ReadJsonError as exc:
        LOGGER.warning("Read target json error, starting from scratch --> %s", exc)
        return {}


def discover_languages(root_path: str, source_lang: str) -> list[str]:
    langs = []
    for name in os.listdir(root_path):
        stem, ext = os.path.splitext(name)
        if ext != ".json" or stem == source_lang:
            continue
        if os.path.isfile(os.path.join(root_path, name)):
            langs.append(stem)
    return sorted(langs)


def translate_language_file(
    root_path: str,
    source_lang: str,
    target_lang: str,
    translate: Callable[[str], str],
) -> LanguageResult:
    src_path = language_path(root_path, source_lang)
    dst_path = language_path(root_path, target_lang)
    source = read_json(src_path)
    reference = load_reference(dst_path)

    result = LanguageResult(source_lang, target_lang, dst_path)

    def on_leaf(path: str, reused: bool) -> None:
        if reused:
            result.reused.append(path)
        else:
            result.translated.append(path)

    output = translate_tree(source, reference, translate, on_leaf)
    write_json(dst_path, output)
    LOGGER.info(
        "Saved: %s (%d translated, %d reused)",
        dst_path,
        len(result.translated),
        len(result.reused),
    )
    return result
