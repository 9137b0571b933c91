import re
from collections.abc import Callable, Iterator

from .errors import TranslateError

PLACEHOLDER_PATTERN = re.compile(r"\{[^}]+\}")


def split_placeholders(text: str) -> Iterator[tuple[bool, str]]:
    last_end = 0
    for match in PLACEHOLDER_PATTERN.finditer(text):
        if match.start() > last_end:
            yield False, text[last_end:match.start()]
        yield True, match.group(0)
        last_end = match.end()
    if last_end < len(text):
        yield False, text[last_end:]


def call_translate(translate: Callable[[str], str], text: str) -> str:
    try:
        return translate(text)
    except TranslateError:
        raise
    except Exception as exc:
        raise TranslateError(text, str(exc) or type(exc).__name__) from exc


def segment_and_translate(text: str, translate: Callable[[str], str]) -> str:
    if not PLACEHOLDER_PATTERN.search(text):
        return call_translate(translate, text)

    pieces: list[str] = []
    pending_space = False
    for is_placeholder, span in split_placeholders(text):
        if is_placeholder:
            piece = span
            leading_space = trailing_space = False
        else:
            stripped = span.strip()
            if not stripped:
                pending_space = True
                continue
            piece = call_translate(translate, stripped)
            leading_space = span[0].isspace()
            trailing_space = span[-1].isspace()
            if not piece:
                pending_space = pending_space or leading_space or trailing_space
                continue
        if pieces and (pending_space or leading_space):
            pieces.append(" ")
        pieces.append(piece)
        pending_space = trailing_space
    return "".join(pieces).strip()
