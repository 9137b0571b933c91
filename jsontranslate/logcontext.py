import logging
import threading
from contextlib import contextmanager

LOG_FORMAT = "%(asctime)s %(levelname)s %(context)s%(message)s"

_LANGUAGE = threading.local()


@contextmanager
def language_context(source_lang: str, target_lang: str):
    previous = current_language_tag()
    _LANGUAGE.tag = f"{source_lang}->{target_lang}"
    try:
        yield
    finally:
        _LANGUAGE.tag = previous


def current_language_tag() -> str:
    return getattr(_LANGUAGE, "tag", "")


class LanguageContextFilter(logging.Filter):
    """Stamps ``record.context`` with the language pair of the current thread."""

    def filter(self, record: logging.LogRecord) -> bool:
        tag = current_language_tag()
        record.context = f"[{tag}] " if tag else ""
        return True


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(LanguageContextFilter())
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler])
