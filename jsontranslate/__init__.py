from .errors import (
    ApiParseError,
    BackendError,
    JsonTranslateError,
    MissingCredentialsError,
    NetworkError,
    ReadJsonError,
    TranslateError,
    UnsupportedJsonType,
    WriteJsonError,
)
from .segmenter import segment_and_translate
from .tree import translate_tree

__all__ = [
    "ApiParseError",
    "BackendError",
    "JsonTranslateError",
    "MissingCredentialsError",
    "NetworkError",
    "ReadJsonError",
    "TranslateError",
    "UnsupportedJsonType",
    "WriteJsonError",
    "segment_and_translate",
    "translate_tree",
]
