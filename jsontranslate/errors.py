class JsonTranslateError(Exception):
    pass


class ReadJsonError(JsonTranslateError):
    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"Read json error: {path}: {message}")
        self.path = path


class WriteJsonError(JsonTranslateError):
    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"Write json error: {path}: {message}")
        self.path = path


class TranslateError(JsonTranslateError):
    def __init__(self, text: str, message: str) -> None:
        super().__init__(f"Translate error: {message} (text: {text!r})")
        self.text = text


class UnsupportedJsonType(JsonTranslateError):
    def __init__(
        self, key: str, parts: tuple[str, ...], path: str, type_name: str
    ) -> None:
        super().__init__(f"Unsupported json type at {path!r}: {type_name}")
        self.key = key
        self.parts = parts
        self.path = path
        self.type_name = type_name


class BackendError(Exception):
    pass


class MissingCredentialsError(BackendError):
    pass


class NetworkError(BackendError):
    pass


class ApiParseError(BackendError):
    pass
