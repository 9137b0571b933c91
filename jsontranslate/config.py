import logging
import os
import tomllib

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.environ.get("JSONTRANSLATE_CONFIG", "pyproject.toml")
DEFAULT_SOURCE_LANG = "en"
DEFAULT_TARGET_LANG = "zh"
DEFAULT_PATH = "."
DEFAULT_TRANSLATOR = "tencent"
DEFAULT_IDLE_MS = 200
DEFAULT_WORKERS = 1
DEFAULT_CACHE_PATH = ".jsontranslate_cache.sqlite3"
DEFAULT_CACHE_ENABLED = False


def load_config(path: str) -> dict | None:
    if not path:
        return None
    if not os.path.exists(path):
        return None
    with open(path, "rb") as f:
        config = tomllib.load(f)
    LOGGER.info("Loaded config: %s", path)
    return config


def get_config_section(config: dict | None) -> dict:
    if not config:
        return {}
    tool = config.get("tool", {})
    return tool.get("jsontranslate", {})


def read_int(config: dict, key: str, default: int) -> int:
    value = config.get(key, default)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def read_bool(config: dict, key: str, default: bool) -> bool:
    value = config.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def read_str(config: dict, key: str, default: str) -> str:
    value = config.get(key, default)
    if value is None:
        return default
    return str(value)


def read_str_list(config: dict, key: str, default: list[str]) -> list[str]:
    value = config.get(key)
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part) for part in value]
    return list(default)
