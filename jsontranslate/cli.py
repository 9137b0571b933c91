import argparse
import concurrent.futures
import logging
import os
import time
from collections.abc import Callable

from .backends import (
    DEFAULT_COMPLETIONS_MODEL,
    DEFAULT_COMPLETIONS_URL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL_PATH,
    TENCENT_DEFAULT_REGION,
    TRANSLATORS,
    Translator,
    create_translator,
    load_pipeline,
)
from .cache import CachedTranslate, PersistentCache
from .config import (
    DEFAULT_CACHE_ENABLED,
    DEFAULT_CACHE_PATH,
    DEFAULT_CONFIG_PATH,
    DEFAULT_IDLE_MS,
    DEFAULT_PATH,
    DEFAULT_SOURCE_LANG,
    DEFAULT_TARGET_LANG,
    DEFAULT_TRANSLATOR,
    DEFAULT_WORKERS,
    get_config_section,
    load_config,
    read_bool,
    read_int,
    read_str,
    read_str_list,
)
from .errors import BackendError, JsonTranslateError
from .json_files import discover_languages, translate_language_file
from .logcontext import configure_logging, language_context

LOGGER = logging.getLogger(__name__)
configure_logging()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="json-translate",
        description="Translate localization JSON files, reusing existing translations",
    )
    parser.add_argument("--src", "-s", help=f"source language (default {DEFAULT_SOURCE_LANG})")
    parser.add_argument(
        "--dst",
        "-d",
        action="append",
        help=f"target language, repeatable (default {DEFAULT_TARGET_LANG})",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="translate every <lang>.json found in --path except the source",
    )
    parser.add_argument("--path", "-p", help="folder path to json files (default .)")
    parser.add_argument(
        "--translator",
        "-t",
        choices=sorted(TRANSLATORS),
        help=f"translation backend (default {DEFAULT_TRANSLATOR})",
    )
    parser.add_argument(
        "--idle",
        "-i",
        type=int,
        help=f"idle time in ms before each request (default {DEFAULT_IDLE_MS})",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="number of target languages translated in parallel",
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="config file path (TOML, default: pyproject.toml)",
    )
    parser.add_argument("--cache-path", help="persistent translation cache path")
    parser.add_argument(
        "--disable-cache",
        action="store_true",
        help="disable persistent translation cache",
    )
    parser.add_argument("--tencent-region", help="Tencent Cloud region")
    parser.add_argument(
        "--url",
        help="OpenAI compatible completion endpoint (completions backend)",
    )
    parser.add_argument("--model", help="served model name (completions backend)")
    parser.add_argument(
        "--api-key",
        default=os.environ.get("VLLM_API_KEY", ""),
        help="API key for the completions backend (env VLLM_API_KEY)",
    )
    parser.add_argument(
        "--prompt-template",
        help="prompt template file with placeholders "
        "{source_lang}, {target_lang}, {source_label}, {target_label}, {text}",
    )
    parser.add_argument("--max-tokens", type=int, help="max output tokens per request")
    parser.add_argument("--model-path", help="local model path (pipeline backend)")
    parser.add_argument("--device", help="device: cuda or cpu (pipeline backend)")
    return parser


def load_prompt_template(path: str | None) -> str | None:
    if not path:
        return None
    if not os.path.exists(path):
        LOGGER.warning("Prompt template not found: %s", path)
        return None
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def backend_options(args: argparse.Namespace, config: dict, translator: str) -> dict:
    if translator == "tencent":
        return {
            "region": args.tencent_region
            or read_str(config, "tencent_region", TENCENT_DEFAULT_REGION),
        }
    if translator == "completions":
        return {
            "url": args.url or read_str(config, "url", DEFAULT_COMPLETIONS_URL),
            "model": args.model or read_str(config, "model", DEFAULT_COMPLETIONS_MODEL),
            "api_key": args.api_key,
            "max_tokens": (
                read_int(config, "max_tokens", DEFAULT_MAX_TOKENS)
                if args.max_tokens is None
                else max(1, args.max_tokens)
            ),
            "prompt_template": load_prompt_template(
                args.prompt_template or config.get("prompt_template")
            ),
        }
    return {
        "max_new_tokens": (
            read_int(config, "max_tokens", DEFAULT_MAX_TOKENS)
            if args.max_tokens is None
            else max(1, args.max_tokens)
        ),
    }


def run_language(
    root_path: str,
    source_lang: str,
    target_lang: str,
    make_translate: Callable[[str], CachedTranslate],
) -> bool:
    with language_context(source_lang, target_lang):
        started = time.monotonic()
        try:
            translate = make_translate(target_lang)
            translate_language_file(root_path, source_lang, target_lang, translate)
        except (JsonTranslateError, BackendError, ValueError) as exc:
            LOGGER.error("Translate %s -> %s failed: %s", source_lang, target_lang, exc)
            return False
        elapsed = time.monotonic() - started
        LOGGER.info("Translate success: %s -> %s (%.2fs)", source_lang, target_lang, elapsed)
        LOGGER.info("Requests sent: %d, cache hits: %d", translate.requests, translate.hits)
        return True


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config_section(load_config(args.config))
    config_cache = config.get("cache", {})

    source_lang = args.src or read_str(config, "source_lang", DEFAULT_SOURCE_LANG)
    root_path = args.path or read_str(config, "path", DEFAULT_PATH)
    translator_name = args.translator or read_str(config, "translator", DEFAULT_TRANSLATOR)
    if translator_name not in TRANSLATORS:
        LOGGER.error("Unknown translator: %s", translator_name)
        return 1
    idle_ms = read_int(config, "idle", DEFAULT_IDLE_MS) if args.idle is None else args.idle
    workers = (
        read_int(config, "workers", DEFAULT_WORKERS)
        if args.workers is None
        else args.workers
    )
    workers = max(1, workers)

    if args.all:
        try:
            target_langs = discover_languages(root_path, source_lang)
        except OSError as exc:
            LOGGER.error("Cannot list %s: %s", root_path, exc)
            return 1
    else:
        target_langs = args.dst or read_str_list(config, "target_langs", [DEFAULT_TARGET_LANG])
    target_langs = list(dict.fromkeys(target_langs))
    if source_lang in target_langs:
        LOGGER.warning("Skipping target %s: same as source", source_lang)
        target_langs = [lang for lang in target_langs if lang != source_lang]
    if not target_langs:
        LOGGER.error("No target languages to translate")
        return 1

    cache_enabled = read_bool(config_cache, "enabled", DEFAULT_CACHE_ENABLED) and not args.disable_cache
    cache_path = args.cache_path or read_str(config_cache, "path", DEFAULT_CACHE_PATH)
    persistent_cache = PersistentCache(cache_path) if cache_enabled else None
    if persistent_cache is not None:
        LOGGER.info("Persistent cache enabled: %s", cache_path)

    options = backend_options(args, config, translator_name)
    if translator_name == "pipeline":
        options["model_path"] = args.model_path or read_str(
            config, "model_path", DEFAULT_MODEL_PATH
        )
        try:
            options["pipe"] = load_pipeline(
                options["model_path"],
                args.device or read_str(config, "device", "cuda"),
            )
        except BackendError as exc:
            LOGGER.error("%s", exc)
            return 1

    def make_translate(target_lang: str) -> CachedTranslate:
        translator: Translator = create_translator(
            translator_name, source_lang, target_lang, idle_ms, **options
        )
        return CachedTranslate(
            translator,
            source_lang,
            target_lang,
            translator.cache_fingerprint(),
            persistent_cache,
        )

    LOGGER.info("Translating %s -> %s", source_lang, ", ".join(target_langs))
    try:
        if workers == 1 or len(target_langs) == 1:
            results = [
                run_language(root_path, source_lang, lang, make_translate)
                for lang in target_langs
            ]
        else:
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(
                    executor.map(
                        lambda lang: run_language(root_path, source_lang, lang, make_translate),
                        target_langs,
                    )
                )
    finally:
        if persistent_cache is not None:
            persistent_cache.close()

    failed = [lang for lang, ok in zip(target_langs, results) if not ok]
    if failed:
        LOGGER.error("Failed languages: %s", ", ".join(failed))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
