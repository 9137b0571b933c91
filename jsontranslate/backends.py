import hashlib
import hmac
import http.client
import json
import logging
import os
import threading
import time
import urllib.parse
from datetime import datetime, timezone
from typing import Any

from .errors import ApiParseError, BackendError, MissingCredentialsError, NetworkError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
DEFAULT_COMPLETIONS_URL = "http://localhost:8020/v1/completions"
DEFAULT_COMPLETIONS_MODEL = "translategemma"
DEFAULT_MAX_TOKENS = 512
DEFAULT_MODEL_PATH = "google/translategemma-4b-it"

TENCENT_ENDPOINT = "https://tmt.tencentcloudapi.com"
TENCENT_HOST = "tmt.tencentcloudapi.com"
TENCENT_SERVICE = "tmt"
TENCENT_VERSION = "2018-03-21"
TENCENT_ACTION = "TextTranslate"
TENCENT_DEFAULT_REGION = "ap-guangzhou"
TENCENT_ALGORITHM = "TC3-HMAC-SHA256"
TENCENT_CONTENT_TYPE = "application/json; charset=utf-8"
TENCENT_SIGNED_HEADERS = "content-type;host;x-tc-action"


class HttpClient:
    def __init__(self, url: str, api_key: str = "", timeout: int = DEFAULT_TIMEOUT) -> None:
        parsed = urllib.parse.urlparse(url)
        if not parsed.scheme or not parsed.hostname:
            raise ValueError(f"Invalid URL: {url}")
        self._parsed = parsed
        self._api_key = api_key
        self._timeout = timeout
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        self._path = path
        self._thread_local = threading.local()

    def _new_connection(self) -> http.client.HTTPConnection:
        host = self._parsed.hostname
        port = self._parsed.port
        if self._parsed.scheme == "https":
            return http.client.HTTPSConnection(
                host,
                port or 443,
                timeout=self._timeout,
            )
        return http.client.HTTPConnection(
            host,
            port or 80,
            timeout=self._timeout,
        )

    def _get_connection(self) -> http.client.HTTPConnection:
        conn = getattr(self._thread_local, "conn", None)
        if conn is None:
            conn = self._new_connection()
            self._thread_local.conn = conn
        return conn

    def _reset_connection(self, conn: http.client.HTTPConnection) -> None:
        conn.close()
        self._thread_local.conn = None

    def post(self, body: bytes, headers: dict[str, str]) -> dict:
        headers = {"Connection": "keep-alive", **headers}
        if self._api_key:
            headers.setdefault("Authorization", f"Bearer {self._api_key}")
        conn = self._get_connection()
        try:
            conn.request("POST", self._path, body=body, headers=headers)
            resp = conn.getresponse()
            resp_body = resp.read()
        except (OSError, http.client.HTTPException) as exc:
            self._reset_connection(conn)
            raise NetworkError(f"POST {self._parsed.geturl()} failed: {exc}") from exc
        if resp.status >= 400:
            self._reset_connection(conn)
            message = resp_body.decode("utf-8", errors="replace")
            raise NetworkError(f"HTTP {resp.status}: {message}")
        try:
            return json.loads(resp_body)
        except ValueError as exc:
            raise ApiParseError(f"Invalid JSON response: {exc}") from exc

    def post_json(self, payload: dict, headers: dict[str, str] | None = None) -> dict:
        body = json.dumps(payload).encode("utf-8")
        return self.post(body, {"Content-Type": "application/json", **(headers or {})})


def lang_label(lang_code: str) -> str:
    mapping = {
        "en": "English",
        "it": "Italian",
        "fr": "French",
        "de": "German",
        "es": "Spanish",
        "pt": "Portuguese",
        "ru": "Russian",
        "ja": "Japanese",
        "ko": "Korean",
        "zh": "Chinese",
        "zh-hans": "Simplified Chinese",
        "zh-hant": "Traditional Chinese",
        "zh-tw": "Traditional Chinese",
    }
    key = lang_code.lower()
    return mapping.get(key, lang_code)


class Translator:
    """Translates one piece of text from ``source_lang`` to ``target_lang``.

    Instances are callable, so a translator can be handed directly to
    :func:`jsontranslate.tree.translate_tree`. ``idle_ms`` paces requests
    toward the backend by sleeping before each one.
    """

    name = ""

    def __init__(self, source_lang: str, target_lang: str, idle_ms: int = 0) -> None:
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.idle_ms = max(0, idle_ms)

    def __call__(self, text: str) -> str:
        if self.idle_ms:
            time.sleep(self.idle_ms / 1000)
        started = time.monotonic()
        translated = self.translate(text)
        elapsed = time.monotonic() - started
        LOGGER.info("Segment translated: %.2fs, %d chars", elapsed, len(text))
        return translated

    def translate(self, text: str) -> str:
        raise NotImplementedError

    def fingerprint_fields(self) -> dict:
        return {}

    def cache_fingerprint(self) -> str:
        payload = {"backend": self.name, **self.fingerprint_fields()}
        return hashlib.sha256(
            json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
        ).hexdigest()


def tc3_sign(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def build_tc3_authorization(
    secret_id: str,
    secret_key: str,
    body: bytes,
    timestamp: int,
) -> str:
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
    canonical_headers = (
        f"content-type:{TENCENT_CONTENT_TYPE}\n"
        f"host:{TENCENT_HOST}\n"
        f"x-tc-action:{TENCENT_ACTION.lower()}\n"
    )
    payload_hash = hashlib.sha256(body).hexdigest()
    canonical_request = "\n".join(
        ["POST", "/", "", canonical_headers, TENCENT_SIGNED_HEADERS, payload_hash]
    )
    credential_scope = f"{date}/{TENCENT_SERVICE}/tc3_request"
    string_to_sign = "\n".join(
        [
            TENCENT_ALGORITHM,
            str(timestamp),
            credential_scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )
    secret_date = tc3_sign(f"TC3{secret_key}".encode("utf-8"), date)
    secret_service = tc3_sign(secret_date, TENCENT_SERVICE)
    secret_signing = tc3_sign(secret_service, "tc3_request")
    signature = hmac.new(
        secret_signing, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return (
        f"{TENCENT_ALGORITHM} Credential={secret_id}/{credential_scope}, "
        f"SignedHeaders={TENCENT_SIGNED_HEADERS}, Signature={signature}"
    )


class TencentTranslator(Translator):
    name = "tencent"

    def __init__(
        self,
        source_lang: str,
        target_lang: str,
        idle_ms: int = 0,
        region: str = TENCENT_DEFAULT_REGION,
        secret_id: str | None = None,
        secret_key: str | None = None,
        client: HttpClient | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(source_lang, target_lang, idle_ms)
        self.region = region
        self._secret_id = secret_id
        self._secret_key = secret_key
        self._client = client or HttpClient(TENCENT_ENDPOINT, timeout=timeout)

    def fingerprint_fields(self) -> dict:
        return {"region": self.region}

    def _credentials(self) -> tuple[str, str]:
        secret_id = self._secret_id or os.environ.get("TENCENT_TRANSLATION_SECRET_ID")
        if not secret_id:
            raise MissingCredentialsError("Missing TENCENT_TRANSLATION_SECRET_ID")
        secret_key = self._secret_key or os.environ.get("TENCENT_TRANSLATION_SECRET_KEY")
        if not secret_key:
            raise MissingCredentialsError("Missing TENCENT_TRANSLATION_SECRET_KEY")
        return secret_id, secret_key

    def translate(self, text: str) -> str:
        secret_id, secret_key = self._credentials()
        payload = {
            "SourceText": text,
            "Source": self.source_lang,
            "Target": self.target_lang,
            "ProjectId": 0,
        }
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        timestamp = int(time.time())
        headers = {
            "Authorization": build_tc3_authorization(secret_id, secret_key, body, timestamp),
            "Content-Type": TENCENT_CONTENT_TYPE,
            "Host": TENCENT_HOST,
            "X-TC-Action": TENCENT_ACTION,
            "X-TC-Timestamp": str(timestamp),
            "X-TC-Version": TENCENT_VERSION,
        }
        if self.region:
            headers["X-TC-Region"] = self.region
        response = self._client.post(body, headers)
        result = response.get("Response")
        if not isinstance(result, dict):
            raise ApiParseError("Failed to parse response: missing Response")
        error = result.get("Error")
        if isinstance(error, dict):
            raise ApiParseError(
                f"{error.get('Code', 'UnknownError')}: {error.get('Message', '')}"
            )
        target_text = result.get("TargetText")
        if not isinstance(target_text, str):
            raise ApiParseError("Failed to parse response: missing TargetText")
        return target_text


class CompletionsTranslator(Translator):
    name = "completions"

    def __init__(
        self,
        source_lang: str,
        target_lang: str,
        idle_ms: int = 0,
        url: str = DEFAULT_COMPLETIONS_URL,
        model: str = DEFAULT_COMPLETIONS_MODEL,
        api_key: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        prompt_template: str | None = None,
        client: HttpClient | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(source_lang, target_lang, idle_ms)
        if api_key is None:
            api_key = os.environ.get("VLLM_API_KEY", "")
        completion_url = url.replace("/v1/chat/completions", "/v1/completions")
        self.url = completion_url
        self.model = model
        self.max_tokens = max_tokens
        self.prompt_template = prompt_template
        self._client = client or HttpClient(completion_url, api_key, timeout)

    def fingerprint_fields(self) -> dict:
        template = self.prompt_template or ""
        return {
            "model": self.model,
            "url": self.url,
            "max_tokens": self.max_tokens,
            "prompt": hashlib.sha256(template.encode("utf-8")).hexdigest(),
        }

    def build_prompt(self, text: str) -> str:
        source_label = lang_label(self.source_lang)
        target_label = lang_label(self.target_lang)
        if self.prompt_template is not None:
            values = {
                "source_lang": self.source_lang,
                "target_lang": self.target_lang,
                "source_label": source_label,
                "target_label": target_label,
                "text": text,
            }
            try:
                rendered = self.prompt_template.format_map(values)
            except KeyError as exc:
                LOGGER.error("Prompt template missing placeholder: %s", exc)
                raise
            if "{text}" not in self.prompt_template:
                LOGGER.warning("Prompt template missing {text}; appending text at the end")
                rendered = f"{rendered}\n{text}"
            return rendered
        return (
            "<bos>\n"
            "<start_of_turn>user\n"
            f"Translate {source_label} ({self.source_lang}) to "
            f"{target_label} ({self.target_lang}). "
            f"Output only the {target_label} translation.\n\n"
            f"{text}\n"
            "<end_of_turn>\n"
            "<start_of_turn>model\n"
        )

    def translate(self, text: str) -> str:
        payload = {
            "model": self.model,
            "prompt": self.build_prompt(text),
            "max_tokens": self.max_tokens,
            "temperature": 0.0,
            "stop": ["<end_of_turn>"],
        }
        response = self._client.post_json(payload)
        try:
            choice = response["choices"][0]
            translated = choice["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ApiParseError(f"Failed to parse response: {exc!r}") from exc
        if choice.get("finish_reason") == "length":
            LOGGER.warning("Translation truncated at %d tokens", self.max_tokens)
        return translated.strip()


def extract_generated_text(output: Any) -> str:
    if isinstance(output, list) and output:
        output = output[0]
    if isinstance(output, dict):
        generated = output.get("generated_text")
        if isinstance(generated, list) and generated:
            last = generated[-1]
            if isinstance(last, dict) and "content" in last:
                return last["content"]
        if isinstance(generated, str):
            return generated
    return str(output)


_PIPELINE_LOCKS: dict[int, tuple[Any, threading.Lock]] = {}
_PIPELINE_LOCKS_LOCK = threading.Lock()


def pipeline_lock(pipe: Any) -> threading.Lock:
    with _PIPELINE_LOCKS_LOCK:
        entry = _PIPELINE_LOCKS.get(id(pipe))
        if entry is None or entry[0] is not pipe:
            entry = (pipe, threading.Lock())
            _PIPELINE_LOCKS[id(pipe)] = entry
        return entry[1]


def load_pipeline(model_path: str, device: str) -> Any:
    try:
        import torch
        from transformers import pipeline
    except ImportError as exc:
        LOGGER.error("torch/transformers not installed; run: pip install json-translate[pipeline]")
        raise BackendError("transformers and torch are required for the pipeline backend") from exc
    if device == "cuda" and not torch.cuda.is_available():
        LOGGER.warning("CUDA not available, falling back to CPU")
        device = "cpu"
    LOGGER.info("Loading pipeline from %s", model_path)
    return pipeline(
        "image-text-to-text",
        model=model_path,
        device=0 if device == "cuda" else -1,
        dtype=torch.bfloat16,
    )


class PipelineTranslator(Translator):
    name = "pipeline"

    def __init__(
        self,
        source_lang: str,
        target_lang: str,
        idle_ms: int = 0,
        model_path: str = DEFAULT_MODEL_PATH,
        device: str = "cuda",
        max_new_tokens: int = DEFAULT_MAX_TOKENS,
        pipe: Any = None,
    ) -> None:
        super().__init__(source_lang, target_lang, idle_ms)
        self.model_path = model_path
        self.max_new_tokens = max_new_tokens
        self._pipe = pipe if pipe is not None else load_pipeline(model_path, device)
        self._lock = pipeline_lock(self._pipe)

    def fingerprint_fields(self) -> dict:
        return {"model_path": self.model_path, "max_new_tokens": self.max_new_tokens}

    def translate(self, text: str) -> str:
        messages = [
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "source_lang_code": self.source_lang,
                        "target_lang_code": self.target_lang,
                        "text": text,
                    }
                ],
            }
        ]
        with self._lock:
            output = self._pipe(
                text=messages,
                max_new_tokens=self.max_new_tokens,
                generate_kwargs={"do_sample": False},
            )
        return extract_generated_text(output).strip()


TRANSLATORS: dict[str, type[Translator]] = {
    TencentTranslator.name: TencentTranslator,
    CompletionsTranslator.name: CompletionsTranslator,
    PipelineTranslator.name: PipelineTranslator,
}


def create_translator(
    name: str,
    source_lang: str,
    target_lang: str,
    idle_ms: int = 0,
    **options: Any,
) -> Translator:
    translator_cls = TRANSLATORS.get(name)
    if translator_cls is None:
        raise ValueError(f"Unknown translator: {name}")
    return translator_cls(source_lang, target_lang, idle_ms, **options)
