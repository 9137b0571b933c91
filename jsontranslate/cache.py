import hashlib
import json
import sqlite3
import threading
from collections.abc import Callable


class PersistentCache:
    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS translations ("
            "key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        self._conn.commit()

    def get(self, key: str) -> str | None:
        with self._lock:
            cur = self._conn.execute(
                "SELECT value FROM translations WHERE key = ?", (key,)
            )
            row = cur.fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO translations (key, value) VALUES (?, ?)",
                (key, value),
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def build_cache_key(text: str, source_lang: str, target_lang: str, fingerprint: str) -> str:
    payload = {
        "text": text,
        "source_lang": source_lang,
        "target_lang": target_lang,
        "fingerprint": fingerprint,
    }
    digest = hashlib.sha256(
        json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
    ).hexdigest()
    return digest


class CachedTranslate:
    """Memoizing wrapper around a single-argument translate callable.

    Usable anywhere a ``translate(text) -> str`` capability is expected.
    Hits are served from memory first, then from the optional SQLite cache.
    """

    def __init__(
        self,
        translate: Callable[[str], str],
        source_lang: str,
        target_lang: str,
        fingerprint: str,
        persistent_cache: PersistentCache | None = None,
    ) -> None:
        self._translate = translate
        self._source_lang = source_lang
        self._target_lang = target_lang
        self._fingerprint = fingerprint
        self._persistent_cache = persistent_cache
        self._memory: dict[str, str] = {}
        self._lock = threading.Lock()
        self.requests = 0
        self.hits = 0

    def __call__(self, text: str) -> str:
        key = build_cache_key(text, self._source_lang, self._target_lang, self._fingerprint)
        with self._lock:
            cached = self._memory.get(key)
        if cached is None and self._persistent_cache is not None:
            cached = self._persistent_cache.get(key)
            if cached is not None:
                with self._lock:
                    self._memory[key] = cached
        if cached is not None:
            with self._lock:
                self.hits += 1
            return cached

        translated = self._translate(text)
        with self._lock:
            self.requests += 1
            self._memory[key] = translated
        if self._persistent_cache is not None:
            self._persistent_cache.set(key, translated)
        return translated
