"""
Collaborator protocols and in-process implementations.

The engine depends only on these narrow interfaces:

- ContentSource.fetch_article(id) -> {"title", "content"}   (async)
- StateStore.get(path) / set(path, value)                   key-path state
- CacheStore.get(key, tiers) / set(key, value, tiers, ttl)  expiring snapshots

Implementations shipped here:
- InMemoryStateStore      nested dict addressed by "a.b.c" paths
- FileStateStore          the same tree persisted to one JSON file
- InMemoryCacheStore      dict with per-entry expiry
- FileCacheStore          one JSON envelope per key on disk
- DirectoryContentSource  <dir>/<id>.html|.htm|.txt|.md, HTML via html2text
- StaticContentSource     fixed in-memory mapping of articles
"""

import asyncio
import copy
import html
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

import html2text

logger = logging.getLogger(__name__)

ARTICLE_EXTENSIONS = (".html", ".htm", ".txt", ".md")
_HEADING_PATTERN = re.compile(r"<(h[1-3]|title)[^>]*>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_TAG_PATTERN = re.compile(r"<[^>]+>")
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@runtime_checkable
class ContentSource(Protocol):
    async def fetch_article(self, article_id: str) -> Dict[str, str]:
        ...


@runtime_checkable
class StateStore(Protocol):
    def get(self, path: str) -> Any:
        ...

    def set(self, path: str, value: Any) -> None:
        ...


@runtime_checkable
class CacheStore(Protocol):
    def get(self, key: str, tiers: Optional[List[str]] = None) -> Any:
        ...

    def set(self, key: str, value: Any, tiers: Optional[List[str]] = None, ttl: Optional[float] = None) -> None:
        ...


class InMemoryStateStore:
    """Key-path state store ("wordFreq.userProfile" -> state["wordFreq"]["userProfile"])."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._state: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, path: str) -> Any:
        node: Any = self._state
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def set(self, path: str, value: Any) -> None:
        parts = path.split(".")
        node = self._state
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[parts[-1]] = copy.deepcopy(value)


class FileStateStore(InMemoryStateStore):
    """
    Key-path state store backed by one JSON file.

    The whole state tree is read from <directory>/state.json on creation and
    rewritten (temp file, then replace) after every set. A missing or corrupt
    file starts from an empty state.
    """

    FILE_NAME = "state.json"

    def __init__(self, directory: str):
        self.path = Path(directory) / self.FILE_NAME
        super().__init__(self._load())

    def _load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return None
        if not isinstance(state, dict):
            logger.warning(f"Ignoring state file {self.path}: not a JSON object")
            return None
        return state

    def set(self, path: str, value: Any) -> None:
        super().set(path, value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(self._state, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)


class InMemoryCacheStore:
    """Process-local cache; tiers are recorded but every tier is the same dict."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._clock = clock

    def get(self, key: str, tiers: Optional[List[str]] = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry["expires_at"] is not None and self._clock() >= entry["expires_at"]:
            del self._entries[key]
            return None
        return copy.deepcopy(entry["value"])

    def set(self, key: str, value: Any, tiers: Optional[List[str]] = None, ttl: Optional[float] = None) -> None:
        self._entries[key] = {
            "value": copy.deepcopy(value),
            "tiers": list(tiers or []),
            "expires_at": self._clock() + ttl if ttl else None,
        }

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class FileCacheStore:
    """
    JSON file cache.

    Each key is stored as <directory>/<key>.json holding an envelope
    {"key", "tiers", "expires_at", "value"}. Unreadable, corrupt or expired
    files read as a miss.
    """

    def __init__(self, directory: str, clock: Callable[[], float] = time.time):
        self.directory = Path(directory)
        self._clock = clock

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str, tiers: Optional[List[str]] = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
            expires_at = envelope["expires_at"]
            value = envelope["value"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return None

        if expires_at is not None and self._clock() >= expires_at:
            logger.debug(f"Cache entry {key!r} expired")
            return None
        return value

    def set(self, key: str, value: Any, tiers: Optional[List[str]] = None, ttl: Optional[float] = None) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        envelope = {
            "key": key,
            "tiers": list(tiers or []),
            "expires_at": self._clock() + ttl if ttl else None,
            "value": value,
        }
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(envelope, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


def html_to_text(html_string: str) -> str:
    """Convert HTML to plain Markdown-ish text for tokenization."""
    converter = html2text.HTML2Text()
    converter.ignore_links = True  # Link targets are not vocabulary
    converter.ignore_images = True
    converter.body_width = 0  # No line wrapping
    converter.ignore_emphasis = True
    return converter.handle(html_string)


def extract_title(html_string: str) -> Optional[str]:
    """First <h1>-<h3> or <title> text, tags stripped."""
    match = _HEADING_PATTERN.search(html_string)
    if not match:
        return None
    title = html.unescape(_TAG_PATTERN.sub("", match.group(2))).strip()
    return title or None


class DirectoryContentSource:
    """Serves articles stored as files named after their id."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def list_articles(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            path.stem for path in self.directory.iterdir()
            if path.is_file() and path.suffix.lower() in ARTICLE_EXTENSIONS
        )

    def _find(self, article_id: str) -> Path:
        if not article_id or "/" in article_id or "\\" in article_id or article_id.startswith("."):
            raise ValueError(f"Invalid article id: {article_id!r}")
        for extension in ARTICLE_EXTENSIONS:
            path = self.directory / f"{article_id}{extension}"
            if path.is_file():
                return path
        raise FileNotFoundError(f"No article file for {article_id!r} in {self.directory}")

    async def fetch_article(self, article_id: str) -> Dict[str, str]:
        path = self._find(article_id)
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")

        if path.suffix.lower() in (".html", ".htm"):
            title = extract_title(raw) or article_id
            content = html_to_text(raw)
        else:
            first_line = next((line.strip("# ").strip() for line in raw.splitlines() if line.strip()), "")
            title = first_line or article_id
            content = raw

        logger.debug(f"Loaded article {article_id!r} from {path.name} ({len(content)} chars)")
        return {"title": title, "content": content}


class StaticContentSource:
    """Articles from a fixed mapping: id -> {"title", "content"}."""

    def __init__(self, articles: Dict[str, Dict[str, str]]):
        self._articles = dict(articles)

    def list_articles(self) -> List[str]:
        return list(self._articles)

    async def fetch_article(self, article_id: str) -> Dict[str, str]:
        if article_id not in self._articles:
            raise KeyError(f"Unknown article: {article_id!r}")
        article = self._articles[article_id]
        return {"title": article.get("title", article_id), "content": article.get("content", "")}
