import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import TypeAdapter

from .errors import DeserializationError, LoadError, NotFoundError, WriteError
from .models import LinkDraft, LinkItem, LinkPatch, apply_patch, now_ms, sort_newest_first

log = logging.getLogger(__name__)

STORAGE_FILE = Path("local_storage.json")
STORAGE_KEY = "my-apps-collection"

_LINKS = TypeAdapter(List[LinkItem])


SEED_LINKS = [
    {
        "title": "Pixel Garden",
        "url": "https://pixel-garden.example.com",
        "description": "A tiny generative art toy that grows pixel plants.",
        "imageUrl": "https://images.unsplash.com/photo-1501004318641-b39e6451bec6?w=800",
        "tags": ["Creative", "Game"],
    },
    {
        "title": "Budget Buddy",
        "url": "https://budget-buddy.example.com",
        "description": "Split shared expenses without a spreadsheet.",
        "imageUrl": "https://images.unsplash.com/photo-1554224155-6726b3ff858f?w=800",
        "tags": ["Utility"],
    },
    {
        "title": "Word Ladder",
        "url": "https://word-ladder.example.com",
        "description": "Change one letter at a time to reach the target word.",
        "imageUrl": "https://images.unsplash.com/photo-1632501641765-e568d28b0015?w=800",
        "tags": ["Game"],
    },
]


def seed_links(clock: Callable[[], int] = now_ms) -> List[LinkItem]:
    now = clock()
    # step the timestamps back so the seeds keep their listed order
    return [
        LinkItem(id=str(uuid4()), createdAt=now - i, **entry)
        for i, entry in enumerate(SEED_LINKS)
    ]


def dump_links(items: List[LinkItem]) -> str:
    return _LINKS.dump_json(items).decode("utf-8")


def load_links(raw: str) -> List[LinkItem]:
    try:
        return _LINKS.validate_json(raw)
    except ValueError as e:
        raise DeserializationError(f"Stored links could not be decoded: {e}") from e


class LocalStorage:
    """
    Key/value store of strings kept in one JSON file, the on-disk
    counterpart of a browser's localStorage.
    """

    def __init__(self, path: Path = STORAGE_FILE):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise LoadError(f"Could not read {self.path}: {e}") from e
        except ValueError as e:
            raise DeserializationError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DeserializationError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise WriteError(f"Could not write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        if value is not None and not isinstance(value, str):
            raise DeserializationError(f"Value under {key!r} is not a string")
        return value

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def clear(self) -> None:
        self._write({})


class LocalLinkBackend:
    """
    Keeps the whole collection as one serialized array under a single key.
    Every mutation reads, modifies and rewrites the full blob.
    """

    def __init__(
        self,
        storage: LocalStorage,
        key: str = STORAGE_KEY,
        clock: Callable[[], int] = now_ms,
    ):
        self.storage = storage
        self.key = key
        self.clock = clock

    def _read(self) -> Optional[List[LinkItem]]:
        raw = self.storage.get_item(self.key)
        if raw is None:
            return None
        return load_links(raw)

    def _read_for_write(self) -> List[LinkItem]:
        # a corrupt value is replaced by the next successful write
        try:
            return self._read() or []
        except DeserializationError as e:
            log.warning("Discarding unreadable links under %r: %s", self.key, e)
            return []

    def _write(self, items: List[LinkItem]) -> None:
        self.storage.set_item(self.key, dump_links(items))

    async def load_all(self) -> List[LinkItem]:
        items = self._read()
        if items is None:
            items = seed_links(self.clock)
            self._write(items)
        return sort_newest_first(items)

    async def create(self, draft: LinkDraft) -> LinkItem:
        items = self._read_for_write()
        link = LinkItem(id=str(uuid4()), createdAt=self.clock(), **draft.draft_data())
        items.insert(0, link)
        self._write(items)
        return link

    async def replace(self, link_id: str, patch: LinkPatch) -> LinkItem:
        items = self._read_for_write()
        for idx, link in enumerate(items):
            if link.id == link_id:
                items[idx] = apply_patch(link, patch)
                self._write(items)
                return items[idx]
        raise NotFoundError(link_id)

    async def remove(self, link_id: str) -> bool:
        items = self._read_for_write()
        remaining = [l for l in items if l.id != link_id]
        if len(remaining) == len(items):
            raise NotFoundError(link_id)
        self._write(remaining)
        return True

    async def close(self) -> None:
        pass
