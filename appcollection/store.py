"""
Client-side owner of the link collection.

The store keeps the in-memory list for one session and pushes every
mutation through a persistence backend. Backend failures never escape:
each operation returns a ``StoreResult`` and the latest failure is also
kept on ``store.error`` so a UI can render it.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Union

import pydantic

from .errors import LinkStoreError, ValidationError, WriteError
from .models import ALL_TAGS, LinkDraft, LinkItem, LinkPatch, sort_newest_first

log = logging.getLogger(__name__)


class LinkBackend(Protocol):
    async def load_all(self) -> List[LinkItem]: ...

    async def create(self, draft: LinkDraft) -> LinkItem: ...

    async def replace(self, link_id: str, patch: LinkPatch) -> LinkItem: ...

    async def remove(self, link_id: str) -> bool: ...

    async def close(self) -> None: ...


class Outcome(str, Enum):
    OK = "ok"
    RECOVERED_EMPTY = "recovered_empty"  # load failed, collection empty but usable
    FAILED = "failed"  # nothing applied, collection unchanged


@dataclass
class StoreResult:
    outcome: Outcome
    link: Optional[LinkItem] = None
    error: Optional[LinkStoreError] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


class CollectionStore:
    def __init__(self, backend: LinkBackend, serialize_mutations: bool = False):
        self.backend = backend
        self.loading = True
        self.error: Optional[LinkStoreError] = None
        self._links: List[LinkItem] = []
        self._initialized = False
        self._lock = asyncio.Lock() if serialize_mutations else None

    async def __aenter__(self) -> "CollectionStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- reads ---

    def list(self) -> List[LinkItem]:
        return list(self._links)

    def get(self, link_id: str) -> Optional[LinkItem]:
        return next((l for l in self._links if l.id == link_id), None)

    def filter_by_tag(self, tag: Optional[str]) -> List[LinkItem]:
        if not tag or tag == ALL_TAGS:
            return self.list()
        return [l for l in self._links if tag in l.tags]

    def all_tags(self) -> List[str]:
        seen = dict.fromkeys(tag for l in self._links for tag in l.tags)
        return [ALL_TAGS, *seen]

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error else None

    def clear_error(self) -> None:
        self.error = None

    # --- lifecycle ---

    async def initialize(self) -> StoreResult:
        self.loading = True
        try:
            links = await self.backend.load_all()
        except LinkStoreError as e:
            log.error("Error loading links: %s", e)
            self._links = []
            return self._failed(e, Outcome.RECOVERED_EMPTY)
        finally:
            self.loading = False
            self._initialized = True
        self._links = sort_newest_first(links)
        self.error = None
        return StoreResult(Outcome.OK)

    async def close(self) -> None:
        await self.backend.close()

    # --- mutations ---

    async def add(self, candidate: Union[LinkDraft, Mapping[str, Any]]) -> StoreResult:
        try:
            draft = _coerce(LinkDraft, candidate)
        except ValidationError as e:
            return self._failed(e)
        await self._ensure_initialized()
        async with self._mutation():
            try:
                link = await self.backend.create(draft)
            except LinkStoreError as e:
                log.error("Error adding link: %s", e)
                return self._failed(e)
            self._links.insert(0, link)
        self.error = None
        return StoreResult(Outcome.OK, link=link)

    async def update(
        self, link_id: str, fields: Union[LinkPatch, Mapping[str, Any]]
    ) -> StoreResult:
        try:
            patch = _coerce(LinkPatch, fields)
        except ValidationError as e:
            return self._failed(e)
        await self._ensure_initialized()
        async with self._mutation():
            try:
                saved = await self.backend.replace(link_id, patch)
            except LinkStoreError as e:
                log.error("Error updating link %s: %s", link_id, e)
                return self._failed(e)
            self._links = [saved if l.id == link_id else l for l in self._links]
        self.error = None
        return StoreResult(Outcome.OK, link=saved)

    async def delete(self, link_id: str) -> StoreResult:
        await self._ensure_initialized()
        async with self._mutation():
            try:
                removed = await self.backend.remove(link_id)
            except LinkStoreError as e:
                log.error("Error deleting link %s: %s", link_id, e)
                return self._failed(e)
            if not removed:
                log.error("Backend refused to delete link %s", link_id)
                return self._failed(WriteError(f"Link {link_id} was not deleted"))
            self._links = [l for l in self._links if l.id != link_id]
        self.error = None
        return StoreResult(Outcome.OK)

    # --- helpers ---

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    def _mutation(self):
        return self._lock if self._lock is not None else contextlib.nullcontext()

    def _failed(self, error: LinkStoreError, outcome: Outcome = Outcome.FAILED) -> StoreResult:
        self.error = error
        return StoreResult(outcome, error=error)


def _coerce(model, value):
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e


def build_backend(settings) -> LinkBackend:
    """Pick the persistence backend named by ``settings.backend``."""
    if settings.backend == "remote":
        from .remote import RemoteLinkBackend

        return RemoteLinkBackend(settings.api_url, timeout=settings.http_timeout)
    from .storage import LocalLinkBackend, LocalStorage

    return LocalLinkBackend(LocalStorage(settings.storage_path))


def open_store(settings) -> CollectionStore:
    return CollectionStore(
        build_backend(settings), serialize_mutations=settings.serialize_mutations
    )
