import time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_IMAGE_URL = (
    "https://images.unsplash.com/photo-1614850523296-d8c1af93d400"
    "?w=800&auto=format&fit=crop&q=60"
)

# sentinel used by the tag filter to mean "no filter"
ALL_TAGS = "All"


def now_ms() -> int:
    return int(time.time() * 1000)


class LinkDraft(BaseModel):
    """A link card as entered by the user, before it has an id."""

    model_config = ConfigDict(extra="ignore")

    title: str
    url: str
    description: str = ""
    imageUrl: str = ""
    tags: List[str] = Field(default_factory=list)

    def draft_data(self) -> dict:
        return self.model_dump(include=set(LinkDraft.model_fields))


class LinkItem(LinkDraft):
    id: str
    createdAt: int


class LinkPatch(BaseModel):
    """Partial update. Only fields that were explicitly set get applied."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    imageUrl: Optional[str] = None
    tags: Optional[List[str]] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class NewLink(LinkDraft):
    """Body of POST /api/links; the client may send its own timestamp."""

    createdAt: Optional[int] = None


def apply_patch(item: LinkItem, patch: LinkPatch) -> LinkItem:
    return item.model_copy(update=patch.changes())


def sort_newest_first(items: List[LinkItem]) -> List[LinkItem]:
    # sorted() is stable, so equal timestamps keep their stored order
    return sorted(items, key=lambda l: l.createdAt, reverse=True)


def parse_tags(raw: str) -> List[str]:
    """Split a comma separated tag field the way the add/edit form does."""
    return [tag.strip() for tag in raw.split(",") if tag.strip()]
