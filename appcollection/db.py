import uuid
from typing import List, Optional

from sqlalchemy import JSON, BigInteger, Engine, Text, Uuid, create_engine, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .models import LinkItem, LinkPatch, NewLink, now_ms

# TEXT[] on Postgres, a JSON list on SQLite
TagList = JSON().with_variant(postgresql.ARRAY(Text), "postgresql")


class Base(DeclarativeBase):
    pass


class LinkRow(Base):
    __tablename__ = "links"

    # column names follow Postgres folding of the unquoted imageUrl/createdAt
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column("imageurl", Text, nullable=True)
    tags: Mapped[Optional[List[str]]] = mapped_column(TagList, nullable=True)
    created_at: Mapped[int] = mapped_column("createdat", BigInteger, nullable=False)

    def to_item(self) -> LinkItem:
        return LinkItem(
            id=str(self.id),
            title=self.title,
            url=self.url,
            description=self.description or "",
            imageUrl=self.image_url or "",
            tags=list(self.tags or []),
            createdAt=self.created_at,
        )


_PATCH_COLUMNS = {
    "title": "title",
    "url": "url",
    "description": "description",
    "imageUrl": "image_url",
    "tags": "tags",
}


def make_engine(database_url: str, db_ssl: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    elif db_ssl:
        connect_args["sslmode"] = "require"
    return create_engine(database_url, connect_args=connect_args)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def setup_schema(engine: Engine) -> None:
    """CREATE TABLE IF NOT EXISTS for the links table."""
    Base.metadata.create_all(engine, checkfirst=True)


def _parse_id(link_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(link_id)
    except ValueError:
        return None


def list_links(db: Session) -> List[LinkItem]:
    rows = db.scalars(select(LinkRow).order_by(LinkRow.created_at.desc()))
    return [row.to_item() for row in rows]


def insert_link(db: Session, link: NewLink) -> LinkItem:
    row = LinkRow(
        title=link.title,
        url=link.url,
        description=link.description,
        image_url=link.imageUrl,
        tags=list(link.tags),
        created_at=link.createdAt if link.createdAt is not None else now_ms(),
    )
    db.add(row)
    db.commit()
    return row.to_item()


def update_link(db: Session, link_id: str, patch: LinkPatch) -> Optional[LinkItem]:
    key = _parse_id(link_id)
    row = db.get(LinkRow, key) if key else None
    if row is None:
        return None
    for field, value in patch.changes().items():
        setattr(row, _PATCH_COLUMNS[field], list(value) if field == "tags" else value)
    db.commit()
    return row.to_item()


def delete_link(db: Session, link_id: str) -> bool:
    key = _parse_id(link_id)
    row = db.get(LinkRow, key) if key else None
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True
