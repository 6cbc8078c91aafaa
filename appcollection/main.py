import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import db
from .config import Settings, load_settings, masked_database_url
from .cors import install_cors
from .models import LinkItem, LinkPatch, NewLink

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_db(request: Request) -> Iterator[Session]:
    session = request.app.state.sessionmaker()
    try:
        yield session
    finally:
        session.close()


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/setup-db")
def setup_db(request: Request):
    try:
        db.setup_schema(request.app.state.engine)
    except SQLAlchemyError as e:
        log.exception("Error creating links table")
        return JSONResponse(
            {"success": False, "message": f"Database error: {e}"}, status_code=500
        )
    return {"success": True, "message": 'Table "links" created or already exists.'}


@router.get("/links", response_model=List[LinkItem])
def get_links(session: Session = Depends(get_db)):
    return db.list_links(session)


@router.post("/links", response_model=LinkItem, status_code=201)
def add_link(body: NewLink, session: Session = Depends(get_db)):
    return db.insert_link(session, body)


@router.put("/links/{id}", response_model=LinkItem)
def update_link(id: str, body: LinkPatch, session: Session = Depends(get_db)):
    link = db.update_link(session, id, body)
    if link is None:
        raise HTTPException(404, "Link not found")
    return link


@router.delete("/links/{id}")
def delete_link(id: str, session: Session = Depends(get_db)):
    if not db.delete_link(session, id):
        raise HTTPException(404, "Link not found")
    return {"success": True, "deletedId": id}


async def database_error(request: Request, exc: SQLAlchemyError):
    log.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"detail": f"Database error: {exc}"}, status_code=500)


def mount_frontend(app: FastAPI, static_dir: Path) -> None:
    """Serve the built single-page app, falling back to index.html."""
    root = Path(static_dir).resolve()

    @app.get("/{full_path:path}", include_in_schema=False)
    def serve_frontend(full_path: str):
        if full_path.startswith("api/"):
            raise HTTPException(404)
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        index = root / "index.html"
        if not index.is_file():
            raise HTTPException(404)
        return FileResponse(index)


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or load_settings()
    engine = engine or db.make_engine(settings.database_url, settings.db_ssl)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(
            "Database configuration: url=%s ssl=%s",
            masked_database_url(settings.database_url),
            settings.db_ssl,
        )
        yield
        engine.dispose()

    app = FastAPI(title="Apps Collection", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = db.make_sessionmaker(engine)

    install_cors(app, settings.cors_origins, settings.cors_parent_domain)
    app.add_exception_handler(SQLAlchemyError, database_error)
    app.include_router(router)
    mount_frontend(app, settings.static_dir)
    return app


app = create_app()
