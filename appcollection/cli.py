import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import Settings, load_settings
from .errors import LinkStoreError, ValidationError
from .models import DEFAULT_IMAGE_URL, LinkItem, parse_tags
from .store import CollectionStore, open_store


def render(link: LinkItem) -> str:
    lines = [f"{link.id}  {link.title}", f"    {link.url}"]
    if link.description:
        lines.append(f"    {link.description}")
    if link.tags:
        lines.append("    " + " ".join(f"[{t}]" for t in link.tags))
    return "\n".join(lines)


def draft_from_args(args) -> dict:
    title = (args.title or "").strip()
    url = (args.url or "").strip()
    if not title or not url:
        raise ValidationError("Both --title and --url are required")
    return {
        "title": title,
        "url": url,
        "description": args.description or "",
        "imageUrl": args.image_url or DEFAULT_IMAGE_URL,
        "tags": parse_tags(args.tags or ""),
    }


def patch_from_args(args) -> dict:
    fields = {}
    for attr, key in (
        ("title", "title"),
        ("url", "url"),
        ("description", "description"),
        ("image_url", "imageUrl"),
    ):
        value = getattr(args, attr)
        if value is not None:
            fields[key] = value
    if args.tags is not None:
        fields["tags"] = parse_tags(args.tags)
    for key in ("title", "url"):
        if key in fields and not fields[key].strip():
            raise ValidationError(f"--{key} cannot be empty")
    return fields


async def run(args, store: CollectionStore) -> int:
    if args.command == "setup-db":
        # the table may not exist yet, so skip the initial load
        try:
            return await _setup_db(store)
        finally:
            await store.close()

    async with store:
        if args.command in ("list", "tags") and store.error:
            print(f"Could not load links: {store.error_message}", file=sys.stderr)

        if args.command == "list":
            for link in store.filter_by_tag(args.tag):
                print(render(link))
            return 0
        if args.command == "tags":
            print("\n".join(store.all_tags()))
            return 0

        if args.command == "add":
            result = await store.add(draft_from_args(args))
        elif args.command == "edit":
            result = await store.update(args.id, patch_from_args(args))
        else:
            result = await store.delete(args.id)

        if not result.ok:
            print(f"Error: {result.error}", file=sys.stderr)
            return 1
        if result.link is not None:
            print(render(result.link))
        return 0


async def _setup_db(store: CollectionStore) -> int:
    setup = getattr(store.backend, "setup_database", None)
    if setup is None:
        print("setup-db needs the remote backend (--backend remote)", file=sys.stderr)
        return 2
    try:
        body = await setup()
    except LinkStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(body.get("message", body))
    return 0


def _link_fields(p: argparse.ArgumentParser, required: bool) -> None:
    p.add_argument("--title", required=required)
    p.add_argument("--url", required=required)
    p.add_argument("--description")
    p.add_argument("--image-url", dest="image_url")
    p.add_argument("--tags", help="comma separated, e.g. 'React, Utility, Game'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appcollection", description="Manage your collection of app links."
    )
    parser.add_argument("--backend", choices=["local", "remote"])
    parser.add_argument("--storage-path", dest="storage_path")
    parser.add_argument("--api-url", dest="api_url")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="show links, newest first")
    p.add_argument("--tag", help="only links carrying this tag")
    sub.add_parser("tags", help="show every tag in use")
    _link_fields(sub.add_parser("add", help="add a link"), required=True)
    p = sub.add_parser("edit", help="change fields of a link")
    p.add_argument("id")
    _link_fields(p, required=False)
    p = sub.add_parser("delete", help="remove a link")
    p.add_argument("id")
    sub.add_parser("setup-db", help="create the links table on the server")
    return parser


def apply_overrides(settings: Settings, args) -> Settings:
    overrides = {
        k: getattr(args, k)
        for k in ("backend", "storage_path", "api_url")
        if getattr(args, k) is not None
    }
    return settings.model_copy(update=overrides) if overrides else settings


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = apply_overrides(load_settings(), args)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args, open_store(settings)))
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
