import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path

from bookshelf.app import Services, create_services
from bookshelf.core.config import get_config
from bookshelf.core.errors import AuthenticationError, BookshelfError
from bookshelf.core.logging import setup_logging
from bookshelf.models.book_model import Book, BookForm, UploadedFile


logger = logging.getLogger("bookshelf")

TEXT_FIELDS = ("title", "author", "isbn", "year", "genre", "description")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage a book collection with AI enrichment.")
    parser.add_argument(
        "--id-token",
        default=os.environ.get("BOOKSHELF_ID_TOKEN"),
        help="Google ID token used to sign in for commands that modify books.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List all books, newest first.")
    commands.add_parser("health", help="Show backend configuration and connectivity.")

    show = commands.add_parser("show", help="Show one book.")
    show.add_argument("book_id")

    delete = commands.add_parser("delete", help="Delete a book and its stored assets.")
    delete.add_argument("book_id")

    add = commands.add_parser("add", help="Add a new book.")
    add.add_argument("--title", required=True)
    add.add_argument("--author", required=True)
    _add_optional_fields(add)

    edit = commands.add_parser("edit", help="Edit an existing book.")
    edit.add_argument("book_id")
    edit.add_argument("--title")
    edit.add_argument("--author")
    _add_optional_fields(edit)

    return parser


def _add_optional_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--isbn")
    parser.add_argument("--year")
    parser.add_argument("--genre")
    parser.add_argument("--description")
    parser.add_argument("--cover", type=Path, help="Local cover image to upload.")
    parser.add_argument(
        "--enhance",
        action="store_true",
        help="Generate a description and an AI cover from title and author.",
    )
    parser.add_argument(
        "--narrate",
        action="store_true",
        help="Synthesize a narration clip of the description.",
    )


def format_book(book: Book) -> str:
    lines = [f"{book.title} by {book.author}  [{book.id}]"]
    for name, value in book.to_document().items():
        if name in ("id", "title", "author"):
            continue
        lines.append(f"  {name}: {value}")
    return "\n".join(lines)


def _read_cover(path: Path) -> UploadedFile:
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return UploadedFile(filename=path.name, data=path.read_bytes(), content_type=content_type)


async def _fill_form(services: Services, form: BookForm, args: argparse.Namespace) -> bool:
    for name in TEXT_FIELDS:
        value = getattr(args, name, None)
        if value is not None:
            setattr(form, name, value)
    if args.cover:
        form.cover_image_file = _read_cover(args.cover)

    workflow = services.workflow
    if args.enhance:
        enhanced = await workflow.enhance(form.title, form.author)
        if not enhanced.success:
            print(enhanced.error, file=sys.stderr)
            return False
        if not form.description:
            form.description = enhanced.description
        form.staged_ai_cover_url = enhanced.staged_ai_cover_url

    if args.narrate:
        narrated = await workflow.narrate(form.description or "")
        if not narrated.success:
            print(narrated.error, file=sys.stderr)
            return False
        form.voice_url = narrated.voice_url

    return True


async def run(args: argparse.Namespace, services: Services) -> int:
    workflow = services.workflow

    if args.command == "health":
        health = await workflow.health()
        for key, value in health.backend.items():
            print(f"{key}: {value}")
        print(f"record store: {'ok' if health.record_store_ok else 'unreachable'}")
        return 0 if health.record_store_ok else 1

    if args.command == "list":
        listed = await workflow.list_books()
        if not listed.success:
            print(listed.error, file=sys.stderr)
            return 1
        if not listed.books:
            print("No books found. Add your first book!")
        for book in listed.books:
            print(format_book(book))
        return 0

    if args.command == "show":
        found = await workflow.get(args.book_id)
        if not found.success:
            print(found.error, file=sys.stderr)
            return 1
        print(format_book(found.book))
        return 0

    if args.id_token:
        try:
            services.identity.sign_in(args.id_token)
        except AuthenticationError as e:
            logger.warning(f"Sign-in failed: {e}")
            print(e.user_message, file=sys.stderr)
            return 1

    if args.command == "delete":
        deleted = await workflow.delete(args.book_id)
        if not deleted.success:
            print(deleted.error, file=sys.stderr)
            return 1
        print(f"Deleted {args.book_id}")
        return 0

    if args.command == "add":
        form = BookForm()
        book_id = None
    else:
        found = await workflow.get(args.book_id)
        if not found.success:
            print(found.error, file=sys.stderr)
            return 1
        form = BookForm.from_book(found.book)
        book_id = args.book_id

    if not await _fill_form(services, form, args):
        return 1

    saved = await workflow.save(form, book_id=book_id)
    if not saved.success:
        print(saved.error, file=sys.stderr)
        return 1
    print(f"Saved {saved.book_id}")
    return 0


async def amain(args: argparse.Namespace) -> int:
    config = get_config()
    try:
        async with create_services(config) as services:
            return await run(args, services)
    except BookshelfError as e:
        logger.error(f"Startup failed: {e}")
        print(e.user_message, file=sys.stderr)
        return 1


def main() -> int:
    args = build_parser().parse_args()
    config = get_config()
    setup_logging(log_level=config.log_level, log_file=config.log_file)
    return asyncio.run(amain(args))


if __name__ == "__main__":
    sys.exit(main())
