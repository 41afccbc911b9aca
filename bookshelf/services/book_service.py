import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookshelf.core.errors import NotFoundError, PersistenceError
from bookshelf.db.schema import Book as BookRow
from bookshelf.db.session import get_db_session
from bookshelf.models.book_model import Book, BookCreate, BookUpdate


logger = logging.getLogger("bookshelf.books")

ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 20

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


class BookStore:
    """Record store for books.

    Fields that are ``None`` are never written: on create they stay NULL and
    read back as absent, on update they are left untouched. ``update`` on an
    unknown id raises :class:`NotFoundError`; ``delete`` on an unknown id is a
    no-op.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = utc_now) -> None:
        self.session_factory = session_factory
        self.clock = clock

    async def create(self, data: BookCreate) -> str:
        now = self.clock()
        book_id = generate_id()
        row = BookRow(id=book_id, created_at=now, updated_at=now, **data.to_fields())
        try:
            async with get_db_session(self.session_factory) as db:
                db.add(row)
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create book: {e}") from e
        logger.info(f"Created book {book_id}")
        return book_id

    async def get_by_id(self, book_id: str) -> Book | None:
        try:
            async with get_db_session(self.session_factory) as db:
                row = await db.get(BookRow, book_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read book {book_id}: {e}") from e
        return Book.model_validate(row) if row is not None else None

    async def list_all(self) -> list[Book]:
        stmt = select(BookRow).order_by(BookRow.created_at.desc())
        try:
            async with get_db_session(self.session_factory) as db:
                result = await db.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list books: {e}") from e
        return [Book.model_validate(row) for row in rows]

    async def update(self, book_id: str, data: BookUpdate) -> None:
        values = data.to_fields()
        values["updated_at"] = self.clock()
        stmt = update(BookRow).where(BookRow.id == book_id).values(**values)
        try:
            async with get_db_session(self.session_factory) as db:
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    await db.rollback()
                    raise NotFoundError(f"No book with id {book_id}")
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update book {book_id}: {e}") from e
        logger.info(f"Updated book {book_id}: {sorted(values)}")

    async def delete(self, book_id: str) -> None:
        stmt = delete(BookRow).where(BookRow.id == book_id)
        try:
            async with get_db_session(self.session_factory) as db:
                result = await db.execute(stmt)
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete book {book_id}: {e}") from e
        if result.rowcount:
            logger.info(f"Deleted book {book_id}")
        else:
            logger.info(f"Book {book_id} already absent, nothing to delete")

    async def ping(self) -> bool:
        try:
            async with get_db_session(self.session_factory) as db:
                await db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning(f"Record store ping failed: {e}")
            return False
        return True
