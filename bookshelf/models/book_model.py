from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


ASSET_FIELDS = ("cover_image_url", "ai_cover_image_url", "voice_url")


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class BookUpdate(BaseModel):
    """Partial payload for an existing book. ``None`` means "leave as is"."""

    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    year: str | None = None
    genre: str | None = None
    description: str | None = None
    cover_image_url: str | None = None
    ai_cover_image_url: str | None = None
    voice_url: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value):
        return _blank_to_none(value) if isinstance(value, str) else value

    def to_fields(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class BookCreate(BookUpdate):
    """Schema for creating a book record. Title and author are mandatory."""

    title: str
    author: str


class Book(BaseModel):
    """A persisted book as read back from the record store."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    author: str
    isbn: str | None = None
    year: str | None = None
    genre: str | None = None
    description: str | None = None
    cover_image_url: str | None = None
    ai_cover_image_url: str | None = None
    voice_url: str | None = None
    created_at: datetime
    updated_at: datetime

    def to_document(self) -> dict:
        """Dump with absent fields omitted rather than null."""
        return self.model_dump(exclude_none=True)

    def asset_urls(self) -> list[str]:
        return [url for url in (getattr(self, name) for name in ASSET_FIELDS) if url]


class UploadedFile(BaseModel):
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


class BookForm(BaseModel):
    """A submitted book form, before any asset has been resolved."""

    title: str = ""
    author: str = ""
    isbn: str | None = None
    year: str | None = None
    genre: str | None = None
    description: str | None = None
    cover_image_url: str | None = None
    cover_image_file: UploadedFile | None = None
    staged_ai_cover_url: str | None = None
    voice_url: str | None = None

    @field_validator(
        "isbn", "year", "genre", "description", "cover_image_url", "staged_ai_cover_url", "voice_url",
        mode="before",
    )
    @classmethod
    def _strip_optional(cls, value):
        return _blank_to_none(value) if isinstance(value, str) else value

    @classmethod
    def from_book(cls, book: Book) -> "BookForm":
        """Pre-fill an edit form. An existing AI cover counts as staged."""
        return cls(
            title=book.title,
            author=book.author,
            isbn=book.isbn,
            year=book.year,
            genre=book.genre,
            description=book.description,
            cover_image_url=book.cover_image_url,
            staged_ai_cover_url=book.ai_cover_image_url,
            voice_url=book.voice_url,
        )
