from pydantic import BaseModel, Field

from bookshelf.models.book_model import Book


class SaveResult(BaseModel):
    success: bool
    book_id: str | None = None
    error: str | None = None


class EnhanceResult(BaseModel):
    success: bool
    description: str | None = None
    cover_prompt: str | None = None
    staged_ai_cover_url: str | None = None
    error: str | None = None


class NarrateResult(BaseModel):
    success: bool
    voice_url: str | None = None
    preview_url: str | None = None
    error: str | None = None


class DeleteResult(BaseModel):
    success: bool
    asset_failures: list[str] = Field(default_factory=list)
    error: str | None = None


class BookResult(BaseModel):
    success: bool
    book: Book | None = None
    error: str | None = None


class BookListResult(BaseModel):
    success: bool
    books: list[Book] = Field(default_factory=list)
    error: str | None = None


class HealthResult(BaseModel):
    backend: dict[str, str]
    record_store_ok: bool
    error: str | None = None
