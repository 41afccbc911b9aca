import asyncio
import logging

from bookshelf.core.config import Config
from bookshelf.core.errors import AuthenticationError, BookshelfError, EnrichmentError, NotFoundError, ValidationError
from bookshelf.models.book_model import Book, BookCreate, BookForm, BookUpdate
from bookshelf.models.result_model import (
    BookListResult,
    BookResult,
    DeleteResult,
    EnhanceResult,
    HealthResult,
    NarrateResult,
    SaveResult,
)
from bookshelf.services.asset_service import AssetStore, ai_cover_key, cover_key, voice_key
from bookshelf.services.book_service import BookStore, Clock, utc_now
from bookshelf.services.enrichment_service import EnrichmentClient
from bookshelf.services.identity_service import IdentityGate


logger = logging.getLogger("bookshelf.workflow")

GENERIC_ERROR = "Something went wrong. Please try again."
SAVE_ERROR = "Failed to save book. Please try again."
DELETE_ERROR = "Failed to delete book."
LOAD_ERROR = "Failed to load books."


def _user_message(e: Exception, default: str) -> str:
    return e.user_message if isinstance(e, BookshelfError) else default


def _require_title_and_author(title: str, author: str) -> None:
    if not title.strip() or not author.strip():
        raise ValidationError("title and author must be non-empty")


class BookWorkflow:
    """Orchestrates book submissions, enrichment and cascading deletion.

    Every public coroutine returns a result model and never raises; the
    technical cause of a failure goes to the log, the result carries only a
    short message fit for the user.

    Nothing is rolled back: when a write fails after an upload succeeded the
    uploaded blob is left behind in the bucket.
    """

    def __init__(
        self,
        books: BookStore,
        assets: AssetStore,
        enrichment: EnrichmentClient,
        identity: IdentityGate,
        config: Config | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.books = books
        self.assets = assets
        self.enrichment = enrichment
        self.identity = identity
        self.config = config
        self.clock = clock

    async def save(self, form: BookForm, book_id: str | None = None) -> SaveResult:
        try:
            self.identity.require_user()
            _require_title_and_author(form.title, form.author)

            cover_image_url = await self._resolve_cover(form)
            ai_cover_image_url = await self._resolve_ai_cover(form.staged_ai_cover_url)

            fields = dict(
                title=form.title,
                author=form.author,
                isbn=form.isbn,
                year=form.year,
                genre=form.genre,
                description=form.description,
                cover_image_url=cover_image_url,
                ai_cover_image_url=ai_cover_image_url,
                voice_url=form.voice_url,
            )
            if book_id is None:
                book_id = await self.books.create(BookCreate(**fields))
            else:
                await self.books.update(book_id, BookUpdate(**fields))
        except (AuthenticationError, ValidationError) as e:
            logger.info(f"Rejected book submission: {e}")
            return SaveResult(success=False, error=e.user_message)
        except Exception as e:
            logger.exception(f"Saving book {book_id or '(new)'} failed: {e}")
            return SaveResult(success=False, error=_user_message(e, SAVE_ERROR))

        return SaveResult(success=True, book_id=book_id)

    async def _resolve_cover(self, form: BookForm) -> str | None:
        upload = form.cover_image_file
        if upload is None:
            return form.cover_image_url
        key = cover_key(upload.filename, self.clock())
        return await self.assets.upload(key, upload.data, upload.content_type)

    async def _resolve_ai_cover(self, staged_url: str | None) -> str | None:
        """Copy a staged third-party AI image into our bucket.

        On any failure the staged URL is kept as-is: the record then depends on
        the third-party host, which may expire the image later.
        """
        if not staged_url or self.assets.owns(staged_url):
            return staged_url

        fetched = await self.enrichment.fetch_remote_image(staged_url)
        if not fetched.success:
            logger.warning(f"Keeping third-party AI cover URL, fetch failed: {fetched.error}")
            return staged_url

        try:
            return await self.assets.upload(
                ai_cover_key(self.clock()), fetched.data, fetched.content_type or "image/png"
            )
        except BookshelfError as e:
            logger.warning(f"Keeping third-party AI cover URL, re-upload failed: {e}")
            return staged_url

    async def enhance(self, title: str, author: str) -> EnhanceResult:
        """Ask the text model for a description and a cover prompt, and stage a cover URL."""
        try:
            self.identity.require_user()
            _require_title_and_author(title, author)
        except BookshelfError as e:
            return EnhanceResult(success=False, error=e.user_message)

        metadata = await self.enrichment.generate_metadata(title.strip(), author.strip())
        if not metadata.success:
            return EnhanceResult(success=False, error=metadata.error)

        return EnhanceResult(
            success=True,
            description=metadata.description,
            cover_prompt=metadata.cover_prompt,
            staged_ai_cover_url=self.enrichment.cover_image_url(metadata.cover_prompt),
        )

    async def narrate(self, text: str) -> NarrateResult:
        """Synthesize ``text`` and store the clip right away.

        The result carries the owned voice URL for the record and the clip as a
        ``data:audio/mpeg;base64,...`` URL for immediate playback.
        """
        try:
            self.identity.require_user()
            if not text or not text.strip():
                return NarrateResult(success=False, error="Add a description before generating narration.")

            narration = await self.enrichment.generate_narration(text)
            if not narration.success:
                raise EnrichmentError(narration.error)

            voice_url = await self.assets.upload(voice_key(self.clock()), narration.audio, narration.content_type)
        except Exception as e:
            logger.exception(f"Narration failed: {e}")
            return NarrateResult(success=False, error=_user_message(e, GENERIC_ERROR))

        return NarrateResult(success=True, voice_url=voice_url, preview_url=narration.data_url)

    async def delete(self, book_id: str) -> DeleteResult:
        try:
            self.identity.require_user()
            book = await self.books.get_by_id(book_id)
            failures = await self._delete_assets(book) if book is not None else []
            # Only reached once every asset deletion has settled.
            await self.books.delete(book_id)
        except Exception as e:
            logger.exception(f"Deleting book {book_id} failed: {e}")
            return DeleteResult(success=False, error=_user_message(e, DELETE_ERROR))

        return DeleteResult(success=True, asset_failures=failures)

    async def _delete_assets(self, book: Book) -> list[str]:
        urls = book.asset_urls()
        if not urls:
            return []

        outcomes = await asyncio.gather(
            *(self.assets.delete_by_url(url) for url in urls), return_exceptions=True
        )

        failures = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Could not delete asset {url} of book {book.id}: {outcome}")
                failures.append(url)
        return failures

    async def get(self, book_id: str) -> BookResult:
        try:
            book = await self.books.get_by_id(book_id)
        except Exception as e:
            logger.exception(f"Loading book {book_id} failed: {e}")
            return BookResult(success=False, error="Failed to load book.")

        if book is None:
            return BookResult(success=False, error=NotFoundError.user_message)
        return BookResult(success=True, book=book)

    async def list_books(self) -> BookListResult:
        try:
            books = await self.books.list_all()
        except Exception as e:
            logger.exception(f"Listing books failed: {e}")
            return BookListResult(success=False, error=LOAD_ERROR)
        return BookListResult(success=True, books=books)

    async def health(self) -> HealthResult:
        backend = self.config.describe() if self.config is not None else {}
        try:
            ok = await self.books.ping()
        except Exception as e:
            logger.exception(f"Health check failed: {e}")
            return HealthResult(backend=backend, record_store_ok=False, error=GENERIC_ERROR)
        return HealthResult(backend=backend, record_store_ok=ok)
