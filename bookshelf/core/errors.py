class BookshelfError(Exception):
    """Base class for every failure the bookshelf raises on purpose.

    ``user_message`` is what a person sees. The exception text itself is
    diagnostic detail and only goes to the log.
    """

    user_message = "Something went wrong. Please try again."


class ValidationError(BookshelfError):
    user_message = "Title and author are required."


class PersistenceError(BookshelfError):
    user_message = "Failed to save book. Please try again."


class StorageError(BookshelfError):
    user_message = "Failed to upload file. Please try again."


class EnrichmentError(BookshelfError):
    user_message = "AI generation failed. Please try again later."


class NotFoundError(BookshelfError):
    user_message = "Book not found."


class AuthenticationError(BookshelfError):
    user_message = "Please sign in to continue."
