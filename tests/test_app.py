import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from bookshelf.app import create_services
from bookshelf.core.config import Config
from bookshelf.core.errors import AuthenticationError, PersistenceError, StorageError
from bookshelf.models.book_model import BookForm, UploadedFile
from bookshelf.services.identity_service import IdentityGate


def local_config(tmpdir: str, **overrides) -> Config:
    values = dict(
        database_url=f"sqlite+aiosqlite:///{Path(tmpdir) / 'books.db'}",
        gcs_bucket_name="",
        gemini_api_key="",
        google_client_id="",
    )
    values.update(overrides)
    return Config(_env_file=None, **values)


class TestCreateServices(unittest.IsolatedAsyncioTestCase):
    async def test_read_only_operations_work_without_cloud_setup(self) -> None:
        with TemporaryDirectory() as tmpdir:
            async with create_services(local_config(tmpdir)) as services:
                health = await services.workflow.health()
                listed = await services.workflow.list_books()

        self.assertTrue(health.record_store_ok)
        self.assertEqual(health.backend["bucket"], "(unset)")
        self.assertTrue(listed.success)
        self.assertEqual(listed.books, [])

    async def test_sign_in_is_refused_without_client_id(self) -> None:
        with TemporaryDirectory() as tmpdir:
            async with create_services(local_config(tmpdir)) as services:
                with self.assertRaises(AuthenticationError):
                    services.identity.sign_in("any-google-token")
                self.assertFalse(services.identity.is_signed_in)

    async def test_upload_without_bucket_fails_with_short_message(self) -> None:
        with TemporaryDirectory() as tmpdir:
            async with create_services(local_config(tmpdir)) as services:
                services.workflow.identity = IdentityGate(lambda token: {"sub": "u1"})
                services.workflow.identity.sign_in("token")

                result = await services.workflow.save(
                    BookForm(
                        title="Dune",
                        author="Herbert",
                        cover_image_file=UploadedFile(filename="dune.jpg", data=b"jpg"),
                    )
                )
                listed = await services.workflow.list_books()

        self.assertFalse(result.success)
        self.assertEqual(result.error, StorageError.user_message)
        self.assertEqual(listed.books, [])

    async def test_unusable_database_url_raises_persistence_error(self) -> None:
        with TemporaryDirectory() as tmpdir:
            with self.assertRaises(PersistenceError):
                async with create_services(local_config(tmpdir, database_url="nosuchdriver://db")):
                    pass


if __name__ == "__main__":
    unittest.main()
