import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

from google.api_core.exceptions import Forbidden, NotFound
from google.auth.exceptions import DefaultCredentialsError

from bookshelf.core.errors import StorageError
from bookshelf.services.asset_service import AssetStore, ai_cover_key, cover_key, voice_key

from support import BUCKET, fake_asset_store, public_url


NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


class TestAssetKeys(unittest.TestCase):
    def test_cover_key_uses_timestamp_and_basename(self) -> None:
        self.assertEqual(cover_key("/tmp/uploads/dune.jpg", NOW), f"covers/{NOW_MS}_dune.jpg")

    def test_generated_asset_keys(self) -> None:
        self.assertEqual(ai_cover_key(NOW), f"ai_covers/{NOW_MS}_ai.png")
        self.assertEqual(voice_key(NOW), f"voices/{NOW_MS}_voice.mp3")


class TestKeyFromUrl(unittest.TestCase):
    def setUp(self) -> None:
        self.store, _ = fake_asset_store()

    def test_public_url_round_trips_to_key(self) -> None:
        key = "covers/1700000000000_my cover (1).png"

        url = self.store.public_url(key)

        self.assertNotIn(" ", url)
        self.assertEqual(self.store.key_from_url(url), key)

    def test_gs_url(self) -> None:
        self.assertEqual(self.store.key_from_url(f"gs://{BUCKET}/voices/1_voice.mp3"), "voices/1_voice.mp3")

    def test_firebase_download_url(self) -> None:
        url = (
            f"https://firebasestorage.googleapis.com/v0/b/{BUCKET}/o/"
            "ai_covers%2F1700000000000_ai.png?alt=media&token=abc"
        )

        self.assertEqual(self.store.key_from_url(url), "ai_covers/1700000000000_ai.png")

    def test_foreign_urls_resolve_to_none(self) -> None:
        for url in (
            "https://image.pollinations.ai/prompt/a%20castle?width=512&height=768",
            "https://storage.googleapis.com/other-bucket/covers/1_a.png",
            f"https://storage.googleapis.com/{BUCKET}/",
            "gs://other-bucket/covers/1_a.png",
            "data:audio/mpeg;base64,AAAA",
            "not a url",
        ):
            with self.subTest(url=url):
                self.assertIsNone(self.store.key_from_url(url))
                self.assertFalse(self.store.owns(url))

    def test_owns_rejects_empty(self) -> None:
        self.assertFalse(self.store.owns(None))
        self.assertFalse(self.store.owns(""))


class TestAssetStore(unittest.IsolatedAsyncioTestCase):
    async def test_upload_returns_public_url(self) -> None:
        store, bucket = fake_asset_store()

        url = await store.upload("covers/1_dune.jpg", b"jpeg", "image/jpeg")

        self.assertEqual(url, public_url("covers/1_dune.jpg"))
        bucket.blob.assert_called_once_with("covers/1_dune.jpg")
        bucket.blob.return_value.upload_from_string.assert_called_once_with(b"jpeg", content_type="image/jpeg")

    async def test_upload_failure_raises_storage_error(self) -> None:
        store, bucket = fake_asset_store()
        bucket.blob.return_value.upload_from_string.side_effect = Forbidden("quota")

        with self.assertRaises(StorageError):
            await store.upload("covers/1_dune.jpg", b"jpeg", "image/jpeg")

    async def test_delete_by_url_removes_the_exact_key(self) -> None:
        store, bucket = fake_asset_store()

        deleted = await store.delete_by_url(public_url("covers/1_dune%20cover.jpg"))

        self.assertTrue(deleted)
        bucket.blob.assert_called_once_with("covers/1_dune cover.jpg")
        bucket.blob.return_value.delete.assert_called_once_with()

    async def test_delete_by_url_ignores_foreign_url(self) -> None:
        store, bucket = fake_asset_store()

        deleted = await store.delete_by_url("https://image.pollinations.ai/prompt/castle")

        self.assertFalse(deleted)
        bucket.blob.assert_not_called()

    async def test_delete_by_url_missing_blob_is_not_an_error(self) -> None:
        store, bucket = fake_asset_store()
        bucket.blob.return_value.delete.side_effect = NotFound("gone")

        self.assertFalse(await store.delete_by_url(public_url("voices/1_voice.mp3")))

    async def test_delete_by_url_backend_failure_raises(self) -> None:
        blob = MagicMock()
        blob.delete.side_effect = Forbidden("denied")
        store, _ = fake_asset_store(lambda key: blob)

        with self.assertRaises(StorageError):
            await store.delete_by_url(public_url("voices/1_voice.mp3"))


class TestAssetStoreConfiguration(unittest.IsolatedAsyncioTestCase):
    async def test_client_is_not_built_until_first_write(self) -> None:
        factory = Mock(side_effect=DefaultCredentialsError("no credentials"))
        store = AssetStore(factory, BUCKET)

        self.assertEqual(store.key_from_url(public_url("covers/1_a.png")), "covers/1_a.png")
        self.assertTrue(store.owns(public_url("covers/1_a.png")))
        factory.assert_not_called()

    async def test_missing_credentials_raise_storage_error(self) -> None:
        store = AssetStore(Mock(side_effect=DefaultCredentialsError("no credentials")), BUCKET)

        with self.assertRaises(StorageError):
            await store.upload("covers/1_a.png", b"png", "image/png")
        with self.assertRaises(StorageError):
            await store.delete_by_url(public_url("covers/1_a.png"))

    async def test_empty_bucket_name_raises_storage_error(self) -> None:
        factory = Mock()
        store = AssetStore(factory, "")

        with self.assertRaises(StorageError):
            await store.upload("covers/1_a.png", b"png", "image/png")

        factory.assert_not_called()
        self.assertFalse(store.owns("https://storage.googleapis.com//covers/1_a.png"))
        self.assertFalse(await store.delete_by_url("https://storage.googleapis.com//covers/1_a.png"))

    async def test_client_is_built_once(self) -> None:
        client = MagicMock()
        factory = Mock(return_value=client)
        store = AssetStore(factory, BUCKET)

        await store.upload("covers/1_a.png", b"png", "image/png")
        await store.delete_by_url(public_url("covers/1_a.png"))

        factory.assert_called_once_with()
        client.bucket.assert_called_once_with(BUCKET)


if __name__ == "__main__":
    unittest.main()
