import logging

import httpx
from google import genai

from bookshelf.api.image import build_image_url, fetch_image
from bookshelf.api.speech import fetch_speech
from bookshelf.api.text import generate_text
from bookshelf.models.enrichment_model import MetadataResult, NarrationResult, RemoteImageResult


logger = logging.getLogger("bookshelf.enrichment")

METADATA_ERROR = "Failed to generate metadata. Ensure API keys are configured."
NARRATION_ERROR = "Failed to generate narration."
IMAGE_ERROR = "Failed to fetch image."

DEFAULT_IMAGE_ENDPOINT = "https://image.pollinations.ai/prompt/{prompt}?width={width}&height={height}&nologo=true"


def description_prompt(title: str, author: str) -> str:
    return (
        f'Write a compelling, intuitive, and short description (max 100 words) for the book "{title}" '
        f"by {author}. Focus on the themes and why a reader would love it."
    )


def cover_prompt_prompt(title: str, author: str, description: str) -> str:
    return (
        f'Create a vivid, artistic English text prompt for an AI image generator to create a book cover for "{title}" '
        f"by {author}. The book is about: {description}. "
        "Describe the visual elements, style, and mood. Keep it under 50 words."
    )


class EnrichmentClient:
    """Single gateway to the AI text, speech and image services.

    None of the public methods raise: every failure is logged here and comes
    back as a result with ``success=False`` and a short, generic ``error``.
    """

    def __init__(
        self,
        genai_client: genai.Client | None,
        http_client: httpx.AsyncClient,
        *,
        text_model: str = "gemini-2.0-flash",
        tts_endpoint: str = "https://translate.google.com/translate_tts",
        tts_language: str = "en",
        narration_max_chars: int = 200,
        image_endpoint: str = DEFAULT_IMAGE_ENDPOINT,
        image_width: int = 512,
        image_height: int = 768,
    ) -> None:
        self.genai_client = genai_client
        self.http_client = http_client
        self.text_model = text_model
        self.tts_endpoint = tts_endpoint
        self.tts_language = tts_language
        self.narration_max_chars = narration_max_chars
        self.image_endpoint = image_endpoint
        self.image_width = image_width
        self.image_height = image_height

    async def generate_metadata(self, title: str, author: str) -> MetadataResult:
        if self.genai_client is None:
            logger.warning("No Gemini API key configured, skipping metadata generation")
            return MetadataResult(success=False, error=METADATA_ERROR)

        # The cover prompt is seeded with the description, so the two calls stay sequential.
        try:
            description = await generate_text(
                self.genai_client, self.text_model, description_prompt(title, author)
            )
            cover_prompt = await generate_text(
                self.genai_client, self.text_model, cover_prompt_prompt(title, author, description)
            )
        except Exception as e:
            logger.exception(f"AI metadata generation failed for {title!r}: {e}")
            return MetadataResult(success=False, error=METADATA_ERROR)

        return MetadataResult(success=True, description=description, cover_prompt=cover_prompt)

    async def generate_narration(self, text: str) -> NarrationResult:
        clipped = text[: self.narration_max_chars]
        try:
            audio, content_type = await fetch_speech(
                self.http_client, self.tts_endpoint, clipped, self.tts_language
            )
        except Exception as e:
            logger.exception(f"Narration failed: {e}")
            return NarrationResult(success=False, error=NARRATION_ERROR)

        logger.info(f"Narrated {len(clipped)} chars into {len(audio)} bytes")
        return NarrationResult(success=True, audio=audio, content_type=content_type)

    async def fetch_remote_image(self, url: str) -> RemoteImageResult:
        try:
            data, content_type = await fetch_image(self.http_client, url)
        except Exception as e:
            logger.warning(f"Could not fetch remote image {url}: {e}")
            return RemoteImageResult(success=False, error=IMAGE_ERROR)

        return RemoteImageResult(success=True, data=data, content_type=content_type)

    def cover_image_url(self, prompt: str) -> str:
        return build_image_url(self.image_endpoint, prompt, self.image_width, self.image_height)
