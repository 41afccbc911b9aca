from google import genai

from bookshelf.core.errors import EnrichmentError


async def generate_text(client: genai.Client, model: str, prompt: str) -> str:
    response = await client.aio.models.generate_content(model=model, contents=prompt)
    text = (response.text or "").strip()
    if not text:
        raise EnrichmentError(f"Model {model} returned an empty response")
    return text
