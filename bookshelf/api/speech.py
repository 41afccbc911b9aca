import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from bookshelf.core.errors import EnrichmentError


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True
)
async def fetch_speech(client: httpx.AsyncClient, endpoint: str, text: str, language: str = "en") -> tuple[bytes, str]:
    params = {
        "ie": "UTF-8",
        "q": text,
        "tl": language,
        "client": "tw-ob",
    }
    headers = {
        "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:144.0) Gecko/20100101 Firefox/144.0",
        "Accept": "audio/mpeg, audio/*;q=0.9, */*;q=0.5",
    }
    response = await client.get(endpoint, params=params, headers=headers)
    if response.is_error:
        raise EnrichmentError(f"Narration endpoint answered {response.status_code}")

    audio = response.content
    if not audio:
        raise EnrichmentError("Narration endpoint returned no audio")

    content_type = response.headers.get("content-type", "audio/mpeg").split(";")[0].strip()
    return audio, content_type or "audio/mpeg"
