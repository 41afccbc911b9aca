from urllib.parse import quote

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from bookshelf.core.errors import EnrichmentError


def build_image_url(template: str, prompt: str, width: int, height: int) -> str:
    return template.format(prompt=quote(prompt, safe=""), width=width, height=height)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True
)
async def fetch_image(client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
    headers = {
        "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:144.0) Gecko/20100101 Firefox/144.0",
        "Accept": "image/avif,image/webp,image/png,image/*;q=0.8,*/*;q=0.5",
    }
    response = await client.get(url, headers=headers, follow_redirects=True)
    if response.is_error:
        raise EnrichmentError(f"Image host answered {response.status_code} for {url}")

    content_type = response.headers.get("content-type", "image/png").split(";")[0].strip() or "image/png"
    if not content_type.startswith("image/"):
        raise EnrichmentError(f"Expected an image from {url}, got {content_type}")
    if not response.content:
        raise EnrichmentError(f"Empty image body from {url}")
    return response.content, content_type
