import base64

from pydantic import BaseModel


class MetadataResult(BaseModel):
    success: bool
    description: str | None = None
    cover_prompt: str | None = None
    error: str | None = None


class NarrationResult(BaseModel):
    success: bool
    audio: bytes | None = None
    content_type: str = "audio/mpeg"
    error: str | None = None

    @property
    def data_url(self) -> str | None:
        if self.audio is None:
            return None
        encoded = base64.b64encode(self.audio).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


class RemoteImageResult(BaseModel):
    success: bool
    data: bytes | None = None
    content_type: str | None = None
    error: str | None = None
