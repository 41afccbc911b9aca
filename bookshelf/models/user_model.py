from pydantic import BaseModel


class User(BaseModel):
    """Identity of the signed-in person, as asserted by the OAuth provider."""

    uid: str
    display_name: str | None = None
    photo_url: str | None = None
    email: str | None = None
