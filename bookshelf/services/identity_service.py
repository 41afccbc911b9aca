import logging
from typing import Any, Callable

from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from bookshelf.core.errors import AuthenticationError
from bookshelf.models.user_model import User


logger = logging.getLogger("bookshelf.identity")

TokenVerifier = Callable[[str], dict[str, Any]]


def google_token_verifier(client_id: str) -> TokenVerifier:
    """Verify Google-issued ID tokens for ``client_id``.

    Every token is refused when ``client_id`` is empty; the audience check is
    never skipped.
    """
    request = google_requests.Request()

    def _verify(token: str) -> dict[str, Any]:
        if not client_id:
            raise AuthenticationError("No OAuth client id configured (GOOGLE_CLIENT_ID)")
        return google_id_token.verify_oauth2_token(token, request, audience=client_id)

    return _verify


class IdentityGate:
    """Tracks who is signed in and refuses mutating calls when nobody is.

    The interactive OAuth popup lives in the client. This side only receives
    the ID token it produced and checks it.
    """

    def __init__(self, verifier: TokenVerifier) -> None:
        self._verifier = verifier
        self._user: User | None = None

    @property
    def current_user(self) -> User | None:
        return self._user

    @property
    def is_signed_in(self) -> bool:
        return self._user is not None

    def sign_in(self, token: str) -> User:
        if not token:
            raise AuthenticationError("Empty ID token")
        try:
            claims = self._verifier(token)
        except (ValueError, GoogleAuthError) as e:
            raise AuthenticationError(f"ID token rejected: {e}") from e
        if not claims.get("sub"):
            raise AuthenticationError("ID token has no subject")

        self._user = User(
            uid=claims["sub"],
            display_name=claims.get("name"),
            photo_url=claims.get("picture"),
            email=claims.get("email"),
        )
        logger.info(f"Signed in as {self._user.display_name or self._user.uid}")
        return self._user

    def sign_out(self) -> None:
        if self._user is not None:
            logger.info(f"Signed out {self._user.uid}")
        self._user = None

    def require_user(self) -> User:
        if self._user is None:
            raise AuthenticationError("No signed-in user")
        return self._user
