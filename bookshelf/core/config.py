from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Config(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./bookshelf.db"
    db_echo: bool = False

    gcp_project_id: str = ""
    gcs_bucket_name: str = ""
    google_application_credentials: str | None = None

    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    image_endpoint: str = "https://image.pollinations.ai/prompt/{prompt}?width={width}&height={height}&nologo=true"
    image_width: int = 512
    image_height: int = 768

    tts_endpoint: str = "https://translate.google.com/translate_tts"
    tts_language: str = "en"
    narration_max_chars: int = 200

    google_client_id: str = ""
    http_timeout: float = 30.0

    log_level: str = "INFO"
    log_file: Path | None = None

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def describe(self) -> dict[str, str]:
        """Non-secret identity of the configured backends."""
        return {
            "project_id": self.gcp_project_id or "(unset)",
            "bucket": self.gcs_bucket_name or "(unset)",
            "database": make_url(self.database_url).drivername,
            "text_model": self.gemini_model,
        }


@lru_cache
def get_config() -> Config:
    return Config()
