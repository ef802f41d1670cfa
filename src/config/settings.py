from pathlib import Path

from dotenv import load_dotenv
from pydantic import SecretStr
from pydantic.functional_validators import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.schemas.types import Environment


class BaseSettingsConfig(BaseSettings):
    """Base configuration class for settings.

    This class extends BaseSettings to provide common configuration options
    for environment variable loading and processing.

    Attributes
    ----------
    model_config : SettingsConfigDict
        Configuration dictionary for the settings model specifying env file location,
        encoding and other processing options.
    """

    model_config = SettingsConfigDict(
        env_file=str(Path(".env").absolute()),
        env_file_encoding="utf-8",
        extra="ignore",
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Settings(BaseSettingsConfig):
    """Application settings holding object store credentials and runtime flags."""

    # ===== RUNTIME =====
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    DEBUG: bool = False
    LOG_STRUCTURED: bool = False

    # ===== OBJECT STORE =====
    AWS_ACCESS_KEY_ID: SecretStr = SecretStr("")
    AWS_SECRET_ACCESS_KEY: SecretStr = SecretStr("")
    AWS_DEFAULT_REGION: str = "us-east-1"
    AWS_S3_HOST: str | None = None
    AWS_S3_PORT: int | None = None
    AWS_S3_USE_SSL: bool = True

    @field_validator("AWS_S3_PORT", mode="before")
    @classmethod
    def parse_port_fields(cls, v: str | int | None) -> int | None:
        """Parses port fields to ensure they are integers."""
        if v is None or v == "":
            return None

        if isinstance(v, str):
            try:
                v = int(v.strip())
            except ValueError:
                raise ValueError(f"Invalid port value: {v}") from None

        if not (1 <= v <= 65535):
            raise ValueError(f"Port must be between 1 and 65535, got {v}")

        return v

    @property
    def aws_s3_endpoint_url(self) -> str | None:
        """Constructs the S3 endpoint URL for MinIO or other S3-compatible services.

        Returns
        -------
        str | None
            The endpoint in the format scheme://host[:port], or None to use AWS defaults.
        """
        if not self.AWS_S3_HOST:
            return None

        scheme: str = "https" if self.AWS_S3_USE_SSL else "http"
        url: str = f"{scheme}://{self.AWS_S3_HOST}"
        if self.AWS_S3_PORT:
            url = f"{url}:{self.AWS_S3_PORT}"
        return url


def refresh_settings() -> Settings:
    """Refresh environment variables and return new Settings instance.

    This function reloads environment variables from .env file and creates
    a new Settings instance with the updated values.

    Returns
    -------
    Settings
        A new Settings instance with refreshed environment variables
    """
    load_dotenv(override=True)
    return Settings()


app_settings: Settings = refresh_settings()
