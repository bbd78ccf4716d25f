from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "Interception CA"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Storage (root CA files live in DATA_DIR/certs)
    DATA_DIR: Path = Path.home() / ".interception"

    # User-supplied override certificates (exact host, wildcard, root)
    CERT_DIR: Optional[Path] = None

    # Root CA
    ENABLE_LARGE_KEY: bool = False
    CA_PRODUCT_NAME: str = "interception"
    HOME_DIRNAME: Optional[str] = None


settings = Settings()
