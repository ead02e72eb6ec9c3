from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Buchhaltung Desk"
    LOG_LEVEL: str = "INFO"

    # JSON files (relative names are resolved against DATA_DIR)
    DATA_DIR: str = "data"
    BUCHUNGEN_FILE: str = "buchungen.json"
    IRRELEVANT_DOCS_FILE: str = "irrelevant-docs.json"
    IMPORT_FILE: str = "import.json"
    KONTO_FILE: str = "konto.json"

    # Object storage
    STORAGE_BACKEND: str = "s3"  # "s3" or "memory"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "eu-west-1"
    AWS_BUCKET_NAME: str = "bucket-hergol"
    SIGNED_URL_EXPIRY: int = 3600
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024

    # Account mapping for imports
    CLEARING_ACCOUNT: int = 99999
    CREDIT_CARD_ACCOUNT: int = 1013
    XFACT_SOLL: int = 1100
    XFACT_HABEN: int = 3600
    DEFAULT_IMPORT_ACCOUNT: str = "1000"

    # Category suggestions
    OPENAI_MODEL: str = "gpt-4o-mini"

    class Config:
        case_sensitive = True
        env_file = ".env.local"
        extra = "ignore"

    def data_path(self, name: str) -> Path:
        path = Path(name)
        if path.is_absolute():
            return path
        return Path(self.DATA_DIR) / path

settings = Settings()
