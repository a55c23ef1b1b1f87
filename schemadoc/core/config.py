from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from schemadoc.models.schema import DuplicateKeyPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    PROJECT_NAME: str = "Schema Documentation Graph"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # PostgreSQL catalog source
    PG_HOST: str = "localhost"
    PG_PORT: int = 5432
    PG_DBNAME: str = "postgres"
    PG_USER: str = "postgres"
    PG_PASSWORD: str = "postgres"
    PG_SCHEMA: str = "public"
    PG_CONNECT_TIMEOUT_S: int = 10

    # Replay exported result sets instead of querying a live catalog
    OFFLINE_FOLDER: Optional[str] = None

    # Graph assembly
    WRAP_WIDTH: int = 80
    WRAP_LINE_BREAK: str = "\r\n\t"
    CONCAT_LINE_BREAK: str = "\r\n"
    DUPLICATE_KEY_POLICY: DuplicateKeyPolicy = DuplicateKeyPolicy.OVERWRITE

    LOG_LEVEL: str = "INFO"


settings = Settings()
