from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    env: str = "development"
    log_level: str = "INFO"

    database_url: str
    yappy_commerce_api_key: str
    yappy_commerce_secret_key: str
    yappy_payment_base: str = "https://yappy.com/payment"
    yappy_session_required: bool = False

    base_url: str = "http://localhost:8000"
    security_token: Optional[str] = None
    http_timeout: float = 30.0
    cors_origins: List[str] = ["*"]  # JSON list in the environment

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

settings = Settings()
