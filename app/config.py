from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "School Fees API"
    app_version: str = "0.1.0"
    frontend_url: str = "http://localhost:3000"
    database_url: str = "sqlite:///./local.db"
    log_level: str = "info"
    log_json: bool = False
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60
    default_page_size: int = 20
    max_page_size: int = 100
    assignment_batch_size: int = 50
    amount_tolerance: Decimal = Decimal("0.01")
    max_discount_percentage: Decimal = Decimal("50")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
