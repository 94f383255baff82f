from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    service_name: str = "order-service"
    log_level: str = "INFO"
    cors_origins: str = "*"
    db_pool_size: int = 20
    db_max_overflow: int = 10

    frontend_url: str = "http://localhost:5173"
    backend_url: str = "http://localhost:4000"

    mercadopago_access_token: str | None = None
    mercadopago_api_url: str = "https://api.mercadopago.com"
    payment_gateway_timeout: float = 10.0

    delivery_fee: float = 2.0
    fallback_phone: str = "11999999999"

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("Only PostgreSQL and SQLite are supported")
        return v

    @field_validator("mercadopago_access_token")
    @classmethod
    def blank_token_is_unset(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


settings = Settings()
