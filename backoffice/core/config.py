"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    public_base_url: str = "http://localhost:8000"


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./backoffice.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None


class SecuritySettings(BaseModel):
    # no default: must be injected through SECURITY__SECRET_KEY
    secret_key: SecretStr = Field(min_length=8)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False


class TopPaySettings(BaseModel):
    base_url: Optional[str] = None
    merchant_code: Optional[str] = None
    # PKCS#8 PEM, injected from the secret store (env or mounted file)
    private_key: Optional[SecretStr] = None
    private_key_file: Optional[Path] = None
    platform_public_key: Optional[SecretStr] = None
    platform_public_key_file: Optional[Path] = None
    notify_url: Optional[str] = None
    timeout: float = Field(default=15.0, ge=1, le=60)


class CloudPaySettings(BaseModel):
    base_url: str = "https://api.cloudpay.space"
    merchant_id: Optional[str] = None
    api_token: Optional[SecretStr] = None
    timeout: float = Field(default=20.0, ge=1, le=60)


class WddPaySettings(BaseModel):
    base_url: Optional[str] = None
    merchant_id: Optional[str] = None
    secret_key: Optional[SecretStr] = None
    notify_url: Optional[str] = None
    timeout: float = Field(default=20.0, ge=1, le=60)


class GatewaySettings(BaseModel):
    toppay: TopPaySettings = TopPaySettings()
    cloudpay: CloudPaySettings = CloudPaySettings()
    wddpay: WddPaySettings = WddPaySettings()


class ReconciliationSettings(BaseModel):
    processing_timeout_minutes: int = Field(default=30, ge=1)
    replay_batch_size: int = Field(default=100, ge=1)
    max_callback_attempts: int = Field(default=5, ge=1)


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Back Office Payout Service"
    api_prefix: str = "/api"
    currency: str = "INR"

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings
    logging: LoggingSettings = LoggingSettings()
    gateways: GatewaySettings = GatewaySettings()
    reconciliation: ReconciliationSettings = ReconciliationSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def secret_key(self) -> str:
        return self.security.secret_key.get_secret_value()

    @property
    def algorithm(self) -> str:
        return self.security.algorithm

    @property
    def access_token_expire_minutes(self) -> int:
        return self.security.access_token_expire_minutes

    def webhook_url(self, gateway: str) -> str:
        base = self.server.public_base_url.rstrip("/")
        return f"{base}{self.api_prefix}/webhooks/{gateway}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
