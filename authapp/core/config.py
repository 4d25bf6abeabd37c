# authapp/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from authapp.core.otp import TotpParams


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    APP_NAME: str = "AuthApp"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"])

    # JWT emitido por el servicio de cuentas; acá solo se valida
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    # base64 de 32 bytes: cifra secretos TOTP y firma los códigos de respaldo
    MASTER_KEY: str = ""

    DATABASE_URL: str = "sqlite+aiosqlite:///./authapp.db"
    # si DB_HOST está seteado se usa MySQL
    DB_HOST: str | None = None
    DB_PORT: int = 3306
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""

    TOTP_ISSUER: str = "AuthApp"
    TOTP_ALGORITHM: str = "SHA1"
    TOTP_DIGITS: int = 6
    TOTP_PERIOD: int = 30
    TOTP_WINDOW: int = 1
    BACKUP_CODE_COUNT: int = 10
    PENDING_ENROLLMENT_TTL_MINUTES: int = 15

    @property
    def async_database_url(self) -> str:
        if self.DB_HOST:
            return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                    f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")
        return self.DATABASE_URL

    @property
    def totp_params(self) -> TotpParams:
        return TotpParams(
            algorithm=self.TOTP_ALGORITHM,
            digits=self.TOTP_DIGITS,
            step_seconds=self.TOTP_PERIOD,
        )


settings = Settings()
