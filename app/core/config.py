from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Cine Fantástico API"
    API_PREFIX: str = "/api"
    SECRET_KEY: str = "cine-fantastico-secret-key-2025"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # Session cookie
    AUTH_COOKIE_NAME: str = "auth-token"
    AUTH_COOKIE_SECURE: bool = False

    BCRYPT_ROUNDS: int = 12

    # Shared secret for POST /auth/admin/register; empty keeps the route closed
    ADMIN_SECRET_KEY: str = ""

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "cine_fantastico"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # Reservations
    RESERVATION_HOLD_MINUTES: int = 30
    EXPIRY_SWEEP_ENABLED: bool = True
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 60

    # Showtimes
    SHOWTIME_GRACE_HOURS: int = 24
    SHOWTIME_CLEANUP_MINUTES: int = 30

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
