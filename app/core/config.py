from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Slot Ledger API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "slot_ledger_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # Payment gateway (Razorpay)
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    PAYMENT_CURRENCY: str = "INR"
    MAX_ORDER_AMOUNT: int = 1_000_000
    PAYMENT_ORDER_TTL_MINUTES: int = 15
    ORDER_CLEANUP_INTERVAL_SECONDS: int = 60

    # Catalog / availability
    BOOKING_HORIZON_DAYS: int = 30
    REFRESH_INTERVAL_SECONDS: float = 15.0
    # Today's slots stay bookable after their start time unless this is turned off
    ALLOW_ELAPSED_SAME_DAY_SLOTS: bool = True

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
