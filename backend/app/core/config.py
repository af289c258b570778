from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Salon Back Office"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://salon_user:salon_pass@db:5432/salon_db"

    # Commissions
    DEFAULT_COMMISSION_PAY_DAY: int = 5  # day of month commission payables fall due

    # Payables
    MAX_INSTALLMENTS: int = 120  # upper bound for one recurring batch

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
