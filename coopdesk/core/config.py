from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Find .env file - check coopdesk/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "coopdesk" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use coopdesk/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    REPLY_TO_EMAIL: Optional[str] = None

    # Payroll / voucher policy
    VOUCHER_CUTOFF_DAY: int = 15  # Registrations up to this day are deducted the same month
    NEW_MEMBER_FEE: int = 1000
    OLD_MEMBER_FEE: int = 100
    MONTH_END_DUE_DAY: int = 30
    VOUCHER_TITLE: str = "LIST OF COOPERATIVE MEMBERS"

    # Loans
    LOAN_INTEREST_RATE_PERCENT: int = 5

    # Scheduler
    ENABLE_SCHEDULER: bool = True
    SCHEDULER_INTERVAL_MINUTES: int = 60
    MONTH_END_CRON_SECRET: Optional[str] = None

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = env_file
        case_sensitive = True
        extra = "ignore"


settings = Settings()

# Derived paths
LOGS_DIR = BASE_DIR / "logs"
