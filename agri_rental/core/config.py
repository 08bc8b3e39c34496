from typing import List

from pydantic_settings import BaseSettings

from agri_rental.core.enums import PrimaryOperatorPolicy


class Settings(BaseSettings):
    DATABASE_URL: str

    REDIS_URL: str

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    RATE_LIMIT: int = 100
    RATE_LIMIT_WINDOW: int = 600  # 10 minutes

    IDEMPOTENCY_TTL: int = 300  # 5 minutes

    NOTIFICATION_WEBHOOK_URL: str
    WEBHOOK_TIMEOUT: int = 10
    WEBHOOK_RETRIES: int = 3
    NOTIFICATION_MAX_ATTEMPTS: int = 5
    NOTIFICATION_REDELIVERY_INTERVAL: int = 300  # 5 minutes

    CELERY_BROKER_URL: str
    CELERY_BACKEND: str

    ADMIN_HANDLER_ID: str = "admin"
    PRIMARY_OPERATOR_POLICY: PrimaryOperatorPolicy = PrimaryOperatorPolicy.ALLOW_MULTIPLE
    BOOKABLE_DEVICE_STATUSES: List[str] = ["LIVE"]

    API_TITLE: str = "Agri Rental Service"
    API_DESCRIPTION: str = "Order, lease and pricing lifecycle for the equipment rental marketplace"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
