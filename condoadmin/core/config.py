import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # MercadoPago
    MERCADOPAGO_ACCESS_TOKEN: Optional[str] = None
    MERCADOPAGO_WEBHOOK_SECRET: Optional[str] = None
    MERCADOPAGO_API_URL: str = "https://api.mercadopago.com"
    MERCADOPAGO_TIMEOUT_SECONDS: float = 10.0

    # WhatsApp (payment confirmations)
    WHATSAPP_PROVIDER: str = "zpro"
    WHATSAPP_API_URL: Optional[str] = None
    WHATSAPP_API_KEY: Optional[str] = None
    WHATSAPP_TIMEOUT_SECONDS: float = 10.0

    # Billing rules
    BILLING_PERIOD_DAYS: int = 30
    UPGRADE_INVOICE_DUE_DAYS: int = 7
    TRIAL_END_DUE_BUSINESS_DAYS: int = 3
    DEFAULT_TRIAL_DAYS: int = 7
    MAX_TRIAL_DAYS: int = 90
    MAX_EXTRA_DAYS: int = 365
    SINDICO_EARLY_TRIAL_DISCOUNT: float = 15.0  # percent

    # Audit logging
    AUDIT_ENABLED: bool = True

    # Admin access
    ADMIN_KEY: Optional[str] = None
    ENVIRONMENT: str = "dev"  # "dev" | "test" | "prod"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("condoadmin")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "MERCADOPAGO_ACCESS_TOKEN",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
