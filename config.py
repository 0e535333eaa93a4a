from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service settings
    service_name: str = "hotel-web-client"
    service_version: str = "1.0.0"
    log_level: str = "INFO"

    # Hotel API settings
    api_base_url: str = "http://localhost:8000/api/"
    api_timeout_seconds: float = 15.0

    # Serve from an in-process hotel API instead of the remote one
    use_in_memory_backend: bool = False

    # Used until hotel info has been fetched
    default_currency: str = "PHP"
    default_currency_symbol: str = "₱"
    default_tax_rate: Decimal = Decimal("0")

    # Submit-time availability re-check
    recheck_before_submit: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
