"""
Configuration management using Pydantic settings.
Loads environment variables for Supabase, credential encryption, remote API
timeouts and the camouflage import policy.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Supabase Configuration
    supabase_url: str
    supabase_service_key: str

    # Credential encryption secret (any non-empty string, stretched with HKDF)
    credential_encryption_key: str

    # Application Configuration
    app_environment: str = "development"
    log_level: str = "INFO"
    default_merchant_id: str = "00000000-0000-0000-0000-000000000001"  # Demo principal
    log_buffer_size: int = 1000

    # Remote API Configuration
    probe_timeout_seconds: float = 15.0
    http_timeout_seconds: float = 30.0
    woocommerce_max_page_size: int = 100
    woocommerce_default_page_size: int = 20
    shopify_api_version: str = "2025-07"
    error_body_max_chars: int = 500

    # Currency
    default_source_currency: str = "MXN"
    exchange_rate_api_url: str = "https://open.er-api.com/v6/latest/{base}"

    # Camouflage import policy
    camouflage_vendor: str = "Imported"
    camouflage_body_template: str = "<p>Imported product</p><p>Original SKU: {sku}</p>"
    camouflage_inventory_mode: str = "source"  # "source" or "fixed"
    camouflage_fixed_inventory: int = 10
    camouflage_image_strategy: str = "inline"  # "inline" or "placeholder"
    demo_fallback_enabled: bool = True

    # Retry Configuration
    max_retry_attempts: int = 3
    retry_backoff_multiplier: float = 2.0
    retry_initial_delay_seconds: float = 1.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
