"""Configuration management for the application."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_title: str = "Cashback Tracker API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api"

    # CORS Configuration
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Solana Configuration (Helius or any JSON-RPC endpoint)
    helius_rpc_url: str = "https://api.mainnet-beta.solana.com"
    solana_rpc_batch_size: int = 10

    # Moralis Configuration (Ethereum and BSC)
    moralis_api_key: Optional[str] = None
    moralis_base_url: str = "https://deep-index.moralis.io/api"

    # Price Service Configuration
    coingecko_api_key: Optional[str] = None
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    binance_base_url: str = "https://api.binance.com/api/v3"
    price_cache_ttl_seconds: int = 30

    # Upstream request timeout, applied to every adapter call
    request_timeout_seconds: float = 10.0
    # Upper bound on one adapter operation, which may span several requests
    adapter_timeout_seconds: float = 30.0

    # Tax wallets
    tax_wallet_sol: str = ""
    tax_wallet_sol_active: bool = True
    tax_wallet_eth: str = ""
    tax_wallet_eth_active: bool = True
    tax_wallet_bnb: str = ""
    tax_wallet_bnb_active: bool = True

    # Eligibility and cashback
    eligibility_threshold: float = 50.0
    cashback_rate: float = 0.02
    eligibility_unit: str = "usd"  # "usd" or "native"
    tax_wallet_transaction_limit: int = 100
    dashboard_transaction_limit: int = 20
    wallet_transaction_limit: int = 5

    # Data source: "live", "synthetic" or "auto"
    data_source: str = "auto"

    # Cache Configuration
    cache_ttl_seconds: int = 3600  # 1 hour default
    enable_cache: bool = True

    # Database Configuration
    database_url: str = "sqlite:///./cashback.db"

    # Rate Limiting
    eligibility_rate_limit: int = 10
    eligibility_rate_window_seconds: int = 60

    # Realtime stream
    realtime_interval_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
