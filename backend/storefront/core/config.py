"""
Centralized application configuration
"""
import json
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "Storefront API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Multi-tenant storefront and merchant dashboard API"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    MEDIA_BUCKET: str = "media"
    MEDIA_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Auth
    AUTH_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    # Payments
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"

    # Commerce defaults
    DEFAULT_CURRENCY: str = "USD"
    LOW_STOCK_THRESHOLD: int = 5

    # Page builder
    PAGE_VERSION_LIMIT: int = 50
    EDITOR_HISTORY_LIMIT: int = 50

    # Offline sync
    SYNC_MAX_RETRIES: int = 3

    # Proxies whose X-Forwarded-For header is honoured (comma-separated IPs)
    TRUSTED_PROXIES: str = ""

    def get_trusted_proxies(self) -> List[str]:
        """Parse TRUSTED_PROXIES string into list"""
        return [proxy.strip() for proxy in self.TRUSTED_PROXIES.split(",") if proxy.strip()]

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://yourdomain.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000,http://localhost:3001"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
