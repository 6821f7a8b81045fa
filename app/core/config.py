"""
Application configuration settings
"""
import os
from pydantic_settings import BaseSettings
from typing import Optional

DEV_JWT_SECRET = "brave-things-books-dev-secret-change-me-in-production"


class Settings(BaseSettings):
    """Application settings"""

    # App Configuration
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = "0.0.0.0"
    PORT: int = int(os.getenv("PORT", "8000"))

    # Token signing
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"

    # Password hashing (PBKDF2-SHA256 iteration count)
    PASSWORD_HASH_ROUNDS: int = 29000
    MIN_PASSWORD_LENGTH: int = 6

    # Login rate limiting
    LOGIN_WINDOW_MINUTES: int = 15
    LOCKOUT_MINUTES: int = 30

    # Defaults for admin-configurable system settings
    AUTH_TOKEN_EXPIRY_DAYS: int = 7
    BOOK_ACCESS_TOKEN_EXPIRY_DAYS: int = 0  # 0 = book tokens never expire
    MAX_LOGIN_ATTEMPTS: int = 5
    PASSWORD_RESET_EXPIRY_HOURS: int = 1
    ENABLE_EMAIL_NOTIFICATIONS: bool = True

    # Storage backend: "memory" (process-local) or "firestore"
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory")

    # Firebase Configuration (only needed for the firestore backend)
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    FIREBASE_CLIENT_ID: Optional[str] = None
    FIREBASE_AUTH_URI: str = "https://accounts.google.com/o/oauth2/auth"
    FIREBASE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"

    # External book integration
    PLATFORM_ID: str = "brave-things-books"
    PLATFORM_NAME: str = "Brave Things Books"
    PLATFORM_BASE_URL: Optional[str] = None  # falls back to the request base URL
    RETURN_PATH: str = "/library"
    RETURN_LABEL: str = "Back to Library"
    BOOK_RENDERER_URL: str = "https://step1-sumws7e-j3yjdb548wy0.deno.dev"
    SEED_CATALOG: bool = True

    # Admin bootstrap account
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_NAME: str = "Administrator"

    # Comma-separated list of allowed CORS origins
    ALLOWED_ORIGINS: str = "http://localhost:5173,https://brave-things-books.vercel.app"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = 'ignore'

    @property
    def is_production(self) -> bool:
        """Check if running in production (Cloud Run or DEBUG off)"""
        return os.getenv("K_SERVICE") is not None or not self.DEBUG

    @property
    def allowed_origins(self) -> list:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
