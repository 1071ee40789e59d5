"""
Configuration management for StoreClock Backend
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Required settings
    DATABASE_URL: str = Field(..., description="PostgreSQL database URL")
    JWT_SECRET_KEY: str = Field(..., description="JWT secret key for token signing")

    # Optional settings with defaults
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    # Timezone used to attribute worked minutes to days/weeks/months (storage is UTC)
    TZ: str = Field(default="UTC", description="IANA timezone for summary bucketing")

    # Check-in codes
    TOTP_STEP_SECONDS: int = Field(default=30, description="Length of one token time window in seconds")
    TOTP_DIGITS: int = Field(default=6, description="Number of decimal digits in a check-in token")
    TOTP_TOLERANCE_WINDOWS: int = Field(
        default=1,
        description="Adjacent windows (before and after) accepted when verifying a scanned token",
    )
    CHECKIN_URI_SCHEME: str = Field(default="workhaja", description="Scheme of the scanned check-in URI")
    QR_SAFETY_MARGIN_SECONDS: int = Field(
        default=10,
        description="Display re-issues a code once less than this many seconds of validity remain",
    )
    QR_BOX_SIZE: int = Field(default=10, description="Pixel size of one QR module")
    QR_BORDER: int = Field(default=1, description="QR quiet-zone width in modules")

    # Location trust
    CHECKIN_GEOFENCE_ENFORCED: bool = Field(
        default=False,
        description="If True, plausible GPS farther than the radius from the store is PENDING_REVIEW",
    )
    CHECKIN_GEOFENCE_RADIUS_MILES: float = Field(default=3.0, description="Allowed distance from the store")

    # Labor rule defaults for newly created stores
    DEFAULT_WEEK_STARTS_ON: int = Field(default=0, description="0=Sunday, 1=Monday, ..., 6=Saturday")
    DEFAULT_OVERTIME_DAILY_ENABLED: bool = Field(default=False, description="Daily overtime is opt-in per store")
    DEFAULT_OVERTIME_DAILY_MINUTES: int = Field(default=480, description="8 hours")
    DEFAULT_OVERTIME_WEEKLY_MINUTES: int = Field(default=2400, description="40 hours")
    DEFAULT_OVERTIME_MONTHLY_MINUTES: int = Field(default=10440, description="174 hours")

    # Version (can be git SHA or semver)
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("TOTP_STEP_SECONDS", "TOTP_DIGITS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("TOTP_TOLERANCE_WINDOWS", "QR_SAFETY_MARGIN_SECONDS")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("DEFAULT_WEEK_STARTS_ON")
    @classmethod
    def validate_week_starts_on(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("DEFAULT_WEEK_STARTS_ON must be between 0 (Sunday) and 6 (Saturday)")
        return v

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            # JWT_SECRET_KEY must be at least 32 characters in production
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            # ALLOWED_ORIGINS must not be wildcard in production
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

            # A display refreshing later than the window itself would show dead codes
            if self.QR_SAFETY_MARGIN_SECONDS >= self.TOTP_STEP_SECONDS:
                raise ValueError(
                    "QR_SAFETY_MARGIN_SECONDS must be smaller than TOTP_STEP_SECONDS"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Create settings instance
settings = Settings()

# Validate production settings if in prod
if settings.APP_ENV == "prod":
    settings.validate_production()
