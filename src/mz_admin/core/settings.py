"""Application settings and configuration.

This module defines all configuration options for the MZ Admin backend.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="MZ Admin", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Redis configuration for captcha sessions and cooldowns
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Slider captcha assets
    captcha_image_dir: str = Field(default="public/captcha", alias="CAPTCHA_IMAGE_DIR")

    # Slider captcha heuristics (server-side source of truth)
    captcha_position_tolerance: int = Field(default=3, alias="CAPTCHA_POSITION_TOLERANCE")
    captcha_min_duration_ms: int = Field(default=300, alias="CAPTCHA_MIN_DURATION_MS")
    captcha_max_duration_ms: int = Field(default=30_000, alias="CAPTCHA_MAX_DURATION_MS")
    captcha_min_trail_points: int = Field(default=5, alias="CAPTCHA_MIN_TRAIL_POINTS")
    captcha_max_y_deviation: int = Field(default=40, alias="CAPTCHA_MAX_Y_DEVIATION")
    captcha_max_trail_jump: int = Field(default=50, alias="CAPTCHA_MAX_TRAIL_JUMP")

    # Upstream authentication server
    auth_base_url: str = Field(
        default="http://localhost:3000/api/auth",
        alias="AUTH_BASE_URL",
    )
    auth_http_timeout_seconds: float = Field(
        default=10.0,
        alias="AUTH_HTTP_TIMEOUT_SECONDS",
    )
    forgot_password_cooldown_seconds: int = Field(
        default=60,
        alias="FORGOT_PASSWORD_COOLDOWN_SECONDS",
    )
    reset_password_redirect: str = Field(
        default="/reset-password",
        alias="RESET_PASSWORD_REDIRECT",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def captcha_thresholds(self) -> dict[str, int]:
        """Return the verification heuristics as a convenience dictionary.

        Returns:
            Dictionary keyed by threshold name, consumed by the verification engine
        """
        return {
            "position_tolerance": self.captcha_position_tolerance,
            "min_duration_ms": self.captcha_min_duration_ms,
            "max_duration_ms": self.captcha_max_duration_ms,
            "min_trail_points": self.captcha_min_trail_points,
            "max_y_deviation": self.captcha_max_y_deviation,
            "max_trail_jump": self.captcha_max_trail_jump,
        }


settings = Settings()
