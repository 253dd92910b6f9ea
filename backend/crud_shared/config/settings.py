"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Database
    database_url: str = "sqlite:///./crud_admin.db"
    database_echo: bool = False

    # Environment
    environment: str = "development"
    # Debug turns persistence failures into propagated errors instead of flash messages
    debug: bool = False

    # Session cookie (flash messages, CSRF tokens, list modes)
    session_secret: str = "dev-session-secret-change-me"
    session_cookie: str = "crud_admin_session"
    session_max_age: int = 14 * 24 * 60 * 60

    # JWT Configuration
    jwt_secret: str = "dev-secret-change-me-in-production"
    jwt_issuer: str = "crud-admin"
    jwt_audience: str = "crud-admin-users"
    jwt_access_token_expire_minutes: int = 15

    # Admin behaviour
    csrf_enabled: bool = True
    admin_route_prefix: str = "/admin"
    list_per_page: int = 25
    translation_domain: str = "CrudAdmin"

    # Role hierarchy, e.g. {"ROLE_ADMIN": ["ROLE_USER"]} (JSON in the environment)
    role_hierarchy: dict[str, list[str]] = {}

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        WEAK_SECRETS = {
            "dev-secret-change-me-in-production",
            "dev-session-secret-change-me",
            "secret",
            "password",
            "changeme",
            "default",
        }

        if self.environment == "production":
            if self.jwt_secret in WEAK_SECRETS or len(self.jwt_secret) < 32:
                errors.append(
                    "JWT_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.session_secret in WEAK_SECRETS or len(self.session_secret) < 32:
                errors.append(
                    "SESSION_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.csrf_enabled:
                errors.append("CSRF_ENABLED must be True in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
