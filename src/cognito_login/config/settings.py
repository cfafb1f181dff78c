"""Configuration Settings for Cognito Login Service

Manages environment variables and application configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import Optional

from cognito_login.domain.models import PipelineConfig


class Settings(BaseSettings):
    """Application settings"""

    # Service info
    service_name: str = "cognito-login"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Redis configuration (user directory + session revocation list)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components"""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Cognito / OAuth2 provider
    cognito_domain: str = "https://example.auth.us-east-1.amazoncognito.com"
    cognito_client_id: str = ""
    cognito_client_secret: Optional[str] = None
    cognito_redirect_uri: str = "http://localhost:8000/"
    cognito_region: Optional[str] = None
    cognito_user_pool_id: Optional[str] = None
    cognito_scopes: str = "openid email profile"
    oauth_code_param: str = "code"
    token_exchange_timeout_seconds: float = 5.0
    verify_id_token_signature: bool = True

    # Login pipeline options (string flags: only the literal "true" enables them)
    username_attribute: str = "email"
    create_new_user: str = "false"
    homepage: str = ""
    disable_wp_login: str = "false"

    # Session cookie
    secret_key: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    session_cookie_name: str = "cognito_login_session"
    session_expire_minutes: int = 1440  # 24 hours
    session_cookie_secure: bool = False

    # CORS configuration
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def jwks_url(self) -> Optional[str]:
        """Public signing keys of the user pool, if the pool is configured"""
        issuer = self.token_issuer
        if not issuer:
            return None
        return f"{issuer}/.well-known/jwks.json"

    @property
    def token_issuer(self) -> Optional[str]:
        """Expected `iss` claim of identity tokens"""
        if not (self.cognito_region and self.cognito_user_pool_id):
            return None
        return f"https://cognito-idp.{self.cognito_region}.amazonaws.com/{self.cognito_user_pool_id}"

    def pipeline_config(self) -> PipelineConfig:
        """Snapshot of the options consulted during one login attempt"""
        return PipelineConfig(
            username_attribute=self.username_attribute,
            create_new_user=self.create_new_user,
            homepage=self.homepage,
            disable_wp_login=self.disable_wp_login,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()
