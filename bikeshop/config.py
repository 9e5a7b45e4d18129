"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

PLACEHOLDER_SECRET = "CHANGE_THIS_SECRET_IN_PRODUCTION"


def _load_yaml(path: Path) -> dict:
    if path.exists():
        with open(path) as f:
            return yaml.safe_load(f) or {}
    return {}


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    base_url: str = ""  # public URL encoded in tracking QR codes
    request_timeout_seconds: float = 30.0
    shutdown_grace_seconds: int = 30


class DatabaseConfig(BaseModel):
    path: str = "data/bikeshop.db"


class BusinessConfig(BaseModel):
    name: str = "BikeShop"
    tagline: str = "Your bicycle, in good hands"
    logo: str = ""
    primary_color: str = "#2563eb"
    secondary_color: str = "#1e293b"
    accent_color: str = "#f59e0b"
    contact_email: str = ""
    contact_phone: str = ""


class FeaturesConfig(BaseModel):
    payments: bool = False
    sms: bool = False
    surveys: bool = True
    email_notifications: bool = False


class JWTConfig(BaseModel):
    secret: str = PLACEHOLDER_SECRET
    expiration_hours: int = 24


class _EnvOverrides(BaseSettings):
    """Flat environment variables that take precedence over config.yaml."""

    bikeshop_config: str | None = None
    debug: bool | None = None
    port: int | None = None
    host: str | None = None
    database_path: str | None = None
    jwt_secret: str | None = None
    seed_data: bool | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class Settings(BaseSettings):
    debug: bool = False
    seed_data: bool = False
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    business: BusinessConfig = Field(default_factory=BusinessConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    jwt: JWTConfig = Field(default_factory=JWTConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _validate(self) -> Settings:
        if not 1 <= self.server.port <= 65535:
            raise ValueError(f"invalid server port: {self.server.port}")

        db_path = self.database.path.strip()
        if not db_path:
            raise ValueError("database path is required")
        if ".." in Path(db_path).parts:
            raise ValueError("database path must not contain '..'")

        if self.jwt.expiration_hours < 1:
            raise ValueError("jwt expiration_hours must be at least 1")
        if not self.debug and self.jwt.secret in ("", PLACEHOLDER_SECRET):
            raise ValueError(
                "JWT secret must be set (JWT_SECRET) outside debug mode"
            )
        return self

    @property
    def base_url(self) -> str:
        if self.server.base_url:
            return self.server.base_url.rstrip("/")
        return f"http://localhost:{self.server.port}"


def load_settings(path: str | Path | None = None) -> Settings:
    """Build Settings by merging YAML defaults with env overrides.

    Raises pydantic.ValidationError when the merged configuration is invalid.
    """
    env = _EnvOverrides()
    config_path = Path(path or env.bikeshop_config or _DEFAULT_CONFIG_PATH)
    y = _load_yaml(config_path)

    server = dict(y.get("server", {}))
    database = dict(y.get("database", {}))
    jwt = dict(y.get("jwt", {}))

    if env.port is not None:
        server["port"] = env.port
    if env.host:
        server["host"] = env.host
    if env.database_path:
        database["path"] = env.database_path
    if env.jwt_secret:
        jwt["secret"] = env.jwt_secret

    debug = env.debug if env.debug is not None else y.get("debug", False)
    seed_data = env.seed_data if env.seed_data is not None else y.get("seed_data", False)

    return Settings(
        debug=debug,
        seed_data=seed_data,
        server=ServerConfig(**server),
        database=DatabaseConfig(**database),
        business=BusinessConfig(**y.get("business", {})),
        features=FeaturesConfig(**y.get("features", {})),
        jwt=JWTConfig(**jwt),
    )
