"""Application configuration using pydantic-settings.

Values come from (highest priority first) init kwargs, environment variables
and the optional YAML file named by HOMEPROXY_CONFIG (default: hrp_config.yaml).
"""

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

CONFIG_FILE = os.getenv("HOMEPROXY_CONFIG", "hrp_config.yaml")


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    debug: bool = Field(default=False)


class RuntimeConfig(BaseSettings):
    """Tenant workload configuration.

    Workload names are always {resource_prefix}{identity}, which is what the
    idempotency check and the orphan cull match on.
    """

    model_config = SettingsConfigDict(env_prefix="RUNTIME_")

    resource_prefix: str = Field(default="hrp-")
    image: str = Field(default="registry.gitlab.com/ocordes/userwebsite")
    container_port: int = Field(default=80)
    # Mount target of the tenant's primary (read-write) directory
    home_target: str = Field(default="/users/{identity}/public_html")


class DockerConfig(BaseSettings):
    """Docker Engine API configuration."""

    model_config = SettingsConfigDict(env_prefix="DOCKER_")

    host: str = Field(default="unix:///var/run/docker.sock")
    # Empty string means the default bridge network
    network_name: str = Field(default="hrp-net")

    api_timeout: float = Field(default=30.0)  # seconds (single Docker API call)
    image_pull_timeout: float = Field(default=600.0)  # seconds (10 minutes)
    stop_timeout: int = Field(default=10)  # seconds before SIGKILL


class CullConfig(BaseSettings):
    """Idle and orphan culling configuration."""

    model_config = SettingsConfigDict(env_prefix="CULL_")

    enabled: bool = Field(default=True)
    idle_interval: float = Field(default=60.0)  # seconds between idle passes
    idle_timeout: float = Field(default=600.0)  # seconds without access

    orphan_enabled: bool = Field(default=True)
    orphan_interval: float = Field(default=900.0)  # seconds between orphan passes


class DirectoryConfig(BaseSettings):
    """Tenant directory resolution.

    backend selects the resolver once at startup:
    - ldap: homeDirectory (+ extra attribute) from a directory service
    - local: home directory from the local passwd database
    """

    model_config = SettingsConfigDict(env_prefix="DIRECTORY_")

    backend: str = Field(default="local")
    public_dir: str = Field(default="public_html")
    # Extra mounts for every tenant, "path" or "path::ro"
    extra_dirs: list[str] = Field(default=[])

    ldap_url: str = Field(default="ldaps://localhost")
    ldap_base_dn: str = Field(default="ou=People,dc=example,dc=org")
    ldap_bind_dn: str | None = Field(default=None)
    ldap_bind_password: str | None = Field(default=None)
    ldap_home_attribute: str = Field(default="homeDirectory")
    ldap_extra_attribute: str | None = Field(default=None)
    ldap_timeout: float = Field(default=10.0)  # seconds


class ProxyConfig(BaseSettings):
    """HTTP forwarding configuration."""

    model_config = SettingsConfigDict(env_prefix="PROXY_")

    timeout_total: float = Field(default=30.0)  # seconds
    timeout_connect: float = Field(default=5.0)  # seconds
    timeout_pool: float = Field(default=5.0)  # seconds

    max_connections: int = Field(default=100)
    max_keepalive: int = Field(default=20)
    keepalive_expiry: float = Field(default=30.0)  # seconds

    # Auto-reload delay of the wait page
    wait_refresh_seconds: int = Field(default=3)


class MetricsConfig(BaseSettings):
    """Prometheus metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=True)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Rate limiting prevents log storms from repeated messages.
    ERROR logs bypass rate limiting (always logged).
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    slow_threshold_ms: float = Field(default=1000.0)
    rate_limit_per_minute: int = Field(default=100)
    service_name: str = Field(default="home-proxy")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HOMEPROXY_",
        env_nested_delimiter="__",
        yaml_file=CONFIG_FILE,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    cull: CullConfig = Field(default_factory=CullConfig)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # A missing YAML file is not an error
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            YamlConfigSettingsSource(settings_cls),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
