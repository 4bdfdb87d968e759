"""Configuration management using pydantic-settings.

Loads from environment variables and .env file.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Attributes:
        proxy_host: Host name of the image optimization proxy.
        public_base_url: Public URL at which this service's staging endpoint is reachable.
        workers: Number of concurrent size-probing workers per page.
        max_redirects: Redirect hops followed before a fetch is abandoned.
        fetch_timeout: Per-fetch deadline in seconds.
        lazy_load_timeout: Time budget in seconds for the lazy-load discovery phase.
        renderer: Page renderer backend, either "http" or "playwright".
        scan_scripts: Scan inline and external scripts for image literals.
        always_stage: Stage every original, not only those on private hosts.
        cache_type: Size cache backend, either "sqlite" or "memory".
        cache_path: SQLite database file for cached size measurements.
        cache_ttl_hours: Age after which a cached measurement is stale.
        user_agent: User-Agent header sent with outbound requests.
        host: Server bind address.
        port: Server bind port.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_json: Output logs in JSON format for production.

    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Optimization proxy
    proxy_host: str = "imgproxy.progapanda.org"
    public_base_url: str = "http://localhost:8080"
    always_stage: bool = False

    # Probing
    workers: int = 5
    max_redirects: int = 10
    fetch_timeout: float = 30.0
    user_agent: str = "imgproxy-checker/0.1 (+https://github.com/progapandist/imgproxy_checker)"

    # Extraction
    renderer: str = "http"  # http | playwright
    lazy_load_timeout: float = 3.0
    scan_scripts: bool = True

    # Size cache
    cache_type: str = "sqlite"  # sqlite | memory
    cache_path: str = "./data/image_data.db"
    cache_ttl_hours: int = 24

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def cache_file(self) -> Path:
        """Return the size cache database as a Path object.

        Returns:
            Path: Path to the SQLite cache file.

        """
        return Path(self.cache_path)


# Global settings instance
settings = Settings()
