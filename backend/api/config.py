"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Graph store (properties, addresses, features, price history)
    database_url: str = "sqlite:///./data/properties.db"
    graph_connect_attempts: int = 3
    graph_retry_seconds: float = 5.0

    # Similarity store
    vector_database_url: str = "sqlite:///./data/vectors.db"
    vector_collection: str = "idealista_properties"
    openai_api_key: Optional[str] = None
    embedding_model: str = "text-embedding-3-small"

    # Browser
    browser_headless: bool = False
    browser_cdp_url: Optional[str] = None  # e.g. http://localhost:9222 to reuse a running Chrome
    navigation_timeout: float = 30.0

    # Crawl pacing (seconds)
    listing_wait_timeout: float = 15.0
    cookie_wait_timeout: float = 5.0
    delay_min_seconds: float = 1.0
    delay_max_seconds: float = 2.0
    settle_seconds: float = 1.5

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: List[str] = ["*"]

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "crawler.log"

    @property
    def data_dir(self) -> Path:
        """Get the data directory path."""
        return Path(__file__).parent.parent / "data"

    @property
    def results_dir(self) -> Path:
        """Directory the crawl writes all_properties.json and statistics.json to."""
        return self.data_dir / "results"

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if __import__("pathlib").Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
