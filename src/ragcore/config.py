"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use a .env file for local development.

Environment Variables:
    CHUNK_SIZE: Target chunk length in characters
    CHUNK_OVERLAP: Fraction of a chunk shared with the next one
    EMBEDDING_BATCH: Texts per embedding model call
    EMBEDDING_ROUTINES: Maximum number of in-flight embedding calls
    EMBEDDING_DIMENSIONS: Fixed output size forwarded to the model (0 = model default)
    SEARCH_QUERY_BLOCK: Queries per similarity-search partition
    SEARCH_CANDIDATE_BLOCK: Stored chunks per similarity-search partition
    SEARCH_WORKERS: Threads used for similarity search
    RETRIEVAL_TOP_K: Default number of chunks returned per query
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Chunking Configuration
    # ==========================================================================
    chunk_size: int = Field(
        default=1500,
        ge=1,
        description="Target size in characters for document chunks",
    )
    chunk_overlap: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of each chunk repeated at the start of the next one",
    )

    # ==========================================================================
    # Embedding Configuration
    # ==========================================================================
    embedding_batch: int = Field(
        default=8,
        ge=1,
        le=2048,
        description="Number of texts sent to the embedding model per call",
    )
    embedding_routines: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum number of embedding calls in flight",
    )
    embedding_dimensions: int = Field(
        default=0,
        ge=0,
        description="Fixed embedding size forwarded to the model (0 for model default)",
    )

    # ==========================================================================
    # Search Configuration
    # ==========================================================================
    search_query_block: int = Field(
        default=100,
        ge=1,
        description="Queries scored together in one search partition",
    )
    search_candidate_block: int = Field(
        default=1000,
        ge=1,
        description="Stored chunks scored together in one search partition",
    )
    search_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Number of threads used for similarity search",
    )
    retrieval_top_k: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Number of chunks to retrieve per query",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


def configure_logging(level: str | None = None) -> logging.Logger:
    """
    Apply the configured log level to the package logger.

    Args:
        level: Override for settings.log_level

    Returns:
        The ``ragcore`` logger
    """
    logger = logging.getLogger("ragcore")
    logger.setLevel(level or settings.log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
    return logger


# Convenience alias
settings = get_settings()
