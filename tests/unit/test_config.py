"""
Unit tests for configuration module.
"""

import logging
import os
from unittest.mock import patch

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_env(self, mock_settings):
        """Settings should load values from environment variables."""
        assert mock_settings.chunk_size == 256
        assert mock_settings.chunk_overlap == pytest.approx(0.2)
        assert mock_settings.embedding_batch == 4
        assert mock_settings.embedding_routines == 2
        assert mock_settings.retrieval_top_k == 5
        assert mock_settings.log_level == "DEBUG"

    def test_settings_defaults(self):
        """Unset variables fall back to the documented defaults."""
        with patch.dict(os.environ, {}, clear=True):
            from ragcore.config import Settings

            defaults = Settings(_env_file=None)

        assert defaults.chunk_size == 1500
        assert defaults.embedding_dimensions == 0
        assert defaults.search_query_block == 100
        assert defaults.search_candidate_block == 1000

    def test_settings_overlap_validation(self):
        """Chunk overlap is a fraction."""
        with patch.dict(os.environ, {"CHUNK_OVERLAP": "1.5"}, clear=True):
            from ragcore.config import Settings

            with pytest.raises(Exception):  # ValidationError
                Settings(_env_file=None)

    def test_settings_routines_validation(self):
        """At least one embedding routine is required."""
        with patch.dict(os.environ, {"EMBEDDING_ROUTINES": "0"}, clear=True):
            from ragcore.config import Settings

            with pytest.raises(Exception):  # ValidationError
                Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        """get_settings should return cached instance."""
        from ragcore.config import get_settings

        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_sets_package_level(self):
        from ragcore.config import configure_logging

        logger = configure_logging("WARNING")

        assert logger.name == "ragcore"
        assert logger.level == logging.WARNING
        assert logger.handlers

    def test_does_not_duplicate_handlers(self):
        from ragcore.config import configure_logging

        configure_logging("INFO")
        count = len(logging.getLogger("ragcore").handlers)
        configure_logging("DEBUG")

        assert len(logging.getLogger("ragcore").handlers) == count
