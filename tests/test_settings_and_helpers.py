"""
Tests for configuration, logging setup and batching helpers.
"""

import logging
import os
from unittest.mock import patch

import pytest

from config.settings import Settings
from core.errors import AdapterError, PartialBatchFailure, UpstreamFailure, ValidationError
from utils.helpers import chunk_array, setup_logging


class TestChunkArray:
    """Test splitting records into upsert chunks."""

    @pytest.mark.parametrize("count,size,expected", [
        (0, 3, []),
        (1, 3, [[0]]),
        (3, 3, [[0, 1, 2]]),
        (4, 3, [[0, 1, 2], [3]]),
        (6, 3, [[0, 1, 2], [3, 4, 5]]),
    ])
    def test_chunk_boundaries(self, count, size, expected):
        assert chunk_array(list(range(count)), size) == expected

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            chunk_array([1, 2], 0)


class TestSettings:
    """Test per-backend validation of required settings."""

    def test_validate_reports_missing(self):
        with patch.object(Settings, "NEO4J_URI", None), patch.object(Settings, "NEO4J_USER", "neo4j"), \
                patch.object(Settings, "NEO4J_PASSWORD", None):
            with pytest.raises(ValueError, match="NEO4J_URI, NEO4J_PASSWORD"):
                Settings.validate("neo4j")

    def test_validate_passes(self):
        with patch.object(Settings, "COHERE_API_KEY", "test_key"):
            Settings.validate("cohere")

    def test_validate_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            Settings.validate("cassandra")

    def test_defaults(self):
        assert Settings.POSTGRES_CHAT_TABLE == os.getenv("POSTGRES_CHAT_TABLE", "chat_histories")
        assert Settings.UPSERT_CHUNK_SIZE > 0


class TestSetupLogging:
    """Test logging initialisation."""

    def test_creates_log_file(self, tmp_path):
        with patch('utils.helpers.settings') as mock_settings:
            mock_settings.LOG_DIR = str(tmp_path / "logs")
            mock_settings.LOG_LEVEL = "debug"
            mock_settings.LOG_FORMAT = '%(levelname)s %(message)s'
            mock_settings.LOG_DATE_FORMAT = '%Y-%m-%d'

            log_file = setup_logging()

        try:
            assert os.path.dirname(log_file) == str(tmp_path / "logs")
            assert os.path.basename(log_file).startswith("rag_storage_")
            assert logging.getLogger().level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root = logging.getLogger()
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            root.setLevel(logging.WARNING)


class TestErrors:
    """Test the error hierarchy."""

    def test_hierarchy(self):
        assert issubclass(ValidationError, AdapterError)
        assert issubclass(ValidationError, ValueError)
        assert issubclass(PartialBatchFailure, UpstreamFailure)

    def test_upstream_failure_to_dict(self):
        error = UpstreamFailure("quota", service="vectara", status=429, detail="slow down")

        assert error.to_dict() == {
            "error": "UpstreamFailure",
            "message": "quota",
            "service": "vectara",
            "status": 429,
            "detail": "slow down",
        }

    def test_partial_failure_detail(self):
        error = PartialBatchFailure("chunk 1 failed", failed_chunks=[1], total_chunks=3,
                                    id_ranges=[("a", "b")], errors=[RuntimeError("x")])

        assert error.detail == {"failed_chunks": [1], "total_chunks": 3, "id_ranges": [("a", "b")]}
