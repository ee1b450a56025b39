# tests/conftest.py
import pytest
import sys
import os
from unittest.mock import Mock

# Add repo root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vectorpipe.config import Settings


@pytest.fixture
def settings():
    """Default settings: embedding disabled, no switching thresholds."""
    return Settings()


@pytest.fixture
def threshold_settings():
    """
    Adaptive switching with every threshold configured.

    cost 1000 cents, latency 200 ms, load 4.0, queue 100.
    """
    return Settings(
        cost_threshold_cents=1000,
        latency_threshold_ms=200,
        load_threshold=4.0,
        queue_size_threshold=100,
    )


@pytest.fixture
def enabled_settings():
    """Embedding enabled with a fake credential and a small dimension."""
    return Settings(
        embedding_enabled=True,
        embedding_api_key="sk-test-key",
        embedding_model="text-embedding-3-small",
        embedding_dimension=4,
    )


@pytest.fixture
def mock_embedding_client():
    """
    Mock OpenAI client whose embeddings.create returns a fixed vector.

    Usage:
        client = mock_embedding_client([0.1, 0.2, 0.3, 0.4])
    """
    def _mock(values):
        client = Mock()
        item = Mock()
        item.embedding = values
        response = Mock()
        response.data = [item]
        client.embeddings.create.return_value = response
        return client

    return _mock


@pytest.fixture
def long_document():
    """Twelve distinct sentences, long enough to need several chunks."""
    sentences = [
        f"Sentence number {i} talks about topic {chr(97 + i)} in some detail."
        for i in range(12)
    ]
    return " ".join(sentences)
