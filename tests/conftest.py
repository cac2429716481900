"""
pytest configuration for kafka-cli tests.

Adds src directory to Python path for imports.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from core.logging import clear_log_context  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Clear log context and root handlers installed by setup_logging()."""
    clear_log_context()
    yield
    clear_log_context()
    logging.getLogger().handlers.clear()
