import sys
import os
from tempfile import TemporaryDirectory
import pytest
# Ensure the project root is on sys.path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with TemporaryDirectory() as dir_path:
        yield dir_path


@pytest.fixture
def write_idl(temp_dir):
    """Write an IDL file below temp_dir and return its path."""
    def _write(relative_path, text):
        path = os.path.join(temp_dir, relative_path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
        return path
    return _write


@pytest.fixture(autouse=True)
def clean_idlw_environment(monkeypatch):
    """Keep IDLW_* variables from the calling shell out of the tests."""
    for name in ('IDLW_INCLUDE_DIRS', 'IDLW_OUTPUT_FILE', 'IDLW_VERBOSE'):
        monkeypatch.delenv(name, raising=False)
