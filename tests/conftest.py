import json
import os
import sys

import pytest

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import todo_tui as tt  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logger():
    """Close file handlers that main() attaches so tests don't leak them."""
    yield
    for h in list(tt.logger.handlers):
        tt.logger.removeHandler(h)
        h.close()


@pytest.fixture
def store_path(tmp_path):
    """Return a task file path inside a per-test temp directory."""
    return tmp_path / "tasks.json"


@pytest.fixture
def write_store(store_path):
    """Write raw JSON (or an object to be dumped) to the task file."""
    def _write(payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        store_path.write_text(text, encoding="utf-8")
        return store_path
    return _write
