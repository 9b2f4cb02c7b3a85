"""Tests for the file-backed key/value store."""
import pytest

from job_assistant.errors import PersistenceError
from job_assistant.storage import JsonStore


def test_set_get_delete(tmp_path):
    store = JsonStore(tmp_path / "data" / "entries.json")
    assert store.get("job_1") is None

    store.set("job_1", '{"id": "1"}')
    store.set("job_2", '{"id": "2"}')
    store.set("other", "x")

    assert JsonStore(tmp_path / "data" / "entries.json").get("job_1") == '{"id": "1"}'
    assert sorted(store.keys("job_")) == ["job_1", "job_2"]
    assert store.delete("job_1") is True
    assert store.delete("job_1") is False
    assert store.keys("job_") == ["job_2"]


def test_empty_file_is_empty_store(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("")
    assert JsonStore(path).get("matchingJobs", "[]") == "[]"


@pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
def test_corrupt_file_raises(tmp_path, content):
    path = tmp_path / "storage.json"
    path.write_text(content)
    with pytest.raises(PersistenceError):
        JsonStore(path).get("matchingJobs")
