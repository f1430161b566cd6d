# tests/unit/persistence/test_persistence_middleware.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import json
import logging

import pytest

from statekeeper.core.errors import PersistenceError, SerializationError
from statekeeper.persistence.middleware import PersistenceMiddleware
from statekeeper.persistence.options import FileInfo, PersistenceOptions

# -----------------------------------------------------------------------------
# SAVE / LOAD
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_save_and_load_round_trip(persistence):
    state = {"count": 1, "name": "test"}
    assert await persistence.save_state(state) is True
    assert await persistence.load_state() == state


@pytest.mark.asyncio
async def test_save_uses_configured_indentation(persistence, state_file):
    persistence.set_json_formatting(4)
    await persistence.save_state({"count": 1})
    assert state_file.read_text(encoding="utf-8") == json.dumps({"count": 1}, indent=4)


@pytest.mark.asyncio
async def test_save_overwrites_existing_content(persistence):
    await persistence.save_state({"count": 1, "extra": True})
    await persistence.save_state({"count": 2})
    assert await persistence.load_state() == {"count": 2}


@pytest.mark.asyncio
async def test_failed_save_leaves_previous_file_untouched(persistence, state_file):
    await persistence.save_state({"count": 1})
    cyclic = {}
    cyclic["self"] = cyclic

    assert await persistence.save_state(cyclic) is False
    assert isinstance(persistence.last_error, SerializationError)
    assert json.loads(state_file.read_text(encoding="utf-8")) == {"count": 1}


@pytest.mark.asyncio
async def test_save_into_missing_directory_fails(tmp_path):
    persistence = PersistenceMiddleware(tmp_path / "missing" / "state.json")
    assert await persistence.save_state({"count": 1}) is False
    assert isinstance(persistence.last_error, PersistenceError)
    assert not isinstance(persistence.last_error, SerializationError)


@pytest.mark.asyncio
async def test_load_missing_file_returns_none(persistence, caplog):
    with caplog.at_level(logging.ERROR, logger="statekeeper.persistence"):
        assert await persistence.load_state() is None
    assert "Error loading state" in caplog.text


@pytest.mark.asyncio
async def test_load_malformed_content_returns_none(persistence, state_file):
    state_file.write_text("{not json", encoding="utf-8")
    assert await persistence.load_state() is None
    assert isinstance(persistence.last_error, SerializationError)


@pytest.mark.asyncio
async def test_load_deeply_nested_content_returns_none(persistence, state_file):
    state_file.write_text("[" * 200000 + "]" * 200000, encoding="utf-8")

    assert await persistence.load_state() is None
    assert await persistence.load_state_with_validation() is None
    assert isinstance(persistence.last_error, SerializationError)
    assert isinstance(persistence.last_error.original, RecursionError)


@pytest.mark.asyncio
async def test_load_undecodable_file_returns_none(persistence, state_file):
    state_file.write_bytes(b"\xff\xfe\xfa")
    assert await persistence.load_state() is None
    assert isinstance(persistence.last_error, PersistenceError)
    assert not isinstance(persistence.last_error, SerializationError)


@pytest.mark.asyncio
async def test_text_file_type(persistence, state_file):
    persistence.set_file_type("text")
    assert await persistence.save_state("plain words") is True
    assert state_file.read_text(encoding="utf-8") == "plain words"
    assert await persistence.load_state() == "plain words"


@pytest.mark.asyncio
async def test_persist_state_and_call_save_next_state(persistence):
    assert await persistence.persist_state({"count": 0}, {"count": 1}) is True
    assert await persistence.load_state() == {"count": 1}
    assert await persistence({"count": 1}, {"count": 2}) is True
    assert await persistence.load_state() == {"count": 2}


# -----------------------------------------------------------------------------
# VALIDATION
# -----------------------------------------------------------------------------


def test_validate_acyclic_state(persistence):
    assert persistence.validate_state({"a": [1, 2, {"b": None}]}) is True


def test_validate_cyclic_state(persistence):
    cyclic = {"list": []}
    cyclic["list"].append(cyclic)
    assert persistence.validate_state(cyclic) is False
    assert isinstance(persistence.last_error, SerializationError)


def test_validate_unserializable_state(persistence):
    assert persistence.validate_state({"when": object()}) is False


@pytest.mark.asyncio
async def test_save_with_validation_rejects_invalid_state(persistence):
    cyclic = {}
    cyclic["self"] = cyclic
    assert await persistence.save_state_with_validation(cyclic) is False
    assert await persistence.file_exists() is False


@pytest.mark.asyncio
async def test_save_and_load_with_validation(persistence):
    assert await persistence.save_state_with_validation({"count": 1}) is True
    assert await persistence.load_state_with_validation() == {"count": 1}


@pytest.mark.asyncio
async def test_load_with_validation_keeps_empty_state(persistence):
    await persistence.save_state({})
    assert await persistence.load_state_with_validation() == {}


@pytest.mark.asyncio
async def test_load_with_validation_missing_file(persistence):
    assert await persistence.load_state_with_validation() is None


# -----------------------------------------------------------------------------
# BACKUP
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_backup_then_restore_after_delete(persistence, state_file):
    state = {"count": 1, "items": ["a", "b"]}
    assert await persistence.backup_state(state) is True
    assert persistence.backup_path == state_file.with_name("state.json.backup")

    assert await persistence.delete_file() is True
    assert await persistence.restore_from_backup() == state
    assert await persistence.file_exists() is True


@pytest.mark.asyncio
async def test_restore_without_backup_returns_none(persistence):
    assert await persistence.restore_from_backup() is None


@pytest.mark.asyncio
async def test_backup_fails_when_save_fails(persistence):
    await persistence.save_state({"count": 1})
    cyclic = {}
    cyclic["self"] = cyclic
    assert await persistence.backup_state(cyclic) is False
    assert await persistence.file_exists(persistence.backup_path) is False


# -----------------------------------------------------------------------------
# FILE HELPERS
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_file_size_and_emptiness(persistence):
    assert await persistence.get_file_size() == 0
    assert await persistence.is_file_empty() is True

    await persistence.save_state({"count": 1})
    assert await persistence.get_file_size() > 0
    assert await persistence.is_file_empty() is False

    assert await persistence.truncate_file() is True
    assert await persistence.is_file_empty() is True


@pytest.mark.asyncio
async def test_truncate_missing_file_fails(persistence):
    assert await persistence.truncate_file() is False


@pytest.mark.asyncio
async def test_append_to_file(persistence, state_file):
    assert await persistence.append_to_file("abc") is True
    assert await persistence.append_to_file("def") is True
    assert state_file.read_text(encoding="utf-8") == "abcdef"


@pytest.mark.asyncio
async def test_rename_updates_path(persistence, tmp_path):
    await persistence.save_state({"count": 1})
    target = tmp_path / "renamed.json"

    assert await persistence.rename_file(target) is True

    assert persistence.get_file_path() == target
    assert await persistence.load_state() == {"count": 1}


@pytest.mark.asyncio
async def test_failed_rename_keeps_path(persistence, state_file, tmp_path):
    assert await persistence.rename_file(tmp_path / "other.json") is False
    assert persistence.get_file_path() == state_file


@pytest.mark.asyncio
async def test_delete_missing_file_fails(persistence):
    assert await persistence.delete_file() is False


@pytest.mark.asyncio
async def test_file_info(persistence, state_file):
    await persistence.save_state({"count": 1})
    info = await persistence.get_file_info()
    assert isinstance(info, FileInfo)
    assert info.path == state_file
    assert info.size == state_file.stat().st_size
    assert info.options == {"spaces": 2, "file_type": "json", "version": 1}


@pytest.mark.asyncio
async def test_file_info_missing_file(persistence):
    assert await persistence.get_file_info() is None


@pytest.mark.asyncio
async def test_invalid_path_fails_without_raising(tmp_path):
    persistence = PersistenceMiddleware(str(tmp_path / "bad\0name.json"))

    assert await persistence.save_state({"a": 1}) is False
    assert isinstance(persistence.last_error, PersistenceError)
    assert await persistence.load_state() is None
    assert await persistence.get_file_size() == 0
    assert await persistence.is_file_empty() is True
    assert await persistence.get_file_info() is None
    assert await persistence.truncate_file() is False
    assert await persistence.append_to_file("x") is False
    assert await persistence.delete_file() is False
    assert await persistence.read_file_chunk(0) is None
    assert await persistence.write_file_chunk("x", 0) is False
    assert await persistence.backup_state({"a": 1}) is False
    assert await persistence.restore_from_backup() is None
    assert await persistence.file_exists() is False


@pytest.mark.asyncio
async def test_rename_to_invalid_path_keeps_path(persistence, state_file, tmp_path):
    await persistence.save_state({"count": 1})
    assert await persistence.rename_file(str(tmp_path / "bad\0name.json")) is False
    assert persistence.get_file_path() == state_file
    assert isinstance(persistence.last_error, PersistenceError)


# -----------------------------------------------------------------------------
# CHUNKS
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_read_file_chunk(persistence, state_file):
    state_file.write_text("0123456789", encoding="utf-8")
    assert await persistence.read_file_chunk(2, 5) == "234"
    assert await persistence.read_file_chunk(7) == "789"
    assert await persistence.read_file_chunk(5, 2) == "234"
    assert await persistence.read_file_chunk(-3, 100) == "0123456789"


@pytest.mark.asyncio
async def test_read_chunk_missing_file(persistence):
    assert await persistence.read_file_chunk(0, 1) is None


@pytest.mark.asyncio
async def test_write_file_chunk_inserts(persistence, state_file):
    state_file.write_text("helloworld", encoding="utf-8")
    assert await persistence.write_file_chunk(", ", 5) is True
    assert state_file.read_text(encoding="utf-8") == "hello, world"


@pytest.mark.asyncio
async def test_write_chunk_past_end_appends(persistence, state_file):
    state_file.write_text("abc", encoding="utf-8")
    assert await persistence.write_file_chunk("!", 99) is True
    assert state_file.read_text(encoding="utf-8") == "abc!"


@pytest.mark.asyncio
async def test_write_chunk_missing_file(persistence):
    assert await persistence.write_file_chunk("x", 0) is False


# -----------------------------------------------------------------------------
# CONFIGURATION
# -----------------------------------------------------------------------------


def test_default_options(persistence):
    assert persistence.get_options() == {"spaces": 2, "file_type": "json", "version": 1}


def test_options_from_mapping_and_dataclass(tmp_path):
    from_mapping = PersistenceMiddleware(tmp_path / "a.json", {"spaces": 0, "owner": "app"})
    assert from_mapping.get_options() == {"spaces": 0, "file_type": "json", "version": 1, "owner": "app"}

    options = PersistenceOptions(version=3)
    from_dataclass = PersistenceMiddleware(tmp_path / "b.json", options)
    options.version = 9
    assert from_dataclass.get_version() == 3


def test_get_options_returns_copy(persistence):
    persistence.get_options()["version"] = 42
    assert persistence.get_version() == 1


def test_set_options_merges(persistence):
    persistence.set_options({"spaces": 4}, custom=True)
    assert persistence.get_options() == {"spaces": 4, "file_type": "json", "version": 1, "custom": True}


def test_increment_version(persistence):
    assert persistence.increment_version() == 2
    persistence.increment_version()
    assert persistence.get_version() == 3


def test_set_file_path(persistence, tmp_path):
    persistence.set_file_path(str(tmp_path / "x.json"))
    assert persistence.get_file_path() == tmp_path / "x.json"
