"""Tests for local storage and session persistence."""

import json

from wholesale_server.auth import AuthManager
from wholesale_server.storage import LocalStorage


def test_storage_round_trip(tmp_path):
    path = str(tmp_path / "storage.json")
    LocalStorage(path).set_item("wholesaleCart", "[]")

    assert LocalStorage(path).get_item("wholesaleCart") == "[]"


def test_storage_remove_item(tmp_path):
    storage = LocalStorage(str(tmp_path / "storage.json"))
    storage.set_item("key", "value")

    storage.remove_item("key")
    storage.remove_item("missing")

    assert storage.get_item("key") is None


def test_storage_corrupted_file_is_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("not json at all")

    assert LocalStorage(str(path)).get_item("wholesaleCart") is None


def test_storage_non_object_file_is_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text(json.dumps(["a", "b"]))

    assert LocalStorage(str(path)).get_item("0") is None


def test_session_persists_across_instances(tmp_path):
    path = str(tmp_path / "session.json")
    AuthManager(path).save_session(access_token="jwt", user_id="u1", user_email="a@b.c")

    manager = AuthManager(path)

    assert manager.is_authenticated()
    assert manager.user_id == "u1"
    assert manager.get_session().user_email == "a@b.c"


def test_clear_session_removes_file(tmp_path):
    path = tmp_path / "session.json"
    manager = AuthManager(str(path))
    manager.save_session(access_token="jwt", user_id="u1")

    manager.clear_session()

    assert not path.exists()
    assert not manager.is_authenticated()
    assert manager.user_id is None


def test_corrupted_session_starts_fresh(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{broken")

    assert not AuthManager(str(path)).is_authenticated()
