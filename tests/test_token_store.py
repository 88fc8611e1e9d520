from __future__ import annotations

import os
import stat

import pytest

from procurement.client import token_store
from procurement.client.token_store import FileTokenStore


def test_file_store_round_trip(tmp_path) -> None:
    path = tmp_path / "nested" / "token.json"
    FileTokenStore(path).save("abc")

    assert FileTokenStore(path).load() == "abc"

    store = FileTokenStore(path)
    store.clear()
    assert store.load() is None
    assert not path.exists()


def test_token_file_is_created_owner_only(tmp_path, monkeypatch) -> None:
    opened = []
    real_open = os.open

    def _recording_open(path, flags, mode=0o777, *args, **kwargs):
        opened.append((str(path), mode))
        return real_open(path, flags, mode, *args, **kwargs)

    monkeypatch.setattr(token_store.os, "open", _recording_open)
    FileTokenStore(tmp_path / "token.json").save("abc")

    assert opened == [(str(tmp_path / "token.json.tmp"), 0o600)]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_stale_temp_file_does_not_leak_its_permissions(tmp_path) -> None:
    stale = tmp_path / "token.json.tmp"
    stale.write_text("old", encoding="utf-8")
    stale.chmod(0o644)

    FileTokenStore(tmp_path / "token.json").save("abc")

    assert stat.S_IMODE((tmp_path / "token.json").stat().st_mode) == 0o600
    assert not stale.exists()


def test_unreadable_file_is_ignored(tmp_path) -> None:
    path = tmp_path / "token.json"
    path.write_text("{not json", encoding="utf-8")
    assert FileTokenStore(path).load() is None
