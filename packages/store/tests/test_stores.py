"""Tests for trustaudit-store implementations."""

from __future__ import annotations

import json

import pytest

from trustaudit_store.jsonfile import JsonStore
from trustaudit_store.models import SnapshotRecord
from trustaudit_store.noop import NoOpStore
from trustaudit_store.sqlite import SQLiteStore


def _make_record(repo="acme/widget", stage="commit-pull-requests", saved_at="2024-05-01T12:00:00+00:00", payload=None):
    return SnapshotRecord(
        repo=repo,
        stage=stage,
        saved_at=saved_at,
        payload=payload
        if payload is not None
        else {
            "trusted_reviewers": ["alice"],
            "prs_by_commit": [{"commit": {"sha": "a" * 40, "author": None, "summary": ""}, "pull_requests": [3]}],
        },
    )


@pytest.fixture(params=["json", "sqlite"])
def store(request, tmp_path):
    if request.param == "json":
        s = JsonStore(dir_path=str(tmp_path / "snapshots"))
    else:
        s = SQLiteStore(db_path=str(tmp_path / "test.db"))
    yield s
    s.close()


# ---------------------------------------------------------------------------
# NoOpStore
# ---------------------------------------------------------------------------


class TestNoOpStore:
    def test_save_does_not_raise(self):
        store = NoOpStore()
        store.save(_make_record())  # must not raise

    def test_list_snapshots_returns_empty(self):
        store = NoOpStore()
        store.save(_make_record())
        assert store.list_snapshots("acme/widget") == []

    def test_load_returns_none(self):
        assert NoOpStore().load("acme/widget") is None


# ---------------------------------------------------------------------------
# Behaviour shared by the persistent backends
# ---------------------------------------------------------------------------


class TestPersistentStores:
    def test_save_and_list(self, store):
        record = _make_record()
        store.save(record)
        snapshots = store.list_snapshots("acme/widget")
        assert len(snapshots) == 1
        assert snapshots[0].stage == "commit-pull-requests"
        assert snapshots[0].payload == record.payload

    def test_save_replaces_same_stage(self, store):
        store.save(_make_record(saved_at="2024-05-01T12:00:00+00:00", payload={"trusted_reviewers": []}))
        store.save(_make_record(saved_at="2024-05-02T12:00:00+00:00", payload={"trusted_reviewers": ["bob"]}))
        snapshots = store.list_snapshots("acme/widget")
        assert len(snapshots) == 1
        assert snapshots[0].payload == {"trusted_reviewers": ["bob"]}

    def test_list_in_extraction_order(self, store):
        store.save(_make_record(stage="pull-request-reviewers"))
        store.save(_make_record(stage="starter"))
        store.save(_make_record(stage="commit-pull-requests"))
        stages = [s.stage for s in store.list_snapshots("acme/widget")]
        assert stages == ["starter", "commit-pull-requests", "pull-request-reviewers"]

    def test_repos_isolated(self, store):
        store.save(_make_record(repo="acme/widget"))
        store.save(_make_record(repo="acme/gadget"))
        assert len(store.list_snapshots("acme/widget")) == 1
        assert store.list_snapshots("other/repo") == []

    def test_load_most_advanced_stage(self, store):
        store.save(_make_record(stage="pull-request-reviewers", saved_at="2024-05-01T00:00:00+00:00"))
        store.save(_make_record(stage="commit-pull-requests", saved_at="2024-05-03T00:00:00+00:00"))
        assert store.load("acme/widget").stage == "pull-request-reviewers"

    def test_load_specific_stage(self, store):
        store.save(_make_record(stage="starter"))
        store.save(_make_record(stage="commit-pull-requests"))
        assert store.load("acme/widget", stage="starter").stage == "starter"
        assert store.load("acme/widget", stage="pull-request-reviewers") is None

    def test_load_missing_repo(self, store):
        assert store.load("acme/widget") is None

    def test_record_round_trips_to_snapshot(self, store):
        record = _make_record()
        store.save(record)
        assert store.load("acme/widget").to_snapshot() == {"stage": record.stage, "payload": record.payload}


# ---------------------------------------------------------------------------
# JsonStore
# ---------------------------------------------------------------------------


class TestJsonStore:
    def test_file_layout(self, tmp_path):
        store = JsonStore(dir_path=str(tmp_path))
        store.save(_make_record())
        path = tmp_path / "acme__widget.commit-pull-requests.json"
        assert path.exists()
        assert json.loads(path.read_text())["repo"] == "acme/widget"
        assert not list(tmp_path.glob("*.tmp"))

    def test_directory_created_on_save(self, tmp_path):
        store = JsonStore(dir_path=str(tmp_path / "nested" / "dir"))
        assert store.list_snapshots("acme/widget") == []
        store.save(_make_record())
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_corrupt_file_skipped(self, tmp_path, caplog):
        store = JsonStore(dir_path=str(tmp_path))
        store.save(_make_record(stage="starter"))
        (tmp_path / "acme__widget.commit-pull-requests.json").write_text("{not json")

        snapshots = store.list_snapshots("acme/widget")

        assert [s.stage for s in snapshots] == ["starter"]
        assert "Ignoring unreadable snapshot" in caplog.text


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------


class TestSQLiteStore:
    def test_persists_across_connections(self, tmp_path):
        db = str(tmp_path / "test.db")
        store = SQLiteStore(db_path=db)
        store.save(_make_record())
        store.close()

        reopened = SQLiteStore(db_path=db)
        assert reopened.load("acme/widget").payload == _make_record().payload
        reopened.close()
