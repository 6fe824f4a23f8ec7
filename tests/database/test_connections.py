from datetime import datetime, timedelta, timezone

import pytest

from rqlitebrowser.database import ConnectionStore
from rqlitebrowser.utils.exceptions import ValidationError


@pytest.fixture()
def store(tmp_path):
    return ConnectionStore(f"sqlite:///{tmp_path/'connections.db'}")


def test_add_and_list_connections(store):
    first = store.add_connection("local", "http://localhost:4001/")
    second = store.add_connection("prod", "https://db.example:4001", "admin", "s3cret")

    listed = store.list_connections()

    assert [c.name for c in listed] == ["local", "prod"]
    assert first.url == "http://localhost:4001"
    assert listed[1].username == "admin"
    assert store.get_connection(second.id).password == "s3cret"
    assert "s3cret" not in repr(listed[1])


def test_find_update_and_remove(store):
    saved = store.add_connection("staging", "http://staging:4001")

    found = store.find_by_name("staging")
    assert found.id == saved.id

    found.url = "http://staging-2:4001"
    assert store.update_connection(found) is True
    assert store.get_connection(saved.id).url == "http://staging-2:4001"

    assert store.remove_connection(saved.id) is True
    assert store.remove_connection(saved.id) is False
    assert store.get_connection(saved.id) is None
    assert store.find_by_name("staging") is None


def test_connections_persist_across_instances(tmp_path):
    url = f"sqlite:///{tmp_path/'shared.db'}"
    ConnectionStore(url).add_connection("kept", "http://kept:4001")

    assert [c.name for c in ConnectionStore(url).list_connections()] == ["kept"]


def test_name_and_url_required(store):
    with pytest.raises(ValidationError):
        store.add_connection("", "http://x:4001")
    with pytest.raises(ValidationError):
        store.add_connection("x", "")


def test_created_at_is_utc(store):
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    store.add_connection("local", "http://localhost:4001")
    after = datetime.now(timezone.utc).replace(tzinfo=None)

    created = store.find_by_name("local").created_at.replace(tzinfo=None)
    assert before - timedelta(seconds=1) <= created <= after + timedelta(seconds=1)
