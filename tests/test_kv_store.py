from backend.kv_store import KeyValueStore


def test_values_persist_across_instances(tmp_path):
    base = tmp_path / "app_state"
    KeyValueStore(base).set("rest_timer", {"active": True, "duration": 90})
    assert KeyValueStore(base).get("rest_timer") == {"active": True, "duration": 90}


def test_corrupt_primary_falls_back_to_backup(tmp_path):
    base = tmp_path / "app_state"
    store = KeyValueStore(base)
    store.set("key", 1)
    store.primary.write_text("{not json", encoding="utf-8")
    assert KeyValueStore(base).get("key") == 1


def test_both_files_corrupt_gives_empty_state(tmp_path):
    base = tmp_path / "app_state"
    store = KeyValueStore(base)
    store.set("key", 1)
    store.primary.write_text("", encoding="utf-8")
    store.backup.write_text("[1, 2", encoding="utf-8")
    assert KeyValueStore(base).get("key", "missing") == "missing"


def test_remove_and_clear(tmp_path):
    base = tmp_path / "app_state"
    store = KeyValueStore(base)
    store.set("a", 1)
    store.set("b", 2)
    store.remove("a")
    store.remove("unknown")
    assert KeyValueStore(base).get("a") is None
    store.clear()
    assert not store.primary.exists()
    assert KeyValueStore(base).get("b") is None
