from tweaqengine.edit_store import EditStore


def _snapshot(edit_id: str) -> list[dict]:
    return [
        {
            "id": edit_id,
            "descriptor": {"selector": "#cta"},
            "changes": [{"property": "color", "before": "rgb(0, 0, 0)", "after": "#ef4444", "source_refs": []}],
        }
    ]


def test_snapshot_save_and_load(tmp_path) -> None:
    store = EditStore(base_dir=tmp_path)
    assert store.backend == "sqlite"

    store.save_snapshot("https://example.com/", _snapshot("edit-1"))
    store.save_snapshot("https://example.com/", _snapshot("edit-2"))

    loaded = store.load_snapshot("https://example.com/")
    assert [item["id"] for item in loaded] == ["edit-2"]
    assert store.load_snapshot("https://example.com/missing") == []


def test_json_backend_keeps_one_snapshot_per_page(tmp_path) -> None:
    store = EditStore(base_dir=tmp_path, prefer_sqlite=False)
    assert store.backend == "json"

    store.save_snapshot("https://b.example.com/", _snapshot("edit-b"))
    store.save_snapshot("https://a.example.com/", _snapshot("edit-a"))

    assert store.load_snapshot("https://a.example.com/")[0]["changes"][0]["after"] == "#ef4444"
    assert [item["id"] for item in store.load_snapshot("https://b.example.com/")] == ["edit-b"]
    assert (tmp_path / "edits.json").exists()


def test_corrupt_json_file_loads_empty(tmp_path) -> None:
    (tmp_path / "edits.json").write_text("{broken", encoding="utf-8")
    store = EditStore(base_dir=tmp_path, prefer_sqlite=False)

    assert store.load_snapshot("https://example.com/") == []
    store.save_snapshot("https://example.com/", _snapshot("edit-1"))
    assert [item["id"] for item in store.load_snapshot("https://example.com/")] == ["edit-1"]
