import json

import pytest

from shared.errors import StoreError
from shared.models import FamilyMember, GalleryPhoto, next_member_id
from shared.store import GalleryStore, MemberStore


def make_member(id, name="Isabela"):
    return FamilyMember(
        id=id,
        name=name,
        email="isa@example.com",
        phone="555",
        relationship_type="Grandchild",
        connected_through="Julieta",
        generation=3,
        family_branch="Julieta & Agustin",
    )


def test_init_creates_empty_array(tmp_path):
    store = MemberStore(tmp_path / "nested" / "family.json")
    store.init()
    assert json.loads(store.path.read_text()) == []


def test_init_fills_blank_file(tmp_path):
    path = tmp_path / "family.json"
    path.write_text("   \n")
    MemberStore(path).init()
    assert json.loads(path.read_text()) == []


def test_read_missing_or_blank_file_is_empty(tmp_path):
    path = tmp_path / "family.json"
    assert MemberStore(path).read() == []
    path.write_text("")
    assert MemberStore(path).read() == []


@pytest.mark.parametrize("content", ["[{not json", '{"name": "Bruno"}', '[{"id": "1"}]'])
def test_corrupt_file_reads_as_empty_and_is_left_alone(tmp_path, content):
    path = tmp_path / "family.json"
    path.write_text(content)
    store = MemberStore(path)
    assert store.read() == []
    assert store.get("1") is None
    assert store.check()
    assert path.read_text() == content


def test_append_to_corrupt_file_keeps_a_backup(tmp_path):
    path = tmp_path / "family.json"
    path.write_text("[{not json")
    store = MemberStore(path)
    store.append(make_member("1"))
    assert [m.id for m in store.read()] == ["1"]
    assert store.check() is None
    assert store.backup_path.read_text() == "[{not json"


def test_unreadable_file_raises(tmp_path):
    path = tmp_path / "family.json"
    path.mkdir()
    with pytest.raises(StoreError):
        MemberStore(path).read()


def test_records_persist_in_camel_case_and_insertion_order(tmp_path):
    store = MemberStore(tmp_path / "family.json")
    store.append(make_member("1", "Isabela"))
    store.append(make_member("2", "Luisa"))

    raw = json.loads(store.path.read_text())
    assert [r["name"] for r in raw] == ["Isabela", "Luisa"]
    assert raw[0]["connectedThrough"] == "Julieta"
    assert raw[0]["photo"] is None
    assert [m.id for m in store.read()] == ["1", "2"]


def test_replace_and_remove(tmp_path):
    store = MemberStore(tmp_path / "family.json")
    store.append(make_member("1"))
    store.append(make_member("2"))

    changed = store.get("1").model_copy(update={"city": "Encanto"})
    assert store.replace(changed) is True
    assert store.get("1").city == "Encanto"
    assert store.replace(make_member("404")) is False

    removed = store.remove("1")
    assert removed.id == "1"
    assert store.remove("1") is None
    assert [m.id for m in store.read()] == ["2"]


def test_gallery_store_round_trips_defaults(tmp_path):
    store = GalleryStore(tmp_path / "gallery.json")
    photo = store.append(GalleryPhoto(url="/gallery/a.jpg"))
    loaded = store.get(photo.id)
    assert loaded.uploaded_by == "Anonymous"
    assert loaded.created_at == photo.created_at


def test_next_member_id_skips_taken_ids(monkeypatch):
    monkeypatch.setattr("shared.models.time.time", lambda: 1700000000.0)
    assert next_member_id(set()) == "1700000000000"
    assert next_member_id({"1700000000000", "1700000000001"}) == "1700000000002"
