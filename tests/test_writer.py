import sqlite3

import pytest
from PIL import Image

from photo_indexer.exceptions import DatabaseError
from photo_indexer.indexing.writer import (
    CatalogWriter, INDEX_ADDED, INDEX_UPDATED,
    PHOTO_CREATED, PHOTO_REFRESHED, PHOTO_UNCHANGED,
)
from photo_indexer.metadata.linking import FileGrouper
from photo_indexer.models import Location

from conftest import CountingProbe, StaticClassifier, StubExtractor


class LyonResolver:
    def resolve(self, lat, lng):
        return Location(id="45.7640,4.8357", lat=lat, lng=lng, city="Lyon", country="France")


def _writer(store, probe, root, clock, **kwargs):
    return CatalogWriter(store, probe, root, clock=clock, **kwargs)


def _group(probe, root, path):
    return FileGrouper(probe, root).group(path)


def test_absent_photo_is_created_with_full_extraction(store, clock, tmp_path, make_jpeg):
    jpg = make_jpeg(tmp_path / "IMG_001.jpg")
    probe = CountingProbe(
        extractor=StubExtractor({"img_001": {"lat": 45.764, "lng": 4.8357, "artist": "Ana"}}),
        classifier=StaticClassifier([("Cat", 0.9), ("Dog", 0.15)]),
    )
    writer = _writer(store, probe, tmp_path, clock, location_resolver=LyonResolver())

    result = writer.reconcile_group(_group(probe, tmp_path, jpg))

    photo = store.find_photo(result.photo.canonical_name)
    assert result.photo_state == PHOTO_CREATED
    assert photo.title == "Lyon / France / 2021"
    assert [t.label for t in photo.tags] == ["cat", "lyon", "france"]
    assert photo.colors == "red"
    assert photo.perceptual_hash
    assert photo.artist == "Ana"
    assert photo.location_id == "45.7640,4.8357"
    assert store.get_location(photo.location_id).city == "Lyon"
    assert store.get_camera(photo.camera_id).model == "Canon EOS R5"
    assert photo.updated_at == clock()
    assert [o.result for o in result.outcomes] == [INDEX_ADDED]


def test_fresh_photo_is_left_alone(store, clock, probe, tmp_path, make_jpeg):
    jpg = make_jpeg(tmp_path / "IMG_001.jpg", color=(255, 0, 0))
    writer = _writer(store, probe, tmp_path, clock)
    writer.reconcile_group(_group(probe, tmp_path, jpg))
    calls = probe.analyze_calls

    make_jpeg(jpg, color=(0, 0, 255))
    clock.advance(minutes=9)
    result = writer.reconcile_group(_group(probe, tmp_path, jpg))

    assert result.photo_state == PHOTO_UNCHANGED
    assert probe.analyze_calls == calls
    photo = store.find_photo(result.photo.canonical_name)
    assert photo.colors == "red"
    assert [o.result for o in result.outcomes] == [INDEX_UPDATED]


def test_stale_photo_refreshes_volatile_fields_only(store, clock, tmp_path, make_jpeg):
    jpg = make_jpeg(tmp_path / "IMG_001.jpg", color=(255, 0, 0))
    probe = CountingProbe(extractor=StubExtractor(), classifier=StaticClassifier([("Cat", 0.9)]))
    writer = _writer(store, probe, tmp_path, clock)
    created = writer.reconcile_group(_group(probe, tmp_path, jpg)).photo

    # Forget the perceptual hash and give the photo a user title
    with store.transaction():
        created.perceptual_hash = None
        created.title = "My cat"
        store.update_photo(created, clock())

    probe.classifier = StaticClassifier([("Dog", 0.9)])
    make_jpeg(jpg, color=(0, 0, 255))
    clock.advance(minutes=11)
    result = writer.reconcile_group(_group(probe, tmp_path, jpg))

    photo = store.find_photo(created.canonical_name)
    assert result.photo_state == PHOTO_REFRESHED
    assert photo.colors == "blue"
    assert photo.perceptual_hash
    assert photo.title == "My cat"
    assert [t.label for t in photo.tags] == ["cat"]
    assert photo.updated_at == clock()


def test_refresh_keeps_existing_perceptual_hash(store, clock, probe, tmp_path, make_jpeg):
    jpg = make_jpeg(tmp_path / "IMG_001.jpg")
    writer = _writer(store, probe, tmp_path, clock)
    created = writer.reconcile_group(_group(probe, tmp_path, jpg)).photo
    with store.transaction():
        created.perceptual_hash = "custom"
        store.update_photo(created, clock())

    clock.advance(minutes=11)
    writer.reconcile_group(_group(probe, tmp_path, jpg))
    assert store.find_photo(created.canonical_name).perceptual_hash == "custom"


def test_raw_and_jpeg_share_one_photo_jpeg_primary(store, clock, probe, tmp_path, make_jpeg):
    raw = tmp_path / "IMG_001.RAW"
    raw.write_bytes(b"raw sensor data")
    jpg = make_jpeg(tmp_path / "IMG_001.JPG")
    writer = _writer(store, probe, tmp_path, clock)

    result = writer.reconcile_group(_group(probe, tmp_path, raw))

    files = {f.rel_path: f for f in store.files_for_photo(result.photo.id)}
    assert [(o.rel_path, o.role) for o in result.outcomes] == [("IMG_001.JPG", "main"), ("IMG_001.RAW", "related")]
    assert files["IMG_001.JPG"].primary is True
    assert files["IMG_001.JPG"].width == 32
    assert files["IMG_001.JPG"].aspect_ratio == pytest.approx(32 / 24, abs=1e-3)
    assert files["IMG_001.RAW"].primary is False
    assert files["IMG_001.RAW"].width is None


def test_second_distinct_jpeg_never_becomes_primary(store, clock, probe, tmp_path, make_jpeg):
    first = make_jpeg(tmp_path / "IMG_001.jpg", color=(255, 0, 0))
    writer = _writer(store, probe, tmp_path, clock)
    photo = writer.reconcile_group(_group(probe, tmp_path, first)).photo

    other = make_jpeg(tmp_path / "export" / "IMG_001.jpg", color=(0, 255, 0))
    with store.transaction():
        writer.upsert_file(photo, probe.inspect(other))
        # Re-encode of the primary: same path, new content
        make_jpeg(first, color=(10, 10, 10))
        assert writer.upsert_file(photo, probe.inspect(first)) == INDEX_UPDATED

    files = store.files_for_photo(photo.id)
    primaries = [f.rel_path for f in files if f.primary and f.type == "jpeg"]
    assert primaries == ["IMG_001.jpg"]
    assert len(files) == 2


def test_moved_file_is_updated_not_duplicated(store, clock, probe, tmp_path, make_jpeg):
    jpg = make_jpeg(tmp_path / "a" / "IMG_001.jpg")
    writer = _writer(store, probe, tmp_path, clock)
    photo = writer.reconcile_group(_group(probe, tmp_path, jpg)).photo

    moved = tmp_path / "b" / "IMG_001.jpg"
    moved.parent.mkdir()
    jpg.rename(moved)
    result = writer.reconcile_group(_group(probe, tmp_path, moved))

    files = store.files_for_photo(photo.id)
    assert result.photo.id == photo.id
    assert [f.rel_path for f in files] == ["b/IMG_001.jpg"]
    assert files[0].primary is True


def test_identical_copies_under_other_names_keep_their_own_rows(store, clock, probe, tmp_path, make_jpeg):
    original = make_jpeg(tmp_path / "IMG_1.jpg")
    copy = tmp_path / "COPY_1.jpg"
    copy.write_bytes(original.read_bytes())
    writer = _writer(store, probe, tmp_path, clock)

    first = writer.reconcile_group(_group(probe, tmp_path, original)).photo
    second = writer.reconcile_group(_group(probe, tmp_path, copy)).photo
    clock.advance(minutes=30)
    writer.reconcile_group(_group(probe, tmp_path, original))
    writer.reconcile_group(_group(probe, tmp_path, copy))

    assert first.id != second.id
    assert [(f.rel_path, f.primary) for f in store.files_for_photo(first.id)] == [("IMG_1.jpg", True)]
    assert [(f.rel_path, f.primary) for f in store.files_for_photo(second.id)] == [("COPY_1.jpg", True)]


def test_write_failure_rolls_back_whole_group(store, clock, probe, tmp_path, make_jpeg, monkeypatch):
    raw = tmp_path / "IMG_001.RAW"
    raw.write_bytes(b"raw")
    jpg = make_jpeg(tmp_path / "IMG_001.JPG")
    writer = _writer(store, probe, tmp_path, clock)

    real_create = store.create_file

    def flaky_create(f):
        if f.type == "raw":
            raise sqlite3.OperationalError("disk I/O error")
        return real_create(f)

    monkeypatch.setattr(store, "create_file", flaky_create)

    with pytest.raises(DatabaseError):
        writer.reconcile_group(_group(probe, tmp_path, jpg))

    assert store.counts()["photos"] == 0
    assert store.counts()["files"] == 0


def test_custom_staleness_window(store, clock, probe, tmp_path, make_jpeg):
    from datetime import timedelta
    jpg = make_jpeg(tmp_path / "IMG_001.jpg")
    writer = _writer(store, probe, tmp_path, clock, staleness_window=timedelta(minutes=1))
    writer.reconcile_group(_group(probe, tmp_path, jpg))

    clock.advance(minutes=2)
    assert writer.reconcile_group(_group(probe, tmp_path, jpg)).photo_state == PHOTO_REFRESHED


def test_png_is_never_flagged_primary(store, clock, probe, tmp_path, make_jpeg):
    png = tmp_path / "IMG_4.png"
    Image.new("RGB", (16, 16), (0, 255, 0)).save(png, "PNG")
    writer = _writer(store, probe, tmp_path, clock)

    result = writer.reconcile_group(_group(probe, tmp_path, png))
    files = store.files_for_photo(result.photo.id)
    assert [(f.type, f.mime, f.primary) for f in files] == [("png", "image/png", False)]

    jpg = make_jpeg(tmp_path / "IMG_4.jpg")
    group = _group(probe, tmp_path, png)
    assert group.main == jpg
    writer.reconcile_group(group)

    flags = {f.rel_path: f.primary for f in store.files_for_photo(result.photo.id)}
    assert flags == {"IMG_4.jpg": True, "IMG_4.png": False}
