import sqlite3
from datetime import datetime, timedelta, UTC

import pytest
from PIL import Image

from photo_indexer.database.schema import init_schema
from photo_indexer.database.ops import CatalogStore
from photo_indexer.metadata.extract import MetadataExtractor
from photo_indexer.metadata.linking import base_name
from photo_indexer.metadata.probe import MediaProbe

TAKEN_AT = datetime(2021, 6, 1, 12, 0, 0)
CAMERA = "Canon EOS R5"


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:", check_same_thread=False)
    init_schema(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def store(conn):
    """Returns a CatalogStore attached to the in-memory DB."""
    return CatalogStore(conn)


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


class StubExtractor(MetadataExtractor):
    """Real pixel facets, canned EXIF keyed by file base name."""
    def __init__(self, exif=None):
        self.exif = exif or {}

    def get_exif_data(self, path):
        data = {
            'taken_at': TAKEN_AT, 'camera_model': CAMERA, 'artist': None, 'orientation': 1,
            'width': None, 'height': None, 'lat': None, 'lng': None,
        }
        data.update(self.exif.get(base_name(path), {}))
        return data


class CountingProbe(MediaProbe):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.analyze_calls = 0

    def analyze(self, result, with_labels=True):
        self.analyze_calls += 1
        return super().analyze(result, with_labels)


class StaticClassifier:
    def __init__(self, labels):
        self.labels = labels

    def classify(self, path):
        return list(self.labels)


@pytest.fixture
def probe():
    return CountingProbe(extractor=StubExtractor())


@pytest.fixture
def make_jpeg():
    def _make(path, color=(255, 0, 0), size=(32, 24)):
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, "JPEG")
        return path
    return _make
