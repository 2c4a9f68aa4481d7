import pytest

from photo_indexer.exceptions import FileHashError
from photo_indexer.scanning.filesystem import DiskScanner
from photo_indexer.scanning.hasher import FileHasher


def test_compute_file_hash(tmp_path):
    p = tmp_path / "sample.bin"
    p.write_bytes(b"hello world" * 10)

    hasher = FileHasher()
    assert hasher.compute_hash(p) == hasher.compute_hash(p)
    assert len(hasher.compute_hash(p)) == 64


def test_compute_hash_missing_file(tmp_path):
    with pytest.raises(FileHashError):
        FileHasher().compute_hash(tmp_path / "gone.jpg")


def test_scanner_orders_and_skips_hidden(tmp_path):
    root = tmp_path
    (root / ".thumbs").mkdir()
    (root / ".thumbs" / "IMG_9.jpg").write_text("x")
    (root / ".DS_Store").write_text("x")

    sub = root / "a"
    sub.mkdir()
    (sub / "b.jpg").write_text("b")
    (root / "c.jpg").write_text("c")

    files = list(DiskScanner().iter_files(root))
    assert files == [root / "c.jpg", sub / "b.jpg"]



def test_scanner_survives_unreadable_root(tmp_path):
    assert list(DiskScanner().iter_files(tmp_path / "missing")) == []
