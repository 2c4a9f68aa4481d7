import hashlib
from pathlib import Path

from .. import config
from ..exceptions import FileHashError

class FileHasher:
    def compute_hash(self, path: Path) -> str:
        """
        Computes the content hash (SHA-256, hex) used as half of a file's identity.

        Always a full read: a file's hash must not depend on what else has been
        seen in the run, otherwise re-indexing could not match it again.
        """
        h = hashlib.sha256()
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(config.HASH_CHUNK_SIZE):
                    h.update(chunk)
        except OSError as e:
            raise FileHashError(f"Cannot hash {path}: {e}") from e
        return h.hexdigest()
