"""
Canonical identity of a logical photo.

The identity is derived from the main file only: capture time, camera model
and a hash of the base file name. Content is deliberately left out so a
lossless re-encode (new content hash) still maps to the same photo. It never
looks at the catalog, so the same file always yields the same identity.

Two different photos taken in the same second, by the same camera model,
with the same base name collide. That is accepted.
"""
import hashlib
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..metadata.linking import base_name
from ..models import ProbeResult

UNKNOWN_CAMERA = "UNKNOWN"
NO_DATE = "00000000_000000"


def canonical_name(taken_at: Optional[datetime], camera_model: Optional[str], filename: Union[Path, str]) -> str:
    date_part = taken_at.strftime("%Y%m%d_%H%M%S") if taken_at else NO_DATE
    camera_part = re.sub(r'[^A-Z0-9]+', '', (camera_model or "").upper()) or UNKNOWN_CAMERA
    name_hash = hashlib.sha1(base_name(Path(filename)).encode('utf-8')).hexdigest()[:8].upper()
    return f"{date_part}_{camera_part}_{name_hash}"


class CanonicalResolver:
    def resolve(self, main_file: ProbeResult) -> str:
        return canonical_name(main_file.taken_at, main_file.camera_model, main_file.path)
