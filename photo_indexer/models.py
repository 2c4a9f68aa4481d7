from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass
class ProbeResult:
    """
    Everything the media probe could learn about one file.
    Any facet may be None; absence is never an error.
    """
    path: Path
    hash: str
    type: str               # jpeg/tiff/psd/raw/video/sidecar/other
    mime: Optional[str] = None
    width: int = 0
    height: int = 0
    orientation: int = 0

    taken_at: Optional[datetime] = None
    camera_model: Optional[str] = None
    artist: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    # Pixel-derived facets (only available for decodable images)
    perceptual_hash: Optional[str] = None
    colors: Optional[List[str]] = None
    vibrant_color: Optional[str] = None
    muted_color: Optional[str] = None
    labels: List[Tuple[str, float]] = field(default_factory=list)

    @property
    def aspect_ratio(self) -> float:
        if self.width > 0 and self.height > 0:
            return round(self.width / self.height, 4)
        return 0.0


@dataclass
class Tag:
    label: str
    id: Optional[int] = None


@dataclass
class Camera:
    model: str
    id: Optional[int] = None


@dataclass
class Location:
    """
    A place, keyed by an identity derived from its coordinates.
    Names are filled in by whatever resolver produced it.
    """
    id: str
    lat: float
    lng: float
    name: str = ""
    city: str = ""
    county: str = ""
    country: str = ""
    category: str = ""
    type: str = ""


@dataclass
class Photo:
    canonical_name: str
    id: Optional[int] = None
    title: str = ""
    perceptual_hash: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    artist: Optional[str] = None
    colors: str = ""                # comma separated, ordered
    vibrant_color: Optional[str] = None
    muted_color: Optional[str] = None
    favorite: bool = False
    taken_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    camera_id: Optional[int] = None
    location_id: Optional[str] = None
    tags: List[Tag] = field(default_factory=list)


@dataclass
class CatalogFile:
    """
    One physical file belonging to a Photo.
    Identified by (hash, rel_path): a match on either is the same file.
    """
    photo_id: int
    rel_path: str
    hash: str
    type: str
    id: Optional[int] = None
    mime: Optional[str] = None
    orientation: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: Optional[float] = None
    primary: bool = False


@dataclass
class FileOutcome:
    """What happened to one file during a reconciliation pass."""
    rel_path: str
    type: str
    role: str               # main / related
    result: str             # Added / Updated / Failed
    note: str = ""
