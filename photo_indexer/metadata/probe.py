import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from .. import config
from ..exceptions import MetadataExtractionError
from ..models import ProbeResult
from ..scanning.hasher import FileHasher
from .extract import MetadataExtractor

# Types Pillow can decode for pixel facets
DECODABLE_TYPES = {'jpeg', 'png', 'tiff', 'psd'}


class Classifier(Protocol):
    """Image classifier returning (label, probability) pairs, best first."""
    def classify(self, path: Path) -> List[Tuple[str, float]]: ...


class MediaProbe:
    """
    Answers "what is this file" for the indexer.

    inspect() covers what every file observation needs (hash, type, MIME,
    size, orientation, EXIF). analyze() adds the expensive pixel facets and
    is only called when a photo is created or refreshed.

    Each facet is isolated: a failing extractor leaves its fields unset.
    """
    def __init__(self,
                 hasher: Optional[FileHasher] = None,
                 extractor: Optional[MetadataExtractor] = None,
                 classifier: Optional[Classifier] = None):
        self.hasher = hasher or FileHasher()
        self.metadata = extractor or MetadataExtractor()
        self.classifier = classifier

    def classify(self, path: Path) -> str:
        if path.name.startswith("._"):
            return 'other'
        return config.EXT_TO_TYPE.get(path.suffix.lower(), 'other')

    def is_photo(self, path: Path) -> bool:
        return self.classify(path) in config.PHOTO_TYPES

    def inspect(self, path: Path) -> ProbeResult:
        """Raises FileHashError if the file cannot be read at all."""
        ftype = self.classify(path)
        result = ProbeResult(path=path, hash=self.hasher.compute_hash(path), type=ftype)

        if ftype in config.PHOTO_TYPES:
            try:
                exif = self.metadata.get_exif_data(path)
                result.taken_at = exif['taken_at']
                result.camera_model = exif['camera_model']
                result.artist = exif['artist']
                result.orientation = exif['orientation']
                result.lat, result.lng = exif['lat'], exif['lng']
                result.width = exif['width'] or 0
                result.height = exif['height'] or 0
            except MetadataExtractionError as e:
                logging.debug(str(e))

        if ftype in DECODABLE_TYPES:
            try:
                result.width, result.height, result.mime = self.metadata.get_image_info(path)
            except MetadataExtractionError as e:
                logging.debug(str(e))
        elif ftype == 'video':
            try:
                dt, result.width, result.height = self.metadata.get_video_info(path)
                result.taken_at = result.taken_at or dt
            except MetadataExtractionError as e:
                logging.debug(str(e))

        if not result.mime:
            result.mime = self.metadata.guess_mime(path)

        if result.taken_at is None:
            result.taken_at = self._fallback_file_datetime(path)

        return result

    def analyze(self, result: ProbeResult, with_labels: bool = True) -> ProbeResult:
        """Fills perceptual hash, color summary and classifier labels in place."""
        if result.type not in DECODABLE_TYPES:
            return result

        try:
            result.perceptual_hash = self.metadata.compute_phash(result.path)
        except MetadataExtractionError as e:
            logging.debug(str(e))

        try:
            result.colors, result.vibrant_color, result.muted_color = self.metadata.get_colors(result.path)
        except MetadataExtractionError as e:
            logging.debug(str(e))

        if with_labels and self.classifier is not None:
            try:
                result.labels = list(self.classifier.classify(result.path))
            except Exception as e:
                logging.warning(f"Classifier failed for {result.path}: {e}")

        return result

    def _fallback_file_datetime(self, path: Path) -> Optional[datetime]:
        try:
            return datetime.fromtimestamp(path.stat().st_mtime)
        except OSError:
            return None
