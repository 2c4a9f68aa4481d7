import colorsys
import logging
import mimetypes
from pathlib import Path
from datetime import datetime
from typing import Optional, Tuple, Dict, Any, List

import exifread
import imagehash
from PIL import Image
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import MetadataExtractionError


class MetadataExtractor:
    """
    Unified interface for extracting metadata facets from media files.

    Strategies:
      - EXIF: 'exifread' (fast, Python-native, works on most RAW formats too).
      - Pixels: 'Pillow' for size, MIME, colors; 'imagehash' for perceptual hash.
      - Video: 'pymediainfo'.

    Every method raises MetadataExtractionError when its facet is unavailable;
    callers decide how to degrade.
    """

    def get_exif_data(self, path: Path) -> Dict[str, Any]:
        """
        Returns capture time, camera, artist, orientation, GPS and EXIF dimensions.
        Missing tags come back as None.
        """
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            raise MetadataExtractionError(f"ExifRead failed for {path}: {e}") from e

        if not tags:
            raise MetadataExtractionError(f"No EXIF data in {path}")

        data: Dict[str, Any] = {
            'taken_at': self._parse_exif_date(tags),
            'camera_model': self._str_tag(tags, 'Image Model'),
            'artist': self._str_tag(tags, 'Image Artist'),
            'orientation': self._int_tag(tags, 'Image Orientation') or 0,
            'width': self._int_tag(tags, 'EXIF ExifImageWidth'),
            'height': self._int_tag(tags, 'EXIF ExifImageLength'),
            'lat': None,
            'lng': None,
        }

        lat = self._gps_coordinate(tags, 'GPS GPSLatitude', 'GPS GPSLatitudeRef', 'S')
        lng = self._gps_coordinate(tags, 'GPS GPSLongitude', 'GPS GPSLongitudeRef', 'W')
        if lat is not None and lng is not None:
            data['lat'], data['lng'] = lat, lng

        return data

    def get_image_info(self, path: Path) -> Tuple[int, int, Optional[str]]:
        """Returns (width, height, mime) as decoded by Pillow."""
        try:
            with Image.open(path) as im:
                return im.width, im.height, Image.MIME.get(im.format or "")
        except Exception as e:
            raise MetadataExtractionError(f"Pillow cannot open {path}: {e}") from e

    def get_video_info(self, path: Path) -> Tuple[Optional[datetime], int, int]:
        """Returns (capture_datetime, width, height) for a video file."""
        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            raise MetadataExtractionError(f"MediaInfo failed for {path}: {e}") from e

        dt = None
        width = height = 0
        for track in mi.tracks:
            if track.track_type == "General":
                for field in ("recorded_date", "encoded_date", "tagged_date"):
                    val = getattr(track, field, None)
                    if val:
                        dt = self._parse_flexible_date(str(val))
                        if dt:
                            break
            elif track.track_type == "Video":
                width = int(getattr(track, "width", 0) or 0)
                height = int(getattr(track, "height", 0) or 0)
        return dt, width, height

    def guess_mime(self, path: Path) -> Optional[str]:
        mime, _ = mimetypes.guess_type(path.name)
        return mime

    def compute_phash(self, path: Path) -> str:
        try:
            with Image.open(path) as im:
                return str(imagehash.phash(im))
        except Exception as e:
            raise MetadataExtractionError(f"Perceptual hash failed for {path}: {e}") from e

    def get_colors(self, path: Path) -> Tuple[List[str], str, str]:
        """
        Downsamples the image and names each sample by its nearest palette color.

        Returns:
            (ordered unique color names, vibrant color, muted color)
        """
        size = config.COLOR_SAMPLE_SIZE
        try:
            with Image.open(path) as im:
                small = im.convert("RGB").resize((size, size), Image.Resampling.BOX)
                pixels = [small.getpixel((x, y)) for y in range(size) for x in range(size)]
        except Exception as e:
            raise MetadataExtractionError(f"Color extraction failed for {path}: {e}") from e

        names: List[str] = []
        vibrant = muted = None
        best_sat, worst_sat = -1.0, 2.0
        for r, g, b in pixels:
            name = nearest_color_name(r, g, b)
            if name not in names:
                names.append(name)

            _, sat, _ = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
            if sat > best_sat:
                best_sat, vibrant = sat, name
            if sat < worst_sat:
                worst_sat, muted = sat, name

        return names, vibrant, muted

    # --- Internal Helpers ---

    def _str_tag(self, tags, key: str) -> Optional[str]:
        if key in tags:
            value = str(tags[key]).strip()
            return value or None
        return None

    def _int_tag(self, tags, key: str) -> Optional[int]:
        if key not in tags:
            return None
        try:
            return int(tags[key].values[0])
        except (AttributeError, IndexError, TypeError, ValueError):
            return None

    def _gps_coordinate(self, tags, key: str, ref_key: str, negative_ref: str) -> Optional[float]:
        if key not in tags:
            return None
        try:
            d, m, s = (self._ratio(v) for v in tags[key].values[:3])
        except (AttributeError, ValueError, ZeroDivisionError):
            return None

        value = d + m / 60.0 + s / 3600.0
        if ref_key in tags and str(tags[ref_key]).strip().upper() == negative_ref:
            value = -value
        return round(value, 7)

    def _ratio(self, r) -> float:
        num = getattr(r, "num", r)
        den = getattr(r, "den", 1)
        return float(num) / float(den)

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        """Helper to parse standard EXIF date strings from exifread."""
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None

    def _parse_flexible_date(self, dt_str: str) -> Optional[datetime]:
        """
        Handles various date formats (ISO, UTC suffixes, MediaInfo quirks).
        Returns a naive datetime object.
        """
        if not dt_str:
            return None

        clean = dt_str.replace("UTC", "").strip()

        try:
            return datetime.fromisoformat(clean).replace(tzinfo=None)
        except ValueError:
            pass

        try:
            clean_exif = clean.replace(":", "-", 2)
            if "." in clean_exif:
                clean_exif = clean_exif.split(".")[0]
            return datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            logging.debug(f"Unparseable date: {dt_str!r}")

        return None


def nearest_color_name(r: int, g: int, b: int) -> str:
    best_name = "grey"
    best_dist = float("inf")
    for name, (nr, ng, nb) in config.NAMED_COLORS.items():
        d = (r - nr) ** 2 + (g - ng) ** 2 + (b - nb) ** 2
        if d < best_dist:
            best_dist = d
            best_name = name
    return best_name
