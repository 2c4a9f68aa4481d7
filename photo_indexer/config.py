"""
Configuration constants for the photo indexer.
"""
from datetime import timedelta

# --- File Type Definitions ---
RAW_EXTS = {'.cr2', '.cr3', '.nef', '.arw', '.orf', '.rw2', '.dng', '.raf', '.raw'}
JPEG_EXTS = {'.jpg', '.jpeg', '.jpe'}
PNG_EXTS = {'.png'}
TIFF_EXTS = {'.tif', '.tiff'}
PSD_EXTS = {'.psd', '.psb'}
VIDEO_EXTS = {'.mp4', '.mov', '.m4v', '.avi', '.mts', '.m2ts', '.3gp'}
SIDECAR_EXTS = {'.xmp', '.aae', '.json', '.yml'}

# Extension to Type Mapping
EXT_TO_TYPE = {}
for ext in RAW_EXTS: EXT_TO_TYPE[ext] = 'raw'
for ext in JPEG_EXTS: EXT_TO_TYPE[ext] = 'jpeg'
for ext in PNG_EXTS: EXT_TO_TYPE[ext] = 'png'
for ext in TIFF_EXTS: EXT_TO_TYPE[ext] = 'tiff'
for ext in PSD_EXTS: EXT_TO_TYPE[ext] = 'psd'
for ext in VIDEO_EXTS: EXT_TO_TYPE[ext] = 'video'
for ext in SIDECAR_EXTS: EXT_TO_TYPE[ext] = 'sidecar'

# Types the probe accepts as a photo (i.e. something that can start a group)
PHOTO_TYPES = {'jpeg', 'png', 'tiff', 'psd', 'raw'}

# The displayable image type. Only files of this type can be flagged primary.
PRIMARY_IMAGE_TYPE = 'jpeg'

# Main file selection: lower index wins
MAIN_TYPE_PRECEDENCE = ['jpeg', 'png', 'tiff', 'psd', 'raw', 'video', 'sidecar', 'other']

# Extra directories (relative to a file's own directory) searched for related files
SIDECAR_DIRS: tuple = ()

# --- Reconciliation ---
# Classifier labels must be strictly more confident than this to become tags
LABEL_CONFIDENCE_THRESHOLD = 0.15

# Photos updated less than this long ago are not touched again
STALENESS_WINDOW = timedelta(minutes=10)

# Order in which location fields are offered as tags (after classifier labels)
LOCATION_TAG_FIELDS = ('city', 'county', 'country', 'category', 'name', 'type')

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# --- Hashing ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading

# --- Colors ---
# Images are downsampled to N x N before sampling colors
COLOR_SAMPLE_SIZE = 3

NAMED_COLORS = {
    "black": (0, 0, 0), "white": (255, 255, 255), "grey": (128, 128, 128),
    "red": (220, 20, 20), "orange": (255, 140, 0), "gold": (255, 215, 0),
    "yellow": (255, 255, 0), "lime": (50, 205, 50), "green": (0, 128, 0),
    "teal": (0, 128, 128), "cyan": (0, 200, 220), "blue": (30, 60, 220),
    "purple": (128, 0, 128), "magenta": (255, 0, 255), "pink": (255, 160, 190),
    "brown": (139, 69, 19), "beige": (230, 215, 180),
}

# --- Catalog ---
DEFAULT_DB_NAME = ".photo_index.db"
