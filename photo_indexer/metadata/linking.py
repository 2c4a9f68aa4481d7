import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .. import config
from ..exceptions import NotAPhotoError
from .probe import MediaProbe


@dataclass
class RelatedFiles:
    """A main file plus every file belonging to the same logical photo."""
    main: Path
    files: List[Path]   # includes main

    @property
    def siblings(self) -> List[Path]:
        return [f for f in self.files if f != self.main]


def base_name(path: Path) -> str:
    """
    File name without its extension, lower-cased. A sidecar named after the
    full media file name drops both suffixes, so IMG_001.JPG, img_001.cr2 and
    IMG_001.JPG.xmp all give img_001, while "2021.06.01 beach.jpg" keeps its dots.
    """
    stem, ext = os.path.splitext(path.name)
    inner_stem, inner_ext = os.path.splitext(stem)
    if ext and inner_ext.lower() in config.EXT_TO_TYPE:
        stem = inner_stem
    return stem.lower()


class FileGrouper:
    """
    Finds files related to a candidate (RAW + JPEG + XMP ...) by base name,
    in the candidate's directory and in any configured sidecar directories.
    """
    def __init__(self, probe: MediaProbe, root: Path, sidecar_dirs: Optional[Sequence[str]] = None):
        self.probe = probe
        self.root = root
        self.sidecar_dirs = tuple(config.SIDECAR_DIRS if sidecar_dirs is None else sidecar_dirs)

    def group(self, candidate: Path) -> RelatedFiles:
        """
        Raises NotAPhotoError when the candidate is not a supported photo type;
        the caller skips it.
        """
        if not self.probe.is_photo(candidate):
            raise NotAPhotoError(f"{candidate} is not a supported photo type")

        stem = base_name(candidate)
        search_dirs = [candidate.parent] + [candidate.parent / d for d in self.sidecar_dirs]

        related = {candidate}
        for directory in search_dirs:
            for path in self._list_dir(directory):
                if base_name(path) == stem and self.probe.classify(path) != 'other':
                    related.add(path)

        files = sorted(related, key=self._main_rank)
        main = files[0]
        logging.debug(f"Grouped {len(files)} file(s) under main {self._rel(main)}")
        return RelatedFiles(main=main, files=files)

    def _list_dir(self, directory: Path) -> List[Path]:
        try:
            with os.scandir(directory) as it:
                return [Path(e.path) for e in it
                        if not e.name.startswith(".") and e.is_file(follow_symlinks=False)]
        except FileNotFoundError:
            return []
        except OSError as e:
            logging.warning(f"Cannot list {directory} while grouping: {e}")
            return []

    def _main_rank(self, path: Path):
        """Type precedence first, then shortest relative path, then lexical order."""
        ftype = self.probe.classify(path)
        try:
            type_rank = config.MAIN_TYPE_PRECEDENCE.index(ftype)
        except ValueError:
            type_rank = len(config.MAIN_TYPE_PRECEDENCE)
        rel = self._rel(path)
        return type_rank, len(rel), rel

    def _rel(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()
