import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Callable, List, Optional

from .. import config
from ..database.ops import CatalogStore
from ..exceptions import FileHashError
from ..metadata.linking import RelatedFiles
from ..metadata.location import CoordinateLocationResolver, LocationResolver
from ..metadata.probe import MediaProbe
from ..models import CatalogFile, FileOutcome, Photo, ProbeResult
from .canonical import CanonicalResolver
from .tags import TagAggregator
from .titles import synthesize_title

# Photo-level results
PHOTO_CREATED = "Created"
PHOTO_REFRESHED = "Refreshed"
PHOTO_UNCHANGED = "Unchanged"

# File-level results
INDEX_ADDED = "Added"
INDEX_UPDATED = "Updated"
INDEX_FAILED = "Failed"


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class GroupResult:
    photo: Photo
    photo_state: str
    outcomes: List[FileOutcome] = field(default_factory=list)


class CatalogWriter:
    """
    Reconciles one related-file group against the catalog.

    Photo record, per main-file observation:
      - absent          -> created from a full extraction
      - updated within the staleness window -> left unchanged, no probe work
      - older           -> refreshed: perceptual hash (only if missing) and colors

    Then every file of the group (main first) is added or updated, with the
    primary flag assigned. Everything for one group is written in a single
    transaction while holding the group's identity lock.
    """
    def __init__(self,
                 store: CatalogStore,
                 probe: MediaProbe,
                 root: Path,
                 location_resolver: Optional[LocationResolver] = None,
                 clock: Callable[[], datetime] = utc_now,
                 confidence_threshold: float = config.LABEL_CONFIDENCE_THRESHOLD,
                 staleness_window: timedelta = config.STALENESS_WINDOW):
        self.store = store
        self.probe = probe
        self.root = root
        self.locations = location_resolver or CoordinateLocationResolver()
        self.clock = clock
        self.staleness_window = staleness_window
        self.canonical = CanonicalResolver()
        self.tags = TagAggregator(store, confidence_threshold)

    def relative_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    def reconcile_group(self, group: RelatedFiles) -> GroupResult:
        """
        Raises FileHashError if the main file cannot be read and DatabaseError
        if the catalog write fails; nothing of the group is persisted then.
        """
        main_info = self.probe.inspect(group.main)
        canonical_name = self.canonical.resolve(main_info)

        infos = [(main_info, "main")]
        outcomes: List[FileOutcome] = []
        for sibling in group.siblings:
            try:
                infos.append((self.probe.inspect(sibling), "related"))
            except FileHashError as e:
                logging.warning(f"Skipping related file: {e}")
                outcomes.append(FileOutcome(
                    rel_path=self.relative_path(sibling), type=self.probe.classify(sibling),
                    role="related", result=INDEX_FAILED, note=str(e),
                ))

        with self.store.identity_lock(canonical_name):
            photo = self.store.find_photo(canonical_name)
            state = self.photo_state(photo)

            # Pixel work happens outside the write lock
            if state == PHOTO_CREATED:
                self.probe.analyze(main_info)
            elif state == PHOTO_REFRESHED:
                self.probe.analyze(main_info, with_labels=False)

            with self.store.transaction():
                now = self.clock()
                if state == PHOTO_CREATED:
                    photo = self.create_photo(canonical_name, main_info, now)
                elif state == PHOTO_REFRESHED:
                    photo = self.refresh_photo(photo, main_info, now)

                for info, role in infos:
                    result = self.upsert_file(photo, info)
                    outcomes.append(FileOutcome(
                        rel_path=self.relative_path(info.path), type=info.type, role=role, result=result,
                    ))

        return GroupResult(photo=photo, photo_state=state, outcomes=outcomes)

    def photo_state(self, photo: Optional[Photo]) -> str:
        if photo is None:
            return PHOTO_CREATED
        if photo.updated_at is None or self.clock() - photo.updated_at > self.staleness_window:
            return PHOTO_REFRESHED
        return PHOTO_UNCHANGED

    def create_photo(self, canonical_name: str, info: ProbeResult, now: datetime) -> Photo:
        photo = Photo(canonical_name=canonical_name, favorite=False, taken_at=info.taken_at)

        photo.perceptual_hash = info.perceptual_hash
        photo.lat, photo.lng = info.lat, info.lng
        photo.artist = info.artist
        self._apply_colors(photo, info)

        tags = self.tags.label_tags(info.labels)

        location = None
        if info.lat is not None and info.lng is not None:
            resolved = self.locations.resolve(info.lat, info.lng)
            if resolved is not None:
                location = self.store.first_or_create_location(resolved)
                photo.location_id = location.id
                tags = self.tags.location_tags(tags, location)

        if not photo.title:
            photo.title = synthesize_title(location, tags, info.taken_at)

        photo.tags = tags

        if info.camera_model:
            photo.camera_id = self.store.first_or_create_camera(info.camera_model).id

        return self.store.create_photo(photo, now)

    def refresh_photo(self, photo: Photo, info: ProbeResult, now: datetime) -> Photo:
        if not photo.perceptual_hash and info.perceptual_hash:
            photo.perceptual_hash = info.perceptual_hash
        self._apply_colors(photo, info)
        return self.store.update_photo(photo, now)

    def _apply_colors(self, photo: Photo, info: ProbeResult):
        if info.colors is None:
            return
        photo.colors = ", ".join(info.colors)
        photo.vibrant_color = info.vibrant_color
        photo.muted_color = info.muted_color

    def upsert_file(self, photo: Photo, info: ProbeResult) -> str:
        rel_path = self.relative_path(info.path)
        primary_type = config.PRIMARY_IMAGE_TYPE

        current_primary = self.store.find_primary_file(photo.id, primary_type)
        if current_primary is None:
            is_primary = info.type == primary_type
        else:
            is_primary = info.type == primary_type and (
                rel_path == current_primary.rel_path or info.hash == current_primary.hash
            )

        f = self.store.find_file(photo.id, info.hash, rel_path)
        result = INDEX_UPDATED if f is not None else INDEX_ADDED
        if f is None:
            f = CatalogFile(photo_id=photo.id, rel_path=rel_path, hash=info.hash, type=info.type)

        f.primary = is_primary
        f.rel_path = rel_path
        f.hash = info.hash
        f.type = info.type
        f.mime = info.mime
        f.orientation = info.orientation

        if info.width > 0 and info.height > 0:
            f.width = info.width
            f.height = info.height
            f.aspect_ratio = info.aspect_ratio

        if f.id is None:
            self.store.create_file(f)
        else:
            self.store.update_file(f)

        if is_primary:
            self.store.demote_other_primaries(photo.id, f.id)

        return result
