import logging
from typing import Iterable, List, Optional, Tuple

from .. import config
from ..database.ops import CatalogStore
from ..models import Location, Tag


class TagAggregator:
    """
    Builds a photo's tag list: classifier labels first (confidence filtered),
    then location fields. Labels are trimmed and lower-cased; a label already
    in the working list is ignored, so first-seen order is kept.

    Tags are looked up or created in the store, so callers must be inside a
    store transaction.
    """
    def __init__(self, store: CatalogStore, confidence_threshold: float = config.LABEL_CONFIDENCE_THRESHOLD):
        self.store = store
        self.confidence_threshold = confidence_threshold

    def append_tag(self, tags: List[Tag], label: Optional[str]) -> List[Tag]:
        label = (label or "").strip().lower()
        if not label:
            return tags

        for tag in tags:
            if tag.label == label:
                return tags

        tag = self.store.first_or_create_tag(label)
        return tags + [tag]

    def label_tags(self, labels: Iterable[Tuple[str, float]], tags: Optional[List[Tag]] = None) -> List[Tag]:
        tags = list(tags or [])
        for label, probability in labels:
            if probability > self.confidence_threshold:
                tags = self.append_tag(tags, label)
            else:
                logging.debug(f"Dropped label {label!r} ({probability:.3f})")
        return tags

    def location_tags(self, tags: List[Tag], location: Location) -> List[Tag]:
        for field in config.LOCATION_TAG_FIELDS:
            tags = self.append_tag(tags, getattr(location, field, ""))
        return tags
