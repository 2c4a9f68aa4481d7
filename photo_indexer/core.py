import logging
import threading
from pathlib import Path
from typing import Optional, Sequence, Set

from .database.db import DBManager
from .database.ops import CatalogStore
from .indexing.indexer import Indexer
from .metadata.location import LocationResolver
from .metadata.probe import Classifier, MediaProbe
from .reporting import IndexReport

class PhotoIndexerApp:
    def __init__(self, db_path: Path):
        self.db_manager = DBManager(db_path)
        self.report = IndexReport()
        self.cancel_event = threading.Event()

    def index(self,
              src_root: Path,
              related: Optional[Path] = None,
              sidecar_dirs: Optional[Sequence[str]] = None,
              classifier: Optional[Classifier] = None,
              location_resolver: Optional[LocationResolver] = None,
              max_workers: int = 1,
              show_progress: bool = True) -> Set[str]:
        """
        Indexes src_root into the catalog, or only the group around `related`
        when given. Returns the relative paths processed.
        """
        with self.db_manager as conn:
            store = CatalogStore(conn, self.db_manager.write_lock)
            indexer = Indexer(
                store,
                src_root,
                probe=MediaProbe(classifier=classifier),
                location_resolver=location_resolver,
                sidecar_dirs=sidecar_dirs,
                max_workers=max_workers,
                report=self.report,
                cancel_event=self.cancel_event,
                show_progress=show_progress,
            )

            if related is not None:
                processed = indexer.index_related(related)
            else:
                processed = indexer.index_all()

            counts = store.counts()
            logging.info(
                f"Catalog: {counts['photos']} photos, {counts['files']} files, "
                f"{counts['tags']} tags, {counts['cameras']} cameras, {counts['locations']} locations"
            )
            logging.info(f"Outcomes: {self.report.summary()}")
            return processed

    def cancel(self):
        self.cancel_event.set()
