import logging
import threading
from concurrent.futures import ThreadPoolExecutor, Future
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set

from tqdm import tqdm

from .. import config
from ..database.ops import CatalogStore
from ..exceptions import DatabaseError, FileHashError, NotAPhotoError
from ..metadata.linking import FileGrouper, RelatedFiles
from ..metadata.location import LocationResolver
from ..metadata.probe import MediaProbe
from ..reporting import IndexReport
from ..scanning.filesystem import DiskScanner
from .writer import CatalogWriter, GroupResult, INDEX_FAILED, utc_now


class ProcessedSet:
    """Thread-safe set of relative paths, scoped to one indexing run."""
    def __init__(self):
        self._items: Set[str] = set()
        self._lock = threading.Lock()

    def __contains__(self, item: str) -> bool:
        with self._lock:
            return item in self._items

    def update(self, items: Iterable[str]):
        with self._lock:
            self._items.update(items)

    def claim(self, items: Iterable[str]) -> Set[str]:
        """Adds the items not yet present and returns them, in one step."""
        with self._lock:
            new = set(items) - self._items
            self._items.update(new)
            return new

    def snapshot(self) -> Set[str]:
        with self._lock:
            return set(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class Indexer:
    """
    Walks a source tree and reconciles every photo group exactly once per run.

    A file counts as processed once its group was written successfully.
    The walker claims a group's members before handing it to a worker and
    never releases the claim during the run, so no file is attempted twice.
    A failed group stays unprocessed so a later run can retry it.
    """
    def __init__(self,
                 store: CatalogStore,
                 root: Path,
                 probe: Optional[MediaProbe] = None,
                 location_resolver: Optional[LocationResolver] = None,
                 clock: Callable[[], datetime] = utc_now,
                 sidecar_dirs: Optional[Sequence[str]] = None,
                 confidence_threshold: float = config.LABEL_CONFIDENCE_THRESHOLD,
                 staleness_window: timedelta = config.STALENESS_WINDOW,
                 max_workers: int = 1,
                 report: Optional[IndexReport] = None,
                 cancel_event: Optional[threading.Event] = None,
                 show_progress: bool = False):
        self.root = root
        self.probe = probe or MediaProbe()
        self.grouper = FileGrouper(self.probe, root, sidecar_dirs)
        self.writer = CatalogWriter(
            store, self.probe, root,
            location_resolver=location_resolver,
            clock=clock,
            confidence_threshold=confidence_threshold,
            staleness_window=staleness_window,
        )
        self.scanner = DiskScanner()
        self.max_workers = max_workers
        self.report = report if report is not None else IndexReport()
        self.cancel_event = cancel_event or threading.Event()
        self.show_progress = show_progress

    def index_related(self, candidate: Path) -> Set[str]:
        """
        Indexes the group around one file (e.g. from a file watcher).
        Returns the relative paths written; DatabaseError propagates.
        """
        try:
            group = self.grouper.group(candidate)
        except NotAPhotoError as e:
            logging.debug(f"Skipped: {e}")
            return set()
        return self._reconcile(group)

    def index_all(self) -> Set[str]:
        """Indexes the whole tree. Returns the relative paths processed in this run."""
        processed = ProcessedSet()
        attempted = ProcessedSet()
        logging.info(f"Indexing {self.root} (workers={self.max_workers})...")

        with tqdm(desc="Indexing", unit="file", disable=not self.show_progress) as bar:
            if self.max_workers <= 1:
                for group, members in self._iter_groups(attempted):
                    self._run_group(group, members, processed, bar)
            else:
                futures: List[Future] = []
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    for group, members in self._iter_groups(attempted):
                        futures.append(executor.submit(self._run_group, group, members, processed, bar))
                # Surface anything other than a per-group failure
                for future in futures:
                    future.result()

        result = processed.snapshot()
        logging.info(f"Indexing complete. Processed {len(result)} files.")
        return result

    def _iter_groups(self, attempted: ProcessedSet):
        for path in self.scanner.iter_files(self.root):
            if self.cancel_event.is_set():
                logging.warning("Indexing cancelled; stopping at group boundary.")
                return

            if self.writer.relative_path(path) in attempted:
                continue
            if not self.probe.is_photo(path):
                continue

            try:
                group = self.grouper.group(path)
            except NotAPhotoError as e:
                logging.debug(f"Skipped: {e}")
                continue

            members = attempted.claim(self.writer.relative_path(p) for p in group.files)
            yield group, members

    def _run_group(self, group: RelatedFiles, members: Set[str], processed: ProcessedSet, bar: tqdm):
        try:
            done = self._reconcile(group)
        except DatabaseError as e:
            logging.error(f"Failed to write group of {self.writer.relative_path(group.main)}: {e}")
            for rel_path in sorted(members):
                self.report.record_failure(rel_path, self.probe.classify(self.root / rel_path), str(e))
            return
        processed.update(done)
        bar.update(len(done))

    def _reconcile(self, group: RelatedFiles) -> Set[str]:
        try:
            result: GroupResult = self.writer.reconcile_group(group)
        except FileHashError as e:
            logging.error(f"Could not index \"{self.writer.relative_path(group.main)}\": {e}")
            self.report.record_failure(self.writer.relative_path(group.main), self.probe.classify(group.main), str(e))
            return set()

        done = set()
        for outcome in result.outcomes:
            self.report.record(outcome)
            if outcome.result == INDEX_FAILED:
                continue
            done.add(outcome.rel_path)
            logging.info(f"{outcome.result} {outcome.role} {outcome.type} file \"{outcome.rel_path}\"")

        logging.debug(f"Photo {result.photo.canonical_name}: {result.photo_state}")
        return done
