import csv
import logging
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, List, Union

from .models import FileOutcome

HEADERS = ["Relative Path", "Outcome", "File Type", "Role", "Notes"]


class IndexReport:
    """
    Per-file outcomes of one indexing run (Added / Updated / Failed).
    Safe to record into from worker threads.
    """
    def __init__(self):
        self.outcomes: List[FileOutcome] = []
        self._lock = threading.Lock()

    def record(self, outcome: FileOutcome):
        with self._lock:
            self.outcomes.append(outcome)

    def record_failure(self, rel_path: str, file_type: str, note: str):
        self.record(FileOutcome(rel_path=rel_path, type=file_type, role="", result="Failed", note=note))

    def summary(self) -> Dict[str, int]:
        with self._lock:
            return dict(Counter(o.result for o in self.outcomes))

    def write_csv(self, output_csv: Union[Path, str]):
        with self._lock:
            rows = list(self.outcomes)

        logging.info(f"Writing index report -> {output_csv}")
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(HEADERS)
            for o in sorted(rows, key=lambda o: o.rel_path):
                writer.writerow([o.rel_path, o.result, o.type, o.role, o.note])
        logging.info(f"Report complete. {len(rows)} rows.")
