"""
In-Memory Court Store

Thread-safe store backed by plain dictionaries, optionally loaded from
and persisted to a YAML fixture file. Each document carries a version
number; a status transaction reads a snapshot, then commits only if the
version is unchanged, otherwise it fails with TransactionConflict.

Fixture layout:

    complexes:
      riverside:
        name: Riverside Tennis Center
        courts:
          - name: Court 1
            status: available
            isConfigured: true
            regionPoints: [{x: 0.1, y: 0.1}, {x: 0.5, y: 0.1}, {x: 0.5, y: 0.6}]
"""

import copy
import threading
import yaml
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import logging

from ..courts import CourtStatus
from ..errors import ConfigLoadError, RecordNotFound, TransactionConflict
from .base import CourtStore, UpdateOutcome, apply_regions, apply_status
from .models import ComplexRecord, PointData, dump_complex, parse_complex

logger = logging.getLogger(__name__)


class InMemoryCourtStore(CourtStore):
    """
    Dictionary-backed CourtStore with optimistic versioning.

    Example:
        store = InMemoryCourtStore.from_yaml("complexes.yaml")
        complex_record = store.load_complex("riverside")
    """

    def __init__(
        self,
        documents: Optional[Mapping[str, Mapping[str, Any]]] = None,
        persist_path: Optional[Union[str, Path]] = None
    ):
        """
        Initialize the store.

        Args:
            documents: Mapping of complex id to raw document
            persist_path: YAML file rewritten after every committed write
        """
        self._lock = threading.Lock()
        self._documents: Dict[str, Dict[str, Any]] = {
            key: copy.deepcopy(dict(value)) for key, value in (documents or {}).items()
        }
        self._versions: Dict[str, int] = {key: 0 for key in self._documents}
        self.persist_path = Path(persist_path) if persist_path else None

    @classmethod
    def from_yaml(cls, path: Union[str, Path], persist: bool = False) -> "InMemoryCourtStore":
        """
        Load a store from a YAML fixture.

        Raises:
            ConfigLoadError: File missing or malformed
        """
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigLoadError(f"Failed to read store fixture {path}: {e}") from e

        complexes = data.get('complexes') if isinstance(data, dict) else None
        if not isinstance(complexes, dict):
            raise ConfigLoadError(f"Store fixture {path} has no 'complexes' mapping")

        logger.info(f"Loaded {len(complexes)} complexes from {path}")
        return cls(complexes, persist_path=path if persist else None)

    def dump_yaml(self, path: Union[str, Path]) -> None:
        """Write all documents to a YAML fixture."""
        with self._lock:
            data = {'complexes': copy.deepcopy(self._documents)}
        with open(path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def document(self, complex_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of a raw document, or None."""
        with self._lock:
            document = self._documents.get(complex_id)
            return copy.deepcopy(document) if document is not None else None

    def _read_document(self, complex_id: str) -> Tuple[Dict[str, Any], int]:
        with self._lock:
            if complex_id not in self._documents:
                raise RecordNotFound(f"Complex not found: {complex_id}")
            return copy.deepcopy(self._documents[complex_id]), self._versions[complex_id]

    def _commit_document(self, complex_id: str, version: int, document: Dict[str, Any]) -> None:
        with self._lock:
            if self._versions.get(complex_id) != version:
                raise TransactionConflict(f"Complex {complex_id} was modified concurrently")
            self._documents[complex_id] = document
            self._versions[complex_id] = version + 1

        if self.persist_path is not None:
            self.dump_yaml(self.persist_path)

    def load_complex(self, complex_id: str) -> ComplexRecord:
        document = self.document(complex_id)
        if document is None:
            raise ConfigLoadError(f"Complex not found: {complex_id}")
        return parse_complex(complex_id, document)

    def list_complexes(self) -> List[ComplexRecord]:
        with self._lock:
            items = [(key, copy.deepcopy(value)) for key, value in self._documents.items()]

        records = []
        for complex_id, document in items:
            try:
                records.append(parse_complex(complex_id, document))
            except ConfigLoadError as e:
                logger.error(f"Skipping complex {complex_id}: {e}")
        return records

    def update_court_status(
        self,
        complex_id: str,
        court_name: str,
        status: CourtStatus,
        timestamp_ms: int
    ) -> UpdateOutcome:
        document, version = self._read_document(complex_id)

        courts = apply_status(document, complex_id, court_name, status, timestamp_ms)
        if courts is None:
            logger.debug(f"{complex_id}/{court_name} already {status.value}")
            return UpdateOutcome.NO_OP

        document['courts'] = courts
        self._commit_document(complex_id, version, document)
        logger.debug(f"{complex_id}/{court_name} set to {status.value}")
        return UpdateOutcome.WRITTEN

    def save_court_regions(
        self,
        complex_id: str,
        regions: Mapping[str, Sequence[PointData]]
    ) -> int:
        document, version = self._read_document(complex_id)
        try:
            record = parse_complex(complex_id, document)
        except ConfigLoadError as e:
            raise RecordNotFound(f"Complex {complex_id} is not a valid complex: {e}") from e

        count = apply_regions(record, regions)
        document['courts'] = dump_complex(record)['courts']
        self._commit_document(complex_id, version, document)
        logger.info(f"Saved {count} court regions for complex {complex_id}")
        return count
