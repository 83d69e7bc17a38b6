"""
Firestore Court Store

CourtStore backed by Google Cloud Firestore. Complexes live in one
collection (default "Courts"), one document per complex, with the
courts embedded as a list.

Status writes use a transaction with a single attempt, so contention
surfaces as TransactionConflict and the caller decides when to retry.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from ..courts import CourtStatus
from ..errors import ConfigLoadError, NetworkError, RecordNotFound, TransactionConflict
from .base import CourtStore, UpdateOutcome, apply_regions, apply_status, validate_region
from .models import ComplexRecord, PointData, dump_complex, parse_complex

logger = logging.getLogger(__name__)

COURTS_COLLECTION = "Courts"

_CONFLICT_ERRORS = (
    google_exceptions.Aborted,
    google_exceptions.Conflict,
    google_exceptions.FailedPrecondition,
)
_NETWORK_ERRORS = (
    google_exceptions.GoogleAPICallError,
    google_exceptions.RetryError,
)


class FirestoreCourtStore(CourtStore):
    """
    Firestore-backed CourtStore.

    Example:
        store = FirestoreCourtStore(config=config)
        complex_record = store.load_complex("riverside")
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the store.

        Args:
            client: firestore.Client; created from config when omitted
            config: Configuration dictionary
        """
        self.config = config or {}
        store_config = self.config.get('store', {})
        self.collection_name = store_config.get('collection', COURTS_COLLECTION)
        self.project = store_config.get('project')
        self._client = client

    @property
    def client(self):
        if self._client is None:
            logger.info(f"Connecting to Firestore (project={self.project or 'default'})")
            self._client = firestore.Client(project=self.project)
        return self._client

    def _document(self, complex_id: str):
        return self.client.collection(self.collection_name).document(complex_id)

    def load_complex(self, complex_id: str) -> ComplexRecord:
        try:
            snapshot = self._document(complex_id).get()
        except _NETWORK_ERRORS as e:
            raise ConfigLoadError(f"Failed to load complex {complex_id}: {e}") from e

        if not snapshot.exists:
            raise ConfigLoadError(f"Complex not found: {complex_id}")
        return parse_complex(snapshot.id, snapshot.to_dict())

    def list_complexes(self) -> List[ComplexRecord]:
        try:
            snapshots = list(self.client.collection(self.collection_name).stream())
        except _NETWORK_ERRORS as e:
            raise NetworkError(f"Failed to list complexes: {e}") from e

        records = []
        for snapshot in snapshots:
            try:
                records.append(parse_complex(snapshot.id, snapshot.to_dict()))
            except ConfigLoadError as e:
                logger.error(f"Skipping complex {snapshot.id}: {e}")
        return records

    def _run_transaction(self, complex_id: str, body):
        """Run body(transaction, doc_ref) in a single-attempt transaction."""
        doc_ref = self._document(complex_id)
        transaction = self.client.transaction(max_attempts=1)

        @firestore.transactional
        def run(transaction):
            return body(transaction, doc_ref)

        try:
            return run(transaction)
        except google_exceptions.NotFound as e:
            raise RecordNotFound(f"Complex not found: {complex_id}") from e
        except _CONFLICT_ERRORS as e:
            raise TransactionConflict(f"Transaction on {complex_id} conflicted: {e}") from e
        except ValueError as e:
            # Raised by the client once max_attempts is exhausted
            raise TransactionConflict(f"Transaction on {complex_id} failed: {e}") from e
        except _NETWORK_ERRORS as e:
            raise NetworkError(f"Transaction on {complex_id} failed: {e}") from e

    def update_court_status(
        self,
        complex_id: str,
        court_name: str,
        status: CourtStatus,
        timestamp_ms: int
    ) -> UpdateOutcome:
        def body(transaction, doc_ref):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise RecordNotFound(f"Complex not found: {complex_id}")

            courts = apply_status(snapshot.to_dict() or {}, complex_id, court_name, status, timestamp_ms)
            if courts is None:
                return UpdateOutcome.NO_OP

            transaction.update(doc_ref, {'courts': courts})
            return UpdateOutcome.WRITTEN

        outcome = self._run_transaction(complex_id, body)
        logger.debug(f"{complex_id}/{court_name} -> {status.value}: {outcome.value}")
        return outcome

    def save_court_regions(
        self,
        complex_id: str,
        regions: Mapping[str, Sequence[PointData]]
    ) -> int:
        for name, points in regions.items():
            validate_region(name, points)

        def body(transaction, doc_ref):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise RecordNotFound(f"Complex not found: {complex_id}")

            record = parse_complex(complex_id, snapshot.to_dict())
            count = apply_regions(record, regions)
            transaction.update(doc_ref, {'courts': dump_complex(record)['courts']})
            return count

        count = self._run_transaction(complex_id, body)
        logger.info(f"Saved {count} court regions for complex {complex_id}")
        return count

    def close(self) -> None:
        if self._client is not None and hasattr(self._client, 'close'):
            self._client.close()
