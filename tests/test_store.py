import pytest
import yaml

from vacantcourt.courts import CourtStatus
from vacantcourt.errors import ConfigLoadError, RecordNotFound, TransactionConflict
from vacantcourt.store import InMemoryCourtStore, PointData, UpdateOutcome, dump_complex, parse_complex

from conftest import complex_document

SQUARE = [PointData(0.1, 0.1), PointData(0.4, 0.1), PointData(0.4, 0.4), PointData(0.1, 0.4)]


def test_parse_complex():
    record = parse_complex('riverside', complex_document())

    assert record.id == 'riverside'
    assert record.name == 'Riverside Tennis Center'
    assert len(record.courts) == 3
    court = record.courts[0]
    assert court.status is CourtStatus.AVAILABLE
    assert court.is_configured
    assert court.region_points[1] == PointData(0.5, 0.0)
    assert record.has_unconfigured_courts()
    assert [r.name for r in record.configured_regions()] == ['Court 1', 'Court 2']
    assert record.statuses() == {'Court 1': CourtStatus.AVAILABLE, 'Court 2': CourtStatus.AVAILABLE}


def test_configured_court_without_points_is_ignored():
    document = complex_document()
    document['courts'][1]['regionPoints'] = []
    record = parse_complex('riverside', document)
    assert [r.name for r in record.configured_regions()] == ['Court 1']


def test_parse_complex_rejects_schema_mismatch():
    document = complex_document()
    document['courts'][0]['status'] = 'busy'
    with pytest.raises(ConfigLoadError):
        parse_complex('riverside', document)

    document = complex_document()
    document['courts'][0]['regionPoints'] = [{'x': 'left', 'y': 0.1}]
    with pytest.raises(ConfigLoadError):
        parse_complex('riverside', document)

    with pytest.raises(ConfigLoadError):
        parse_complex('riverside', None)


def test_dump_uses_document_field_names():
    document = dump_complex(parse_complex('riverside', complex_document()))
    court = document['courts'][0]
    assert 'id' not in document
    assert court['isConfigured'] is True
    assert court['status'] == 'available'
    assert court['regionPoints'][0] == {'x': 0.0, 'y': 0.0}
    assert court['lastUpdatedStatus'] == 1000


def test_update_writes_status_and_timestamp(store):
    outcome = store.update_court_status('riverside', 'Court 1', CourtStatus.IN_USE, 5000)

    assert outcome == UpdateOutcome.WRITTEN
    court = store.document('riverside')['courts'][0]
    assert court['status'] == 'in-use'
    assert court['lastUpdatedStatus'] == 5000
    # Other courts untouched
    assert store.document('riverside')['courts'][1]['lastUpdatedStatus'] == 1000


def test_update_to_same_status_is_noop(store):
    outcome = store.update_court_status('riverside', 'Court 1', CourtStatus.AVAILABLE, 5000)

    assert outcome == UpdateOutcome.NO_OP
    assert store.document('riverside')['courts'][0]['lastUpdatedStatus'] == 1000


def test_update_missing_records(store):
    with pytest.raises(RecordNotFound):
        store.update_court_status('nowhere', 'Court 1', CourtStatus.IN_USE, 1)
    with pytest.raises(RecordNotFound):
        store.update_court_status('riverside', 'Court 9', CourtStatus.IN_USE, 1)


class RacingStore(InMemoryCourtStore):
    """Another writer commits between this transaction's read and commit."""

    def _read_document(self, complex_id):
        snapshot = super()._read_document(complex_id)
        document, version = super()._read_document(complex_id)
        document['name'] = 'Renamed'
        self._commit_document(complex_id, version, document)
        return snapshot


def test_concurrent_modification_conflicts():
    store = RacingStore({'riverside': complex_document()})
    with pytest.raises(TransactionConflict):
        store.update_court_status('riverside', 'Court 1', CourtStatus.IN_USE, 5000)
    assert store.document('riverside')['courts'][0]['status'] == 'available'


def test_load_complex(store):
    assert store.load_complex('riverside').name == 'Riverside Tennis Center'
    with pytest.raises(ConfigLoadError):
        store.load_complex('nowhere')


def test_list_complexes_skips_invalid_documents():
    store = InMemoryCourtStore({
        'riverside': complex_document(),
        'broken': {'name': 'Broken', 'courts': [{'status': 'available'}]},
    })
    assert [r.id for r in store.list_complexes()] == ['riverside']


def test_save_court_regions(store):
    count = store.save_court_regions('riverside', {'Court 3': SQUARE})

    assert count == 1
    record = store.load_complex('riverside')
    court = record.find_court('Court 3')
    assert court.is_configured
    assert court.region_points == SQUARE
    assert not record.has_unconfigured_courts()


def test_save_court_regions_validation(store):
    with pytest.raises(ValueError):
        store.save_court_regions('riverside', {'Court 3': SQUARE[:2]})
    with pytest.raises(ValueError):
        store.save_court_regions('riverside', {'Court 3': [PointData(1.5, 0.1)] + SQUARE[1:]})
    bowtie = [PointData(0.1, 0.1), PointData(0.4, 0.4), PointData(0.4, 0.1), PointData(0.1, 0.4)]
    with pytest.raises(ValueError):
        store.save_court_regions('riverside', {'Court 3': bowtie})
    with pytest.raises(RecordNotFound):
        store.save_court_regions('riverside', {'Court 9': SQUARE})

    assert not store.load_complex('riverside').find_court('Court 3').is_configured


def test_yaml_fixture_round_trip(tmp_path):
    path = tmp_path / "complexes.yaml"
    path.write_text(yaml.safe_dump({'complexes': {'riverside': complex_document()}}))

    store = InMemoryCourtStore.from_yaml(path, persist=True)
    store.update_court_status('riverside', 'Court 2', CourtStatus.IN_USE, 7000)

    reloaded = InMemoryCourtStore.from_yaml(path)
    court = reloaded.load_complex('riverside').find_court('Court 2')
    assert court.status is CourtStatus.IN_USE
    assert court.last_updated_status == 7000


def test_yaml_fixture_errors(tmp_path):
    with pytest.raises(ConfigLoadError):
        InMemoryCourtStore.from_yaml(tmp_path / "missing.yaml")

    path = tmp_path / "bad.yaml"
    path.write_text("just a string")
    with pytest.raises(ConfigLoadError):
        InMemoryCourtStore.from_yaml(path)
