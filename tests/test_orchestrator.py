import pytest

from retail_segmentation.config import Settings
from retail_segmentation.customer_segmentation import CustomerAggregate, SegmentationOrchestrator
from retail_segmentation.exceptions import InsufficientDataError, SegmentationNotFoundError
from retail_segmentation.storage import SegmentStore

from conftest import REFERENCE_NOW, ScriptedRandom, add_customer_with_metrics


@pytest.fixture
def orchestrator(example_store):
    return SegmentationOrchestrator(example_store, random_state=ScriptedRandom(first_index=2, draws=[0.5]))


def test_example_scenario(orchestrator, example_store):
    result = orchestrator.run(num_clusters=2, now=REFERENCE_NOW)

    assert [s.segment_name for s in result.segments] == ['Champions', 'Segment 2']
    assert [s.customer_count for s in result.segments] == [2, 4]
    assert result.converged

    by_customer = {a.customer_id: a.segment_name for a in example_store.get_assignments()}
    assert by_customer == {
        1: 'Segment 2',
        2: 'Segment 2',
        3: 'Champions',
        4: 'Champions',
        5: 'Segment 2',
        6: 'Segment 2',
    }


def test_run_stores_raw_feature_snapshots(orchestrator, example_store):
    orchestrator.run(num_clusters=2, now=REFERENCE_NOW)

    stored = {a.customer_id: a.features for a in example_store.get_assignments()}

    assert stored[3]['total_value'] == pytest.approx(9000.0)
    assert stored[3]['purchase_count'] == 8.0
    assert stored[3]['avg_order_value'] == pytest.approx(1125.0)
    assert stored[6]['days_since_last_purchase'] == pytest.approx(500.0)


def test_result_carries_diagnostics(orchestrator):
    result = orchestrator.run(num_clusters=2, now=REFERENCE_NOW)
    data = result.to_dict()

    assert data['iterations'] == 2
    assert data['feature_ranges']['total_value'] == {'min': 50.0, 'max': 9000.0}
    assert data['metrics']['silhouette_score'] is not None
    assert len(data['segments'][0]['centroid']) == 4


def test_every_eligible_customer_is_assigned_once(example_store):
    orchestrator = SegmentationOrchestrator(example_store, random_state=21)
    result = orchestrator.run(num_clusters=3, now=REFERENCE_NOW)

    ids = [a.customer_id for a in result.assignments]
    assert sorted(ids) == [1, 2, 3, 4, 5, 6]
    assert sum(s.customer_count for s in result.segments) == 6
    assert len(example_store.get_assignments()) == 6


def test_insufficient_data_fails_before_normalizing(store, monkeypatch):
    for i in range(3):
        add_customer_with_metrics(store, f"Customer {i + 1}", 100.0 * (i + 1), i + 1, 10.0)

    class ExplodingNormalizer:
        def __init__(self):
            raise AssertionError("features must not be computed")

    monkeypatch.setattr(
        'retail_segmentation.customer_segmentation.orchestrator.FeatureNormalizer',
        ExplodingNormalizer
    )

    with pytest.raises(InsufficientDataError) as exc_info:
        SegmentationOrchestrator(store, random_state=0).run(num_clusters=4, now=REFERENCE_NOW)

    assert exc_info.value.required == 4
    assert exc_info.value.available == 3


def test_insufficient_data_keeps_previous_segmentation(orchestrator, example_store):
    orchestrator.run(num_clusters=2, now=REFERENCE_NOW)
    before = example_store.get_assignments()

    with pytest.raises(InsufficientDataError):
        orchestrator.run(num_clusters=10, now=REFERENCE_NOW)

    assert example_store.get_assignments() == before


@pytest.mark.parametrize("num_clusters", [0, -1])
def test_non_positive_cluster_count_is_rejected(example_store, num_clusters):
    with pytest.raises(ValueError, match="must be >= 1") as exc_info:
        SegmentationOrchestrator(example_store, random_state=0).run(num_clusters=num_clusters)

    assert not isinstance(exc_info.value, InsufficientDataError)
    assert example_store.get_assignments() == []


def test_empty_database_is_insufficient(store):
    with pytest.raises(InsufficientDataError) as exc_info:
        SegmentationOrchestrator(store).run(num_clusters=1)

    assert exc_info.value.available == 0


def test_failed_persistence_keeps_previous_segmentation(orchestrator, example_store):
    orchestrator.run(num_clusters=2, now=REFERENCE_NOW)
    before = example_store.get_assignments()

    class FailingStore(SegmentStore):
        def _insert_assignments(self, conn, assignments):
            super()._insert_assignments(conn, assignments[:3])
            raise RuntimeError("disk full")

    failing = SegmentationOrchestrator(FailingStore(engine=example_store.engine), random_state=4)

    with pytest.raises(RuntimeError):
        failing.run(num_clusters=3, now=REFERENCE_NOW)

    assert example_store.get_assignments() == before


def test_segment_does_not_touch_store(example_aggregates):
    class NoStore:
        def __getattr__(self, name):
            raise AssertionError(f"store.{name} used")

    orchestrator = SegmentationOrchestrator(NoStore(), random_state=ScriptedRandom(first_index=2))
    result = orchestrator.segment(example_aggregates, 2)

    assert [s.segment_name for s in result.segments] == ['Champions', 'Segment 2']


def test_from_settings():
    settings = Settings(max_iterations=7, epsilon=1e-3, random_seed=5, active_statuses=['Active', 'VIP'])
    orchestrator = SegmentationOrchestrator.from_settings(object(), settings)

    assert orchestrator.max_iterations == 7
    assert orchestrator.epsilon == 1e-3
    assert orchestrator.random_state == 5
    assert orchestrator.active_statuses == ['Active', 'VIP']

    overridden = SegmentationOrchestrator.from_settings(object(), settings, random_state=99)
    assert overridden.random_state == 99


class TestPredictSegment:

    def test_requires_stored_segmentation(self, store):
        with pytest.raises(SegmentationNotFoundError):
            SegmentationOrchestrator(store).predict_segment(CustomerAggregate.from_metrics('x', 10.0, 1, 1.0))

    def test_nearest_stored_segment(self, orchestrator):
        orchestrator.run(num_clusters=2, now=REFERENCE_NOW)

        big_spender = CustomerAggregate.from_metrics('new', 9500.0, 10, 5.0)
        lapsed = CustomerAggregate.from_metrics('old', 60.0, 1, 450.0)

        assert orchestrator.predict_segment(big_spender)['segment_name'] == 'Champions'

        prediction = orchestrator.predict_segment(lapsed)
        assert prediction['segment_id'] == 1
        assert prediction['segment_name'] == 'Segment 2'
        assert all(0.0 <= v <= 1.0 for v in prediction['features'])
