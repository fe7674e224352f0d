import numpy as np
import pandas as pd
import pytest

from retail_segmentation.customer_segmentation import CustomerAggregate, SegmentAnalyzer, SegmentLabeler
from retail_segmentation.customer_segmentation.kmeans_clustering import Cluster
from retail_segmentation.customer_segmentation.segment_analysis import classify_segment


@pytest.mark.parametrize(
    "value, frequency, recency, expected",
    [
        (8900.0, 8.5, 22.5, 'Champions'),
        (6000.0, 4.0, 100.0, 'Loyal Customers'),
        (1000.0, 4.0, 200.0, 'At Risk'),
        (200.0, 1.0, 10.0, 'New Customers'),
        (125.0, 1.0, 450.0, 'Lost Customers'),
        (125.0, 1.25, 232.5, 'Segment 3'),
    ],
)
def test_decision_list(value, frequency, recency, expected):
    assert classify_segment(value, frequency, recency, position=2) == expected


def test_first_matching_rule_wins():
    # Satisfies both the Champions and the Loyal Customers rules
    assert classify_segment(9000.0, 10.0, 30.0, 0) == 'Champions'
    # Satisfies both At Risk and Lost Customers
    assert classify_segment(100.0, 5.0, 400.0, 0) == 'At Risk'


def test_thresholds_are_strict():
    assert classify_segment(5000.0, 6.0, 30.0, 0) != 'Champions'
    assert classify_segment(100.0, 1.0, 365.0, 4) == 'Segment 5'


def test_labeler_uses_raw_averages(example_aggregates):
    clusters = [
        Cluster(centroid=np.zeros(4), points=[2, 3]),
        Cluster(centroid=np.zeros(4), points=[0, 1, 4, 5]),
    ]

    assert SegmentLabeler().label(clusters, example_aggregates) == ['Champions', 'Segment 2']


def test_labeler_names_empty_cluster_by_position(example_aggregates):
    clusters = [
        Cluster(centroid=np.zeros(4), points=[0, 1, 2, 3, 4, 5]),
        Cluster(centroid=np.ones(4), points=[]),
    ]

    names = SegmentLabeler().label(clusters, example_aggregates)

    assert names[1] == 'Segment 2'


def test_labeler_lost_and_new_customers():
    aggregates = [
        CustomerAggregate.from_metrics(1, 80.0, 1, 5.0),
        CustomerAggregate.from_metrics(2, 60.0, 1, 700.0),
    ]
    clusters = [
        Cluster(centroid=np.zeros(4), points=[0]),
        Cluster(centroid=np.zeros(4), points=[1]),
    ]

    assert SegmentLabeler().label(clusters, aggregates) == ['New Customers', 'Lost Customers']


@pytest.fixture
def assignments_df(example_aggregates):
    segment_ids = [1, 1, 0, 0, 1, 1]
    names = {0: 'Champions', 1: 'Segment 2'}
    records = []
    for aggregate, segment_id in zip(example_aggregates, segment_ids):
        record = {'customer_id': aggregate.customer_id, 'segment_id': segment_id, 'segment_name': names[segment_id]}
        record.update(aggregate.snapshot())
        records.append(record)
    return pd.DataFrame(records)


def test_profile_segments(assignments_df):
    profile = SegmentAnalyzer().profile_segments(assignments_df)

    assert list(profile.index) == [0, 1]
    assert profile.loc[0, 'total_value_mean'] == pytest.approx(8900.0)
    assert profile.loc[1, 'days_since_last_purchase_median'] == pytest.approx(210.0)
    assert profile.loc[0, 'customer_count'] == 2
    assert profile.loc[1, 'customer_percentage'] == pytest.approx(400 / 6)
    assert profile.loc[0, 'segment_name'] == 'Champions'


def test_profile_empty_frame():
    assert SegmentAnalyzer().profile_segments(pd.DataFrame()).empty


def test_feature_differences(assignments_df):
    tests = SegmentAnalyzer().test_feature_differences(assignments_df)

    assert set(tests) == {'total_value', 'purchase_count', 'avg_order_value', 'days_since_last_purchase'}
    assert 0.0 <= tests['total_value']['kruskal_p_value'] <= 1.0
    assert isinstance(tests['total_value']['significant'], bool)


def test_feature_differences_need_two_segments(assignments_df):
    single = assignments_df.assign(segment_id=0)
    assert SegmentAnalyzer().test_feature_differences(single) == {}


def test_summary_lists_every_segment(assignments_df):
    summary = SegmentAnalyzer().generate_summary(assignments_df)

    assert "Total customers: 6" in summary
    assert "0 Champions: 2 (33.3%)" in summary
    assert "1 Segment 2: 4 (66.7%)" in summary
