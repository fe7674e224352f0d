import json

import run_segmentation
from retail_segmentation.storage import SegmentStore


def _args(tmp_path, *extra):
    return [
        '--config', str(tmp_path / 'missing.yaml'),
        '--database-url', f"sqlite:///{tmp_path / 'cli.db'}",
        '--output', str(tmp_path / 'out'),
        *extra,
    ]


def test_sample_data_then_segment_then_report(tmp_path):
    assert run_segmentation.main(['--task', 'sample-data', '--customers', '60', '--seed', '1'] + _args(tmp_path)) == 0
    assert run_segmentation.main(['--task', 'segment', '--n-clusters', '3', '--seed', '1'] + _args(tmp_path)) == 0

    store = SegmentStore(f"sqlite:///{tmp_path / 'cli.db'}")
    assignments = store.get_assignments()
    store.dispose()

    assert assignments
    assert {a.segment_id for a in assignments} <= {0, 1, 2}

    reports = sorted((tmp_path / 'out').glob('customer_segments_*.json'))
    assert reports
    data = json.loads(reports[-1].read_text())
    assert data['n_customers'] == len(assignments)
    assert 'iterations' in data['run']

    assert run_segmentation.main(['--task', 'report'] + _args(tmp_path)) == 0


def test_segment_with_too_few_customers(tmp_path):
    exit_code = run_segmentation.main(['--task', 'segment', '--n-clusters', '4'] + _args(tmp_path))
    assert exit_code == 2
