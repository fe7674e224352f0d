from datetime import datetime

from retail_segmentation.common import generate_customer_data, seed_sample_data

END = datetime(2025, 6, 1)


def test_generated_frames():
    customers, purchases = generate_customer_data(n_customers=50, end_date=END, seed=1)

    assert len(customers) == 50
    assert set(customers['status']) <= {'Active', 'Inactive'}
    assert set(purchases['status']) <= {'completed', 'refunded'}
    assert (purchases['total_amount'] >= 1.0).all()
    assert (purchases['purchase_date'] <= END).all()
    assert set(purchases['customer_id']) <= set(customers['id'])


def test_same_seed_same_data():
    a, pa = generate_customer_data(n_customers=20, end_date=END, seed=3)
    b, pb = generate_customer_data(n_customers=20, end_date=END, seed=3)

    assert a.equals(b)
    assert pa.equals(pb)


def test_seed_store_feeds_segmentation(store):
    n_customers, n_purchases = seed_sample_data(store, n_customers=80, seed=2, end_date=END)

    assert n_customers == 80
    assert n_purchases > 0

    aggregates = store.load_eligible_aggregates(now=END)
    assert 0 < len(aggregates) <= 80
    assert all(a.purchase_count >= 1 for a in aggregates)
