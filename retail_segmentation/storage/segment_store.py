"""
Segment Store
=============

Relational boundary of the segmentation engine: reads per-customer
purchase aggregates and atomically replaces the stored segment
assignments.

Usage:
    from retail_segmentation.storage import SegmentStore

    store = SegmentStore("sqlite:///retail_segmentation.db")
    store.create_schema()
    aggregates = store.load_eligible_aggregates(["Active"], ["completed"])
    store.replace_assignments(assignments)
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Sequence
import pandas as pd
from loguru import logger
from sqlalchemy import (
    Column, DateTime, Float, ForeignKey, Integer, JSON, MetaData, String, Table,
    create_engine, delete, func, insert, select
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from ..customer_segmentation.rfm_features import CustomerAggregate, SegmentAssignment, FEATURE_COLUMNS

SECONDS_PER_DAY = 86400.0

metadata = MetaData()

customers = Table(
    'customers', metadata,
    Column('id', Integer, primary_key=True),
    Column('name', String(255), nullable=False),
    Column('email', String(255)),
    Column('status', String(50), nullable=False, default='Active'),
    Column('created_at', DateTime, nullable=False, default=lambda: utcnow()),
)

purchases = Table(
    'purchases', metadata,
    Column('id', Integer, primary_key=True),
    Column('customer_id', Integer, ForeignKey('customers.id'), nullable=False, index=True),
    Column('total_amount', Float, nullable=False, default=0.0),
    Column('status', String(50), nullable=False, default='completed'),
    Column('purchase_date', DateTime, nullable=False),
)

customer_segments = Table(
    'customer_segments', metadata,
    Column('id', Integer, primary_key=True),
    Column('customer_id', Integer, ForeignKey('customers.id'), nullable=False),
    Column('segment_id', Integer, nullable=False, index=True),
    Column('segment_name', String(100), nullable=False),
    Column('features', JSON, nullable=False),
    Column('created_at', DateTime, nullable=False, default=lambda: utcnow()),
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    In-memory SQLite gets a single shared connection so every session
    (and every API worker thread) sees the same database.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


class SegmentStore:
    """
    Persistence for customers, purchases and the current segmentation.

    The current segmentation is a single table that each run replaces
    wholesale inside one transaction; there is no history.

    Example:
        >>> store = SegmentStore("sqlite://")
        >>> store.create_schema()
        >>> cid = store.add_customer("Acme Ltd")
        >>> store.add_purchase(cid, 120.0, datetime(2025, 1, 3))
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None, echo: bool = False):
        """
        Initialize SegmentStore.

        Args:
            database_url: SQLAlchemy URL (ignored when engine is given)
            engine: Pre-built engine
            echo: Log emitted SQL
        """
        if engine is None:
            if database_url is None:
                raise ValueError("Either database_url or engine is required")
            engine = create_db_engine(database_url, echo=echo)

        self.engine = engine
        logger.info(f"SegmentStore initialized ({self.engine.url.drivername})")

    def create_schema(self):
        metadata.create_all(self.engine)

    def dispose(self):
        self.engine.dispose()

    # Seeding -------------------------------------------------------------

    def add_customer(
        self,
        name: str,
        email: Optional[str] = None,
        status: str = 'Active',
        created_at: Optional[datetime] = None
    ) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(customers).values(
                    name=name,
                    email=email,
                    status=status,
                    created_at=created_at or utcnow()
                )
            )
            return result.inserted_primary_key[0]

    def add_purchase(
        self,
        customer_id: int,
        total_amount: float,
        purchase_date: datetime,
        status: str = 'completed'
    ) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(purchases).values(
                    customer_id=customer_id,
                    total_amount=total_amount,
                    purchase_date=purchase_date,
                    status=status
                )
            )
            return result.inserted_primary_key[0]

    def bulk_insert(self, customer_rows: List[Dict[str, Any]], purchase_rows: List[Dict[str, Any]]):
        """Insert prepared customer and purchase rows in one transaction."""
        with self.engine.begin() as conn:
            if customer_rows:
                conn.execute(insert(customers), customer_rows)
            if purchase_rows:
                conn.execute(insert(purchases), purchase_rows)

        logger.info(f"Inserted {len(customer_rows)} customers and {len(purchase_rows)} purchases")

    # Input query ---------------------------------------------------------

    def load_eligible_aggregates(
        self,
        active_statuses: Sequence[str] = ('Active',),
        completed_statuses: Sequence[str] = ('completed',),
        now: Optional[datetime] = None
    ) -> List[CustomerAggregate]:
        """
        Purchase aggregates for every customer eligible for segmentation.

        Eligible means an active-like status and at least one completed
        purchase. Recency is measured in fractional days from ``now``.

        Args:
            active_statuses: Customer statuses treated as active
            completed_statuses: Purchase statuses that count toward metrics
            now: Reference time (default: current UTC time)

        Returns:
            Aggregates ordered by customer id
        """
        now = now or utcnow()

        purchase_count = func.count(purchases.c.id)
        stmt = (
            select(
                customers.c.id,
                customers.c.name,
                purchase_count.label('purchase_count'),
                func.coalesce(func.sum(purchases.c.total_amount), 0.0).label('total_value'),
                func.max(purchases.c.purchase_date).label('last_purchase_date'),
            )
            .select_from(
                customers.join(
                    purchases,
                    (purchases.c.customer_id == customers.c.id)
                    & purchases.c.status.in_(list(completed_statuses))
                )
            )
            .where(customers.c.status.in_(list(active_statuses)))
            .group_by(customers.c.id, customers.c.name)
            .having(purchase_count > 0)
            .order_by(customers.c.id)
        )

        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()

        aggregates = []
        for row in rows:
            last_purchase = row.last_purchase_date
            days_since = (now - last_purchase).total_seconds() / SECONDS_PER_DAY if last_purchase else 0.0

            aggregates.append(CustomerAggregate.from_metrics(
                customer_id=row.id,
                total_value=row.total_value,
                purchase_count=row.purchase_count,
                days_since_last_purchase=days_since,
                name=row.name
            ))

        logger.info(f"Loaded {len(aggregates)} eligible customers")
        return aggregates

    # Output persistence --------------------------------------------------

    def replace_assignments(self, assignments: Sequence[SegmentAssignment]) -> int:
        """
        Delete every stored assignment and insert the new set atomically.

        Both statements run in one transaction; if anything fails the
        transaction rolls back and the previous set stays in place.

        Returns:
            Number of assignments written
        """
        with self.engine.begin() as conn:
            removed = conn.execute(delete(customer_segments)).rowcount
            written = self._insert_assignments(conn, assignments)

        logger.info(f"Replaced {removed} segment assignments with {written}")
        return written

    def _insert_assignments(self, conn: Connection, assignments: Sequence[SegmentAssignment]) -> int:
        created_at = utcnow()
        rows = [
            {
                'customer_id': a.customer_id,
                'segment_id': a.segment_id,
                'segment_name': a.segment_name,
                'features': a.features,
                'created_at': created_at,
            }
            for a in assignments
        ]

        if rows:
            conn.execute(insert(customer_segments), rows)

        return len(rows)

    # Read surface --------------------------------------------------------

    def get_assignments(self) -> List[SegmentAssignment]:
        stmt = select(
            customer_segments.c.customer_id,
            customer_segments.c.segment_id,
            customer_segments.c.segment_name,
            customer_segments.c.features,
        ).order_by(customer_segments.c.segment_id, customer_segments.c.customer_id)

        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()

        return [
            SegmentAssignment(
                customer_id=row.customer_id,
                segment_id=row.segment_id,
                segment_name=row.segment_name,
                features=dict(row.features or {})
            )
            for row in rows
        ]

    def get_assignments_frame(self) -> pd.DataFrame:
        """Stored assignments flattened to one row per customer."""
        assignments = self.get_assignments()
        columns = ['customer_id', 'segment_id', 'segment_name'] + FEATURE_COLUMNS

        records = []
        for a in assignments:
            record = {
                'customer_id': a.customer_id,
                'segment_id': a.segment_id,
                'segment_name': a.segment_name,
            }
            for col in FEATURE_COLUMNS:
                record[col] = float(a.features.get(col, 0.0))
            records.append(record)

        return pd.DataFrame(records, columns=columns)

    def get_segment_summaries(self) -> List[Dict[str, Any]]:
        """
        Per-segment customer count and average raw metrics of the stored run.

        Returns:
            List of dicts ordered by segment id
        """
        df = self.get_assignments_frame()
        if df.empty:
            return []

        summary = df.groupby(['segment_id', 'segment_name']).agg(
            customer_count=('customer_id', 'count'),
            avg_value=('total_value', 'mean'),
            avg_frequency=('purchase_count', 'mean'),
            avg_order_value=('avg_order_value', 'mean'),
            avg_recency=('days_since_last_purchase', 'mean'),
        ).reset_index().sort_values('segment_id')

        return [
            {
                'segment_id': int(row.segment_id),
                'segment_name': row.segment_name,
                'customer_count': int(row.customer_count),
                'avg_value': float(row.avg_value),
                'avg_frequency': float(row.avg_frequency),
                'avg_order_value': float(row.avg_order_value),
                'avg_recency': float(row.avg_recency),
            }
            for row in summary.itertuples(index=False)
        ]

    def get_segment_customers(self, segment_id: int) -> List[Dict[str, Any]]:
        """Customers of one stored segment joined to their customer records."""
        stmt = (
            select(
                customers.c.id,
                customers.c.name,
                customers.c.email,
                customers.c.status,
                customer_segments.c.segment_name,
                customer_segments.c.features,
            )
            .select_from(customer_segments.join(customers, customer_segments.c.customer_id == customers.c.id))
            .where(customer_segments.c.segment_id == segment_id)
            .order_by(customers.c.name)
        )

        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()

        return [
            {
                'customer_id': row.id,
                'name': row.name,
                'email': row.email,
                'status': row.status,
                'segment_name': row.segment_name,
                'features': dict(row.features or {}),
            }
            for row in rows
        ]
