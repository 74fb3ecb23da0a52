import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# In-memory database for the module-level engine in db.session
os.environ["DATABASE_URL"] = "sqlite://"

# Add the parent directory to sys.path to allow imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

import enums
import models
from db.init_db import create_db_and_tables
from db.session import get_db
from main import app

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test"""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_db(test_engine):
    with Session(test_engine) as db:
        yield db


@pytest.fixture
def inventories(test_db):
    """
    Rows A-E: prices 5, 15, 25, 35, 45 and quantities 0, 3, 10, 10, 50.
    A and D are archived. Most recently updated first: A, B, C, D, E.
    """
    rows = {
        "A": models.Inventory(
            name="Alpha Widget",
            price=5,
            quantity=0,
            status=enums.InventoryStatus.archived.code,
            created_at=datetime(2024, 1, 10, tzinfo=timezone.utc),
            updated_at=NOW - timedelta(days=1),
        ),
        "B": models.Inventory(
            name="Bravo Widget",
            price=15,
            quantity=3,
            status=enums.InventoryStatus.active.code,
            created_at=datetime(2024, 2, 10, tzinfo=timezone.utc),
            updated_at=NOW - timedelta(days=2),
        ),
        "C": models.Inventory(
            name="Charlie Gadget",
            price=25,
            quantity=10,
            status=enums.InventoryStatus.active.code,
            created_at=datetime(2024, 3, 10, tzinfo=timezone.utc),
            updated_at=NOW - timedelta(days=3),
        ),
        "D": models.Inventory(
            name="Delta 1000 Gadget",
            price=35,
            quantity=10,
            status=enums.InventoryStatus.archived.code,
            created_at=datetime(2024, 4, 10, tzinfo=timezone.utc),
            updated_at=NOW - timedelta(days=10),
        ),
        "E": models.Inventory(
            name="Echo 100% Gizmo",
            price=45,
            quantity=50,
            status=enums.InventoryStatus.active.code,
            created_at=datetime(2024, 5, 10, tzinfo=timezone.utc),
            updated_at=NOW - timedelta(days=20),
        ),
    }
    test_db.add_all(rows.values())
    test_db.flush()

    a, b, c, d, e = (rows[key] for key in "ABCDE")
    test_db.add_all(
        [
            # A has two batches, one expiring soon and one much later
            models.Batch(inventory_id=a.id, lot_code="LOT-A1", expires_on=TODAY + timedelta(days=5), quantity=0),
            models.Batch(inventory_id=a.id, lot_code="LOT-A2", expires_on=TODAY + timedelta(days=60), quantity=0),
            models.Batch(inventory_id=b.id, lot_code="LOTA7X", expires_on=TODAY + timedelta(days=120), quantity=3),
            models.Batch(inventory_id=c.id, lot_code="LOT_7X", expires_on=TODAY + timedelta(days=90), quantity=10),
            models.InventoryLog(
                inventory_id=b.id,
                user_id=7,
                delta=-2,
                operation_type=enums.OperationType.remove.value,
                previous_quantity=5,
                current_quantity=3,
                created_at=NOW - timedelta(days=2),
            ),
            models.InventoryLog(
                inventory_id=c.id,
                user_id=8,
                delta=4,
                operation_type=enums.OperationType.add.value,
                previous_quantity=6,
                current_quantity=10,
                created_at=NOW - timedelta(days=3),
            ),
            models.Shipment(
                inventory_id=b.id,
                quantity=2,
                destination="Berlin Warehouse",
                scheduled_date=TODAY - timedelta(days=2),
                shipment_status=enums.ShipmentStatus.shipped.code,
                tracking_number="TRK-1001",
            ),
            models.Shipment(
                inventory_id=c.id,
                quantity=1,
                destination="Boston Depot",
                scheduled_date=TODAY + timedelta(days=3),
                shipment_status=enums.ShipmentStatus.pending.code,
            ),
            models.Receipt(
                inventory_id=d.id,
                quantity=10,
                source="Acme Supplies",
                receipt_date=TODAY - timedelta(days=30),
                receipt_status=enums.ReceiptStatus.completed.code,
                cost_per_unit=2.5,
            ),
            models.Receipt(
                inventory_id=e.id,
                quantity=50,
                source="Globex",
                receipt_date=TODAY + timedelta(days=7),
                receipt_status=enums.ReceiptStatus.delayed.code,
                cost_per_unit=9.0,
            ),
            models.AuditLog(
                auditable_type="Inventory",
                auditable_id=c.id,
                user_id=7,
                action=enums.AuditAction.update.value,
                message="Price changed",
                changed_fields="price,quantity",
                created_at=NOW - timedelta(days=3),
            ),
            # same id as A but a different owner type, must never match A
            models.AuditLog(
                auditable_type="Supplier",
                auditable_id=a.id,
                user_id=7,
                action=enums.AuditAction.update.value,
                message="Supplier renamed",
                changed_fields="name",
                created_at=NOW - timedelta(days=1),
            ),
        ]
    )
    test_db.commit()
    return rows


@pytest.fixture
def client(test_db, inventories):
    """Create a test client with the test database"""

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

