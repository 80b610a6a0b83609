"""
Pytest configuration and shared fixtures for the AMG back office test suite.
"""
import os
import shutil
import tempfile
from datetime import date
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

ORDER_DAY = date(2025, 3, 14)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="amg_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> "Config":
    """Provide a test configuration with isolated directories and auth off."""
    from config import Config

    config = Config(
        db_path=temp_dir / "data" / "amg.db",
        storage_dir=temp_dir / "data" / "storage",
        config_dir=temp_dir / "config",
        public_base_url="http://testserver",
        default_currency="EUR",
        auth_required=False,
    )
    config.config_dir.mkdir(parents=True, exist_ok=True)
    config.ensure_data_dirs()
    return config


@pytest.fixture
def test_backend(test_config) -> "Backend":
    """Provide a backend on a fresh SQLite file."""
    from orders.backend import Backend
    return Backend(test_config.db_path, timeout=test_config.db_timeout_seconds)


@pytest.fixture
def test_storage(test_config) -> "ObjectStorage":
    from orders.storage import ObjectStorage
    return ObjectStorage(test_config.storage_dir, test_config.public_base_url)


@pytest.fixture
def seeded(test_backend) -> dict:
    """Insert two suppliers and three products; return their ids by short name."""
    suppliers = test_backend.insert("amg_suppliers", [
        {"name": "Bijoux Paris", "contact": "Claire Martin", "email": "contact@bijouxparis.fr",
         "address": "12 rue de la Paix, 75002 Paris"},
        {"name": "Perles du Sud", "email": "ventes@perlesdusud.fr"},
    ])
    products = test_backend.insert("amg_products", [
        {"name": "Collier argent", "reference": "COL-001", "price": "14.50"},
        {"name": "Bague or", "reference": "BAG-002", "price": "19.99"},
        {"name": "Boucles nacre", "reference": "BOU-003", "price": "7.25"},
    ])
    return {
        "paris": suppliers[0]["id"],
        "sud": suppliers[1]["id"],
        "collier": products[0]["id"],
        "bague": products[1]["id"],
        "boucles": products[2]["id"],
    }


@pytest.fixture
def fixed_clock():
    """Clock pinned to 14 March 2025."""
    return lambda: ORDER_DAY


@pytest.fixture
def manager(test_backend, fixed_clock) -> "SupplierOrderManager":
    from orders.lifecycle import SupplierOrderManager
    from orders.validator import OrderValidator
    return SupplierOrderManager(
        test_backend,
        validator=OrderValidator(default_currency="EUR"),
        clock=fixed_clock,
    )


@pytest.fixture
def tracker(test_backend) -> "ReceptionTracker":
    from orders.reception import ReceptionTracker
    return ReceptionTracker(test_backend)


@pytest.fixture
def sample_order(manager, seeded):
    """A draft order: 2 × 12.00 + 1 × 5.00, shipping 0, tax 0 → 29.00 EUR."""
    from models.supplier_order import OrderDetails, OrderItemInput
    return manager.create(
        OrderDetails(supplier_id=seeded["paris"], currency="eur"),
        [
            OrderItemInput(product_id=seeded["collier"], quantity=2, unit_price="12.00"),
            OrderItemInput(product_id=seeded["boucles"], quantity=1, unit_price="5.00"),
        ],
    )


@pytest.fixture
def api_client(test_config, test_backend, test_storage, fixed_clock):
    """TestClient with every shared resource pointed at the test fixtures."""
    from fastapi.testclient import TestClient

    from dashboard.app import app, get_backend, get_clock, get_config, get_storage

    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_backend] = lambda: test_backend
    app.dependency_overrides[get_storage] = lambda: test_storage
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
