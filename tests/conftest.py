import os

# Point the application at throwaway backends before it is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopadmin.main import app
from shopadmin.database import Base, get_db
from shopadmin.models.customer import Customer
from shopadmin.models.employee import Employee
from shopadmin.models.product import Product, ProductCategory, ProductStatus


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def customer_id(client):
    """A customer created through the API."""
    response = client.post("/api/v1/customers/", json={"name": "Alice Buyer", "email": "alice@example.com"})
    return response.json()["id"]


@pytest.fixture
def employee_id(client):
    """An employee created through the API."""
    response = client.post("/api/v1/employees/", json={"name": "Bob Seller", "department": "Sales"})
    return response.json()["id"]


@pytest.fixture
def create_product(client):
    """Factory creating a product through the API and returning its ID."""
    def _create(name="iPhone 15", price=50.00, stock=10, **extra):
        payload = {"name": name, "price": price, "stock": stock, "category": "AirPod"}
        payload.update(extra)
        response = client.post("/api/v1/products/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["id"]
    return _create


@pytest.fixture
def seed(db_session):
    """Directly persisted customer, employee and products for service tests."""
    customer = Customer(name="Carol Customer")
    employee = Employee(name="Eve Employee")
    products = {
        "p": Product(name="Product P", price=50, stock=10, category=ProductCategory.AIRPOD),
        "q": Product(name="Product Q", price=20, stock=2, category=ProductCategory.CABLE),
        "r": Product(name="Product R", price=5, stock=100, category=ProductCategory.CHARGER),
        "off": Product(
            name="Retired Charger", price=15, stock=8,
            category=ProductCategory.CHARGER, status=ProductStatus.UNAVAILABLE,
        ),
    }
    db_session.add_all([customer, employee, *products.values()])
    db_session.commit()
    return {"customer": customer, "employee": employee, **products}
