from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from bookkeeping.database import Base, get_db
from bookkeeping.main import app
from bookkeeping.models import Customer


@pytest.fixture(scope="session")
def engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("db") / "bookkeeping_test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})

    # invoice_items cascade relies on SQLite enforcing foreign keys
    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def fresh_schema(engine):
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_customer(db_session):
    def _make(name="Acme Ltd", **fields):
        fields.setdefault("payment_terms_days", 14)
        customer = Customer(name=name, **fields)
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer(
        email="accounts@acme.test",
        vat_number="GB123456789",
        address_line1="1 High Street",
        city="London",
        postcode="SW1A 1AA",
        country="United Kingdom",
    )


@pytest.fixture
def today():
    return date.today()
