"""Shared test fixtures for all test modules."""

import contextlib
import json

import httpx
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import premium.models  # noqa: F401
from premium.core import database as db_module
from premium.core.database import Base
from premium.repositories.user_repository import UserRepository
from premium.services.paystack import PaystackClient

PAYSTACK_TEST_SECRET = "sk_test_secret"

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = db_module.get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


class FakePaystack:
    """In-memory stand-in for the Paystack transaction API.

    Used as an ``httpx.MockTransport`` handler. Initialized transactions are
    kept as ``ongoing`` until a test settles them.
    """

    def __init__(self):
        self.transactions: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self.timeout = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.timeout:
            raise httpx.ReadTimeout("timed out", request=request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"status": False, "message": "error"})

        path = request.url.path
        if request.method == "POST" and path == "/transaction/initialize":
            body = json.loads(request.content)
            access_code = f"ac_{len(self.transactions) + 1}"
            self.add(
                body["reference"],
                status="ongoing",
                amount=body["amount"],
                metadata=body.get("metadata"),
            )
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Authorization URL created",
                    "data": {
                        "authorization_url": f"https://checkout.paystack.com/{access_code}",
                        "access_code": access_code,
                        "reference": body["reference"],
                    },
                },
            )

        if request.method == "GET" and path.startswith("/transaction/verify/"):
            reference = path.removeprefix("/transaction/verify/")
            transaction = self.transactions.get(reference)
            if transaction is None:
                return httpx.Response(
                    400, json={"status": False, "message": "Transaction reference not found"}
                )
            return httpx.Response(
                200,
                json={"status": True, "message": "Verification successful", "data": transaction},
            )

        return httpx.Response(404, json={"status": False, "message": "Not found"})

    def add(
        self,
        reference: str,
        status: str = "success",
        amount: int = 250000,
        metadata: dict | None = None,
    ) -> dict:
        transaction = {
            "id": 4099260000 + len(self.transactions),
            "status": status,
            "reference": reference,
            "amount": amount,
            "currency": "NGN",
            "metadata": metadata or "",
            "customer": {"id": 1, "email": "a@b.com", "customer_code": "CUS_test"},
        }
        self.transactions[reference] = transaction
        return transaction

    def settle(self, reference: str, status: str = "success", amount: int | None = None) -> None:
        self.transactions[reference]["status"] = status
        if amount is not None:
            self.transactions[reference]["amount"] = amount


@pytest.fixture
def fake_paystack():
    return FakePaystack()


@pytest.fixture
def paystack_client(fake_paystack):
    """PaystackClient wired to the in-memory fake."""
    client = PaystackClient(
        secret_key=PAYSTACK_TEST_SECRET,
        transport=httpx.MockTransport(fake_paystack),
    )
    yield client
    client.close()


@pytest.fixture
def user(db_session):
    return UserRepository(db_session).create("u1", email="a@b.com", first_name="Ada")
