"""
Pytest configuration and fixtures per Electro Estimator.

I test di service e API usano un database SQLite su file temporaneo
(aiosqlite); i test di pricing e macchina a stati usano oggetti mock
senza database.
"""

import os
import tempfile
import uuid
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

# Le settings sono lette all'import di estimator: l'ambiente va
# configurato prima di qualunque import del package
_TEST_DIR = tempfile.mkdtemp(prefix="estimator-tests-")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'app.db')}",
)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from estimator.core.database import get_db
from estimator.core.permissions import Actor
from estimator.core.security import create_access_token
from estimator.main import app
from estimator.models import Base
from estimator.schemas.estimate import EstimateCreate, LineItemCreate


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    return db


# ============================================================
# Fixtures per Database SQLite
# ============================================================


@pytest.fixture
def session_factory(tmp_path):
    """Database SQLite nuovo per ogni test, con lo schema già creato."""
    db_file = tmp_path / "estimator.db"

    sync_engine = create_engine(f"sqlite:///{db_file}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessione async sul database di test."""
    async with session_factory() as session:
        yield session


# ============================================================
# Fixtures per Operatori
# ============================================================


@pytest.fixture
def manager():
    """Operatore con ruolo manager (tutti i permessi)."""
    return Actor(id=uuid.uuid4(), roles=frozenset({"manager"}))


@pytest.fixture
def other_manager():
    """Secondo operatore manager, diverso dal creatore dei preventivi."""
    return Actor(id=uuid.uuid4(), roles=frozenset({"admin"}))


@pytest.fixture
def technician():
    """Operatore tecnico: nessun permesso sui preventivi."""
    return Actor(id=uuid.uuid4(), roles=frozenset({"technician"}))


def auth_headers(actor: Actor) -> dict[str, str]:
    """Header Authorization con un token valido per l'operatore."""
    token = create_access_token(str(actor.id), sorted(actor.roles))
    return {"Authorization": f"Bearer {token}"}


# ============================================================
# Fixtures per Dati di Input
# ============================================================


def make_estimate_data(**overrides) -> EstimateCreate:
    """
    Preventivo con due voci da 1000 (subtotale 2000).

    Le condizioni commerciali si possono sovrascrivere con i kwargs.
    """
    values = {
        "client_name": "Mario Rossi",
        "client_phone": "+39 333 1234567",
        "title": "Rifacimento impianto appartamento",
        "line_items": [
            LineItemCreate(description="Quadro elettrico", quantity=Decimal("1"), unit_price=Decimal("1000")),
            LineItemCreate(
                item_type="labor",
                description="Posa cavi",
                quantity=Decimal("0"),
                labor_hours=Decimal("20"),
                labor_rate=Decimal("50"),
            ),
        ],
    }
    values.update(overrides)
    return EstimateCreate(**values)


@pytest.fixture
def estimate_data():
    """Dati base per la creazione di un preventivo."""
    return make_estimate_data()


# ============================================================
# Fixtures per Client HTTP
# ============================================================


@pytest.fixture
def client(session_factory):
    """TestClient con get_db collegato al database del test."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class MockEstimate:
    """Mock del modello Estimate per i test della macchina a stati."""

    def __init__(self, **kwargs):
        self.id = kwargs.get("id", uuid.uuid4())
        self.number = kwargs.get("number", "PR-2025-0001")
        self.status = kwargs.get("status", "draft")
        self.deposit_pct = kwargs.get("deposit_pct", Decimal("0"))
        self.prepayment_confirmed = kwargs.get("prepayment_confirmed", False)
        self.payment_method = kwargs.get("payment_method", "bank_transfer")
        self.payment_recipient = kwargs.get("payment_recipient", "Mario Rossi")


@pytest.fixture
def mock_estimate():
    """Crea un mock di Estimate con metodo e destinatario di pagamento."""
    return MockEstimate()


@pytest.fixture
def estimate_factory():
    """Factory per EstimateCreate con condizioni commerciali personalizzate."""
    return make_estimate_data


@pytest.fixture
def headers_for():
    """Factory per gli header di autenticazione di un operatore."""
    return auth_headers
