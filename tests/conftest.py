"""Test fixtures and utilities."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from receipt_ledger.analysis import analyze_receipt
from receipt_ledger.config import LifecycleConfig
from receipt_ledger.lifecycle import LifecycleManager
from receipt_ledger.publisher import BasePublisher, PublishError
from receipt_ledger.state_store import TransactionRecord, TransactionStore

# Sample OCR text for testing
SAMPLE_OCR_MEAL_VOUCHER = """
ALELO
COMPROVANTE DE VENDA
ALELO REFEICAO
ALELO DOC 645091
REFEICAO R 23 33
"""

SAMPLE_OCR_CREDIT = """
REDE
COMPROVANTE CREDITO
MASTERCARD CREDIT
************1234
VALOR: R$ 150,00
PARCELADO EM 3 VEZES
3X DE R$ 50,00
"""

SAMPLE_OCR_DEBIT = """
STONE
CARTAO DEBITO
VISA DEBIT
SENHA DIGITADA
FINAL 9876
TOTAL R$ 42,50
"""

BASE_TIME = datetime(2024, 11, 18, 12, 0, tzinfo=timezone.utc)


class RecordingPublisher(BasePublisher):
    """Publisher that remembers every record it receives."""

    def __init__(self, fail: bool = False):
        self.published: list[TransactionRecord] = []
        self.fail = fail

    @property
    def name(self) -> str:
        return "recording"

    def publish(self, record: TransactionRecord) -> str | None:
        self.published.append(record)
        if self.fail:
            raise PublishError("webhook unavailable")
        return f"msg-{len(self.published)}"


class FakeClock:
    """Settable clock for TTL tests."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def sample_meal_receipt() -> str:
    """Sample meal voucher receipt OCR text."""
    return SAMPLE_OCR_MEAL_VOUCHER


@pytest.fixture
def sample_credit_receipt() -> str:
    """Sample installment credit receipt OCR text."""
    return SAMPLE_OCR_CREDIT


@pytest.fixture
def sample_debit_receipt() -> str:
    """Sample debit receipt OCR text."""
    return SAMPLE_OCR_DEBIT


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Temporary snapshot directory for testing."""
    return tmp_path / "data"


@pytest.fixture
def store(data_dir) -> TransactionStore:
    """Fresh transaction store."""
    return TransactionStore(data_dir)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def failing_publisher() -> RecordingPublisher:
    """Publisher whose every call fails."""
    return RecordingPublisher(fail=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(store, publisher, clock) -> LifecycleManager:
    """Lifecycle manager over a fresh store with a recording publisher."""
    return LifecycleManager(store, publisher, LifecycleConfig(), clock=clock)


@pytest.fixture
def create_pending(manager):
    """Create a pending transaction from OCR text for an owner."""

    def _create(owner_id: str = "5511999990000", text: str = SAMPLE_OCR_CREDIT):
        analysis = analyze_receipt(text)
        return manager.create(
            owner_id=owner_id,
            channel_id="group-1",
            classification=analysis.classification,
            fields=analysis.fields,
            source_text=text,
            asset_ref="images/receipt.jpg",
        )

    return _create
