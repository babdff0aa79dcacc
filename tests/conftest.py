"""Pytest configuration and shared fixtures for the scan-to-pay tests.

- In-memory fakes for the reference store, wallet store and settlement
  backend (see tests/helpers.py)
- Isolated audit database and pipeline event log per test
"""

from decimal import Decimal
from pathlib import Path

import pytest

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from scanpay.pipeline.scan_pipeline import ScanPipeline
from scanpay.repositories.audit_repository import AuditRepository
from scanpay.services.audit_logger import AuditLogger
from scanpay.services.config_service import ScannerSettings
from tests.helpers import (
    DRIVER_QR,
    FakeReferenceStore,
    FakeSettlementBackend,
    FakeWalletStore,
    driver_row,
)


@pytest.fixture(autouse=True)
def isolated_event_log(tmp_path, monkeypatch):
    """Keep pipeline event logs out of the project tree."""
    log_file = tmp_path / "logs" / "pipeline.log"
    monkeypatch.setattr("scanpay.utils.logging_utils.LOG_FILE", log_file)
    return log_file


@pytest.fixture
def audit_repository(tmp_path) -> AuditRepository:
    return AuditRepository(db_path=str(tmp_path / "audit.db"))


@pytest.fixture
def audit_logger(audit_repository) -> AuditLogger:
    return AuditLogger(audit_repository)


@pytest.fixture
def reference_store() -> FakeReferenceStore:
    return FakeReferenceStore({DRIVER_QR: driver_row()})


@pytest.fixture
def wallet_store() -> FakeWalletStore:
    return FakeWalletStore()


@pytest.fixture
def settlement_backend() -> FakeSettlementBackend:
    return FakeSettlementBackend()


@pytest.fixture
def settings() -> ScannerSettings:
    return ScannerSettings(default_ticket_fee=Decimal("500"))


@pytest.fixture
def pipeline(reference_store, wallet_store, settlement_backend, settings, audit_logger) -> ScanPipeline:
    return ScanPipeline(
        "payer-1",
        reference_store=reference_store,
        wallet_store=wallet_store,
        settlement_backend=settlement_backend,
        settings=settings,
        audit_logger=audit_logger,
    )
