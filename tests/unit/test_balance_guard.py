from decimal import Decimal

import pytest

from scanpay.models.payment import WalletSnapshot
from scanpay.services.balance_guard import BalanceGuard
from scanpay.utils.exceptions import WalletFrozenError


def test_frozen_wallet_is_blocked():
    guard = BalanceGuard()
    wallet = WalletSnapshot(balance=Decimal("10000"), is_frozen=True)
    assert guard.check(wallet) is False
    with pytest.raises(WalletFrozenError) as exc_info:
        guard.ensure_allowed(wallet)
    assert exc_info.value.notice == "Your wallet is frozen. You cannot make payments at this time."


def test_low_balance_is_left_to_backend():
    guard = BalanceGuard()
    assert guard.check(WalletSnapshot(balance=Decimal("0"))) is True
    guard.ensure_allowed(WalletSnapshot(balance=Decimal("0")))


def test_missing_snapshot_does_not_block():
    assert BalanceGuard().check(None) is True
