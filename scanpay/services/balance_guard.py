"""Client-side wallet gate.

Only the frozen flag is checked here. Sufficiency of the balance is left to
the settlement backend: the balance may change between this check and the
settlement call, so the backend's answer is the authoritative one.
"""

from __future__ import annotations

import logging
from typing import Optional

from scanpay.models.payment import WalletSnapshot
from scanpay.utils.exceptions import WalletFrozenError

logger = logging.getLogger(__name__)


class BalanceGuard:
    def check(self, wallet: Optional[WalletSnapshot]) -> bool:
        """Return False when the wallet is frozen.

        A missing snapshot (wallet not loaded yet) does not block.
        """
        if wallet is None:
            return True
        return not wallet.is_frozen

    def ensure_allowed(self, wallet: Optional[WalletSnapshot]) -> None:
        if not self.check(wallet):
            logger.info("Submission blocked: wallet is frozen")
            raise WalletFrozenError("Wallet is frozen")
