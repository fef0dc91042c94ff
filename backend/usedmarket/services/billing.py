"""
Fee and payout helpers over the host ledger.

WHAT: Debit fees and credit payouts, turning refusals into FundsError
WHY: Every charge must succeed before any state is committed
HOW: Call the ledger first; callers mutate records only after it returns
"""

from ..host.interfaces import Ledger
from ..utils.exceptions import FundsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def charge(ledger: Ledger, owner_id: str, amount: float, purpose: str) -> float:
    """
    Debit ``amount`` from ``owner_id``.

    Raises:
        FundsError: If the ledger refuses the debit
    """
    if amount <= 0:
        return 0.0
    if not ledger.debit(owner_id, amount):
        logger.warning(f"Debit of ${amount:,.2f} for {purpose} refused for {owner_id}")
        raise FundsError(owner_id, amount, purpose)
    logger.debug(f"Charged {owner_id} ${amount:,.2f} for {purpose}")
    return amount


def pay_out(ledger: Ledger, owner_id: str, amount: float, purpose: str) -> float:
    """
    Credit ``amount`` to ``owner_id``.

    Raises:
        FundsError: If the ledger refuses the credit
    """
    if not ledger.credit(owner_id, amount):
        logger.warning(f"Credit of ${amount:,.2f} for {purpose} refused for {owner_id}")
        raise FundsError(owner_id, amount, purpose)
    logger.debug(f"Paid {owner_id} ${amount:,.2f} for {purpose}")
    return amount
