"""
Bounded receipt polling.

Waits for a transaction receipt with a fixed interval and attempt budget.
The sleep function is injectable so the bound can be exercised in tests
without real delays.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from storefront.payment.errors import ConfirmationTimeoutError
from storefront.payment.models import TransactionReceipt

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0  # seconds
DEFAULT_MAX_ATTEMPTS = 60  # ~3 minutes at the default interval

ReceiptFetcher = Callable[[str], Awaitable[Optional[TransactionReceipt]]]
Sleeper = Callable[[float], Awaitable[None]]


class PollingStopped(Exception):
    """Polling was stopped locally before a receipt arrived."""

    def __init__(self, tx_hash: str, attempts: int):
        super().__init__(f"Stopped waiting for {tx_hash} after {attempts} attempts")
        self.tx_hash = tx_hash
        self.attempts = attempts


async def wait_for_receipt(
    fetch_receipt: ReceiptFetcher,
    tx_hash: str,
    interval: float = DEFAULT_POLL_INTERVAL,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    sleep: Sleeper = asyncio.sleep,
    should_continue: Optional[Callable[[], bool]] = None,
) -> TransactionReceipt:
    """
    Poll for a receipt until one is returned or the attempt budget runs out.

    A missing receipt means the transaction is still pending. An error raised
    by the wallet on a single poll counts as a missed attempt.

    Args:
        fetch_receipt: Async callable returning a receipt or None
        tx_hash: Transaction to wait for
        interval: Seconds to wait after each missed attempt
        max_attempts: Number of fetches before giving up
        sleep: Async sleep function
        should_continue: Checked before each attempt; False stops polling

    Returns:
        The first receipt returned

    Raises:
        ConfirmationTimeoutError: If no receipt arrived within max_attempts
        PollingStopped: If should_continue returned False
    """
    logger.info(f"Waiting for transaction receipt: {tx_hash}")

    for attempt in range(1, max_attempts + 1):
        if should_continue is not None and not should_continue():
            raise PollingStopped(tx_hash, attempt - 1)

        try:
            receipt = await fetch_receipt(tx_hash)
        except Exception as e:
            logger.warning(f"Error checking receipt for {tx_hash}: {e}")
            receipt = None

        if receipt is not None:
            logger.info(f"Transaction receipt received for {tx_hash} (status={receipt.status})")
            return receipt

        logger.debug(f"Attempt {attempt}/{max_attempts}: transaction not yet mined")
        await sleep(interval)

    raise ConfirmationTimeoutError(
        f"Transaction confirmation timeout after {max_attempts} attempts. "
        f"The transaction may still be pending; keep the transaction hash {tx_hash} for follow-up.",
        tx_hash=tx_hash,
    )
