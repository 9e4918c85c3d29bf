"""Premium entitlement tracking.

``EntitlementManager`` turns a stream of verified purchase transactions into
one boolean, ``full_version_unlocked``, kept in the settings store. The
transaction source is anything satisfying ``TransactionFeed``; the manager
never talks to a payment provider directly.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from issuedeck.settings import SettingsStore

logger = logging.getLogger(__name__)

PREMIUM_UNLOCK_PRODUCT_ID = "issuedeck.premium_unlock"
UNLOCK_SETTING_KEY = "full_version_unlocked"


class PurchaseVerificationError(Exception):
    """The feed returned a purchase whose signature could not be verified."""


class Transaction(Protocol):
    id: str
    product_id: str
    revocation_date: datetime | None

    async def finish(self) -> None: ...


@dataclass(frozen=True)
class VerificationResult:
    """One feed item: a transaction plus the verification error, if any."""

    transaction: Transaction
    error: str | None = None

    @property
    def verified(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Product:
    id: str
    display_name: str
    display_price: str


class TransactionFeed(Protocol):
    def current_entitlements(self) -> AsyncIterator[VerificationResult]: ...

    def updates(self) -> AsyncIterator[VerificationResult]: ...

    async def products(self, ids: Sequence[str]) -> list[Product]: ...

    async def purchase(self, product: Product) -> VerificationResult | None:
        """The purchase outcome, or None when the user cancelled."""
        ...


Listener = Callable[[bool], Any]


class EntitlementManager:
    """Tracks whether the premium unlock has been purchased."""

    def __init__(self, settings: SettingsStore, feed: TransactionFeed | None = None) -> None:
        self.settings = settings
        self.feed = feed
        self.products: list[Product] = []
        self._finished: set[str] = set()
        self._listeners: list[Listener] = []

    def is_unlocked(self) -> bool:
        return self.settings.get_bool(UNLOCK_SETTING_KEY)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def set_unlocked(self, unlocked: bool) -> None:
        """Write the flag and tell listeners when it actually changes."""
        if self.is_unlocked() == unlocked:
            return
        self.settings.set_bool(UNLOCK_SETTING_KEY, unlocked)
        logger.info("Premium unlock %s", "granted" if unlocked else "revoked", extra={"op": "entitlement"})
        for listener in list(self._listeners):
            try:
                listener(unlocked)
            except Exception:
                logger.exception("Entitlement listener %r failed", listener)

    async def apply_verified_purchase(self, transaction: Transaction) -> None:
        """Apply one verified transaction; finishes each transaction id at most once."""
        if transaction.product_id != PREMIUM_UNLOCK_PRODUCT_ID:
            return
        # Refunds and family-sharing revocations arrive with a revocation date.
        self.set_unlocked(transaction.revocation_date is None)
        if transaction.id in self._finished:
            return
        self._finished.add(transaction.id)
        await transaction.finish()

    async def _apply(self, result: VerificationResult) -> None:
        if not result.verified:
            logger.warning(
                "Skipping unverified transaction %s",
                result.transaction.id,
                extra={"op": "entitlement", "error": result.error},
            )
            return
        await self.apply_verified_purchase(result.transaction)

    async def monitor_entitlements(self) -> None:
        """Replay current entitlements, then follow the update stream until cancelled."""
        feed = self._require_feed()
        async for result in feed.current_entitlements():
            await self._apply(result)
        async for result in feed.updates():
            await self._apply(result)

    async def purchase(self, product: Product) -> bool:
        """Buy *product*. Returns False if cancelled; raises on failed verification."""
        result = await self._require_feed().purchase(product)
        if result is None:
            return False
        if not result.verified:
            msg = f"Purchase of {product.id} failed verification: {result.error}"
            raise PurchaseVerificationError(msg)
        await self.apply_verified_purchase(result.transaction)
        return True

    async def load_products(self) -> list[Product]:
        """Fetch the product catalog once; later calls return the cached list."""
        if not self.products:
            self.products = await self._require_feed().products([PREMIUM_UNLOCK_PRODUCT_ID])
        return self.products

    def _require_feed(self) -> TransactionFeed:
        if self.feed is None:
            msg = "No transaction feed configured"
            raise RuntimeError(msg)
        return self.feed
