"""Gift gateway: balance gate, optimistic local debit, gift emission.

The local debit is advisory. The ledger debit runs in the background after the
gift has been emitted; its authoritative balance (if any) overwrites the
snapshot, and a failed debit is only logged for later reconciliation.
"""

from __future__ import annotations

import asyncio

import httpx
from loguru import logger

from livecast.domain.live.channel.channel_session import ChannelSessionManager
from livecast.domain.live.errors import InsufficientBalanceError, TransportDropped
from livecast.domain.live.merger.event_merger import EventMerger
from livecast.schemas.events import EventSender, GiftEvent
from livecast.schemas.view_model import RechargePrompt
from livecast.services.integrations.wallet_ledger import WalletLedgerClient

from .gift_catalog import Gift, GiftCatalog
from .wallet_snapshot import WalletSnapshot


def can_afford(balance: int, price: int) -> bool:
    return balance >= price


class GiftGateway:
    def __init__(
        self,
        *,
        catalog: GiftCatalog,
        wallet: WalletSnapshot,
        channel: ChannelSessionManager,
        viewer_id: str,
        sender: EventSender,
        ledger: WalletLedgerClient | None = None,
    ):
        self._catalog = catalog
        self._wallet = wallet
        self._channel = channel
        self._viewer_id = viewer_id
        self._sender = sender
        self._ledger = ledger
        self._settlements: set[asyncio.Task] = set()

    @property
    def wallet(self) -> WalletSnapshot:
        return self._wallet

    def recharge_prompt(self, gift: Gift) -> RechargePrompt:
        balance = self._wallet.balance
        return RechargePrompt(
            message=f"Not enough coins to send {gift.name}. Recharge to continue.",
            gift_id=gift.id,
            price=gift.price,
            balance=balance,
            packages=self._catalog.packages_for(gift.price - balance),
        )

    async def send(self, gift_id: str, merger: EventMerger) -> GiftEvent | None:
        """Send `gift_id` on the connected channel.

        Returns the emitted event, or None when there is no connected channel or
        the publish failed. Nothing is debited, shown or settled in that case.

        Raises:
            AppError: E_GIFT_NOT_FOUND for an unknown gift id
            InsufficientBalanceError: balance below the gift price; nothing emitted
        """
        gift = self._catalog.get(gift_id)

        if not can_afford(self._wallet.balance, gift.price):
            raise InsufficientBalanceError(self.recharge_prompt(gift))

        if not self._channel.is_connected:
            dropped = TransportDropped(f"Gift {gift.id} not sent: no connected channel session")
            logger.warning(
                "{} {} msg={} caller={}",
                dropped.errcode,
                dropped.erresid,
                dropped.errmesg,
                dropped.caller_info,
            )
            return None

        self._wallet.debit(gift.price)
        event = GiftEvent(
            sender=self._sender,
            gift_id=gift.id,
            name=gift.name,
            emoji=gift.emoji,
            value=gift.price,
            origin=self._channel.client_id,
        )
        if not await self._channel.send(event):
            self._wallet.credit(gift.price)
            logger.warning("Gift {} not published, local debit restored", gift.id)
            return None

        merger.apply(event, local=True)
        logger.info(
            "Gift {} sent to broadcast_id={} balance={}",
            gift.id,
            merger.broadcast.id,
            self._wallet.balance,
        )

        if self._ledger is not None:
            task = asyncio.create_task(self._settle(gift, event.event_id))
            self._settlements.add(task)
            task.add_done_callback(self._settlements.discard)

        return event

    async def drain(self) -> None:
        """Wait for outstanding ledger debits."""
        if self._settlements:
            await asyncio.gather(*self._settlements, return_exceptions=True)

    async def _settle(self, gift: Gift, reference: str) -> None:
        try:
            balance = await self._ledger.debit(self._viewer_id, gift.price, reference)
        except httpx.HTTPError as exc:
            logger.warning(
                "Ledger debit failed for gift {} reference={}, awaiting reconciliation: {}",
                gift.id,
                reference,
                exc,
            )
            return

        if balance is not None:
            self._wallet.refresh(balance)
