"""Authoritative wallet ledger client.

The ledger owns the real coin balance. The engine only keeps an advisory
snapshot and asks the ledger to debit after a gift has been sent.
"""

import httpx
from loguru import logger

from livecast.app_config import get_app_environ_config

from .live_api_client import unwrap_results

DEMO_BALANCE = 1000


class WalletLedgerClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        demo_mode: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._demo_mode = get_app_environ_config().DEMO_MODE if demo_mode is None else demo_mode
        self._transport = transport

    def _build_headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key} if self.api_key else {}

    async def get_balance(self, user_id: str) -> int:
        if self._demo_mode:
            logger.info("WalletLedgerClient DEMO_MODE=true: returning stubbed balance")
            return DEMO_BALANCE

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/api/v1/wallet/balance",
                params={"user_id": user_id},
                headers=self._build_headers(),
                timeout=30,
            )
            response.raise_for_status()
            results = unwrap_results(response.json())
        return int(results["balance"])

    async def debit(self, user_id: str, amount: int, reference: str) -> int | None:
        """Debit `amount` coins. Returns the authoritative balance when the ledger reports one."""
        if self._demo_mode:
            logger.info("WalletLedgerClient DEMO_MODE=true: stubbed debit (no-op)")
            return None

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/api/v1/wallet/debit",
                json={"user_id": user_id, "amount": amount, "reference": reference},
                headers=self._build_headers(),
                timeout=30,
            )
            response.raise_for_status()
            results = unwrap_results(response.json())

        if isinstance(results, dict) and results.get("balance") is not None:
            return int(results["balance"])
        return None


def get_wallet_ledger_client() -> WalletLedgerClient:
    cfg = get_app_environ_config()
    return WalletLedgerClient(cfg.WALLET_API_BASE_URL, cfg.LIVE_API_KEY)
