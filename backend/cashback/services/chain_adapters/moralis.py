"""Ethereum and BSC adapter backed by the Moralis Web3 Data API."""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import httpx
from cashback.config import settings
from cashback.models.transaction import Chain, TransactionRecord
from cashback.services.chain_adapters.base import ChainAdapter, RawTransaction
from cashback.utils.errors import ChainAdapterError
from cashback.utils.logger import get_logger

WEI_PER_ETHER = 10 ** 18

# Moralis chain parameter per supported EVM chain
MORALIS_CHAINS = {
    Chain.ETH: "eth",
    Chain.BNB: "bsc",
}

_HEX_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")

logger = get_logger(__name__)


class MoralisAdapter(ChainAdapter):
    """
    Adapter for an EVM chain via Moralis.

    Each lookup tries the v2.2 wallet path first. Only a 404 from it triggers
    one retry on the legacy v2 path; any other failure gives up.
    """

    def __init__(
        self,
        chain: Chain,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if chain not in MORALIS_CHAINS:
            raise ValueError(f"Moralis adapter does not support {chain}")
        super().__init__(client=client)
        self.chain = chain
        self.moralis_chain = MORALIS_CHAINS[chain]
        self.api_key = api_key if api_key is not None else (settings.moralis_api_key or "")
        self.base_url = (base_url or settings.moralis_base_url).rstrip("/")

    async def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.get(url, params=params, headers={"X-API-Key": self.api_key})
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ChainAdapterError(
                f"Moralis {self.moralis_chain} returned {e.response.status_code}",
                status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ChainAdapterError(f"HTTP error calling Moralis: {e}") from e
        except ValueError as e:
            raise ChainAdapterError("Malformed Moralis response") from e

    async def _get_with_legacy_fallback(self, path: str, legacy_path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await self._get(f"{self.base_url}{path}", params)
        except ChainAdapterError as e:
            if not e.is_not_found:
                raise
            logger.info("moralis_legacy_fallback", chain=self.chain.value, path=legacy_path)
            return await self._get(f"{self.base_url}{legacy_path}", params)

    async def _fetch_balance(self, address: str) -> float:
        data = await self._get_with_legacy_fallback(
            f"/v2.2/wallets/{address}/native/balance",
            f"/v2/{address}/balance",
            {"chain": self.moralis_chain},
        )
        wei = data.get("balance") or data.get("result") or "0"
        return int(wei) / WEI_PER_ETHER

    async def _fetch_transactions(self, address: str, limit: int) -> List[RawTransaction]:
        data = await self._get_with_legacy_fallback(
            f"/v2.2/wallets/{address}/transactions",
            f"/v2/{address}/transactions",
            {"chain": self.moralis_chain, "limit": limit},
        )
        items = data.get("result") or data.get("transactions") or []
        return [RawTransaction(item) for item in items[:limit]]

    def parse_transaction(self, raw_tx: RawTransaction, address: str) -> Optional[TransactionRecord]:
        tx = raw_tx.data
        tx_hash = tx.get("hash")
        if not tx_hash:
            return None

        if tx.get("value") not in (None, ""):
            amount = int(tx["value"]) / WEI_PER_ETHER
        else:
            # value_decimal is already in whole ether
            amount = float(tx.get("value_decimal") or 0)

        return TransactionRecord(
            hash=tx_hash,
            from_address=tx.get("from_address") or tx.get("from") or "",
            to_address=tx.get("to_address") or tx.get("to") or "",
            amount=amount,
            timestamp=self._parse_timestamp(tx),
            chain=self.chain,
        )

    @staticmethod
    def _parse_timestamp(tx: Dict[str, Any]) -> datetime:
        block_timestamp = tx.get("block_timestamp")
        if block_timestamp:
            parsed = datetime.fromisoformat(block_timestamp.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        if tx.get("timeStamp"):
            return datetime.fromtimestamp(int(tx["timeStamp"]), tz=timezone.utc)
        return datetime.now(timezone.utc)

    def validate_address(self, address: str) -> bool:
        return bool(address and _HEX_ADDRESS.match(address))
