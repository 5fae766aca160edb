"""Solana chain adapter."""
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
import asyncio
import httpx
import base58
from cashback.config import settings
from cashback.models.transaction import Chain, TransactionRecord
from cashback.services.chain_adapters.base import ChainAdapter, RawTransaction
from cashback.utils.errors import ChainAdapterError
from cashback.utils.logger import get_logger

LAMPORTS_PER_SOL = 1_000_000_000

logger = get_logger(__name__)


class SolanaAdapter(ChainAdapter):
    """Adapter for Solana over JSON-RPC (Helius or a public node)."""

    chain = Chain.SOL

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        batch_size: Optional[int] = None,
    ):
        super().__init__(client=client)
        self.rpc_url = rpc_url or settings.helius_rpc_url
        self.batch_size = batch_size or settings.solana_rpc_batch_size

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make RPC call to Solana."""
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ChainAdapterError(
                f"HTTP error calling Solana RPC {method}: {e.response.status_code}",
                status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ChainAdapterError(f"HTTP error calling Solana RPC {method}: {e}") from e
        except ValueError as e:
            raise ChainAdapterError(f"Malformed Solana RPC response for {method}") from e

        if "error" in data:
            raise ChainAdapterError(f"RPC error: {data['error'].get('message', 'Unknown error')}")

        return data.get("result")

    async def _fetch_balance(self, address: str) -> float:
        result = await self._rpc_call("getBalance", [address])
        lamports = (result or {}).get("value") or 0
        return lamports / LAMPORTS_PER_SOL

    async def _fetch_transactions(self, address: str, limit: int) -> List[RawTransaction]:
        """
        getSignaturesForAddress, then getTransaction for each signature.

        Details are fetched in batches of batch_size in parallel; a failed
        detail fetch drops that transaction only.
        """
        signatures = await self._rpc_call(
            "getSignaturesForAddress",
            [address, {"limit": min(limit, 1000)}]
        )
        if not signatures:
            return []

        transactions = []
        for i in range(0, len(signatures), self.batch_size):
            batch = signatures[i:i + self.batch_size]
            tasks = [
                self._rpc_call("getTransaction", [
                    sig["signature"],
                    {
                        "encoding": "jsonParsed",
                        "maxSupportedTransactionVersion": 0
                    }
                ])
                for sig in batch
            ]
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for sig, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.warning(
                        "solana_transaction_fetch_failed",
                        signature=sig.get("signature"),
                        error=str(result),
                    )
                    continue
                if result:
                    transactions.append(RawTransaction({"signature": sig, "transaction": result}))

        return transactions

    def parse_transaction(self, raw_tx: RawTransaction, address: str) -> Optional[TransactionRecord]:
        """
        Amount is the wallet's net lamport outflow (pre minus post balance,
        absolute value); the recipient is the first instruction's parsed
        destination.
        """
        sig: Dict[str, Any] = raw_tx.data.get("signature") or {}
        tx: Dict[str, Any] = raw_tx.data.get("transaction") or {}

        message = tx.get("transaction", {}).get("message", {})
        account_keys = [
            k if isinstance(k, str) else (k or {}).get("pubkey", "")
            for k in message.get("accountKeys", [])
        ]

        amount = 0.0
        meta = tx.get("meta") or {}
        pre = meta.get("preBalances") or []
        post = meta.get("postBalances") or []
        idx = next(
            (i for i, key in enumerate(account_keys) if key and key.lower() == address.lower()),
            -1
        )
        if 0 <= idx < len(pre) and idx < len(post):
            amount = abs(pre[idx] - post[idx]) / LAMPORTS_PER_SOL

        instructions = message.get("instructions") or []
        to_address = ""
        if instructions:
            parsed = instructions[0].get("parsed")
            if isinstance(parsed, dict):
                to_address = parsed.get("info", {}).get("destination", "") or ""

        block_time = sig.get("blockTime") or tx.get("blockTime")
        timestamp = (
            datetime.fromtimestamp(block_time, tz=timezone.utc)
            if block_time else datetime.now(timezone.utc)
        )

        return TransactionRecord(
            hash=sig.get("signature") or (tx.get("transaction", {}).get("signatures") or [""])[0],
            from_address=address,
            to_address=to_address,
            amount=amount,
            timestamp=timestamp,
            chain=Chain.SOL,
        )

    def validate_address(self, address: str) -> bool:
        """
        Validate Solana address format.

        Solana addresses are base58 encoded, typically 32-44 characters.
        """
        if not address or len(address) < 32 or len(address) > 44:
            return False

        try:
            return len(base58.b58decode(address)) == 32
        except ValueError:
            return False
