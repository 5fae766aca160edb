"""Registry of the program's tax wallets."""
from typing import Iterable, List, Optional
from cashback.config import Settings, settings as default_settings
from cashback.models.transaction import Chain, TransactionRecord
from cashback.models.wallet import TaxWalletConfig


class TaxWalletRegistry:
    """
    Immutable list of tax wallets.

    Only active entries with a non-empty address count as tax wallets.
    Addresses compare case-insensitively.
    """

    def __init__(self, wallets: Iterable[TaxWalletConfig]):
        self._wallets = tuple(wallets)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TaxWalletRegistry":
        s = settings or default_settings
        return cls([
            TaxWalletConfig(address=s.tax_wallet_sol, chain=Chain.SOL, is_active=s.tax_wallet_sol_active),
            TaxWalletConfig(address=s.tax_wallet_eth, chain=Chain.ETH, is_active=s.tax_wallet_eth_active),
            TaxWalletConfig(address=s.tax_wallet_bnb, chain=Chain.BNB, is_active=s.tax_wallet_bnb_active),
        ])

    @property
    def all_wallets(self) -> List[TaxWalletConfig]:
        return list(self._wallets)

    def active_wallets(self) -> List[TaxWalletConfig]:
        return [w for w in self._wallets if w.is_active and w.address]

    def address_for(self, chain: Chain) -> str:
        """Address of the active tax wallet on a chain, or an empty string."""
        for wallet in self.active_wallets():
            if wallet.chain == chain:
                return wallet.address
        return ""

    def is_tax_wallet(self, address: str, chain: Chain) -> bool:
        if not address:
            return False
        target = address.lower()
        return any(
            w.chain == chain and w.address.lower() == target
            for w in self.active_wallets()
        )

    def flag(self, records: Iterable[TransactionRecord]) -> List[TransactionRecord]:
        """Copies of records with is_tax_wallet recomputed against this registry."""
        return [
            r.model_copy(update={"is_tax_wallet": self.is_tax_wallet(r.to_address, r.chain)})
            for r in records
        ]
