"""Chain adapter registry."""
from typing import Callable, Dict, List, Optional
import httpx
from cashback.config import Settings, settings as default_settings
from cashback.models.transaction import Chain
from cashback.services.chain_adapters.base import ChainAdapter
from cashback.services.chain_adapters.moralis import MoralisAdapter
from cashback.services.chain_adapters.solana import SolanaAdapter

AdapterFactory = Callable[[Optional[httpx.AsyncClient], Settings], ChainAdapter]

# Registry of adapter factories per chain
_chain_adapters: Dict[Chain, AdapterFactory] = {}


def register_chain_adapter(chain: Chain, factory: AdapterFactory):
    """Register an adapter factory for a chain."""
    _chain_adapters[chain] = factory


def get_chain_adapter(
    chain: Chain,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> ChainAdapter:
    """
    Build the adapter for a chain.

    Raises:
        ValueError: If no adapter is registered for the chain
    """
    if chain not in _chain_adapters:
        raise ValueError(f"No chain adapter registered for {chain}")
    return _chain_adapters[chain](client, settings or default_settings)


def list_supported_chains() -> List[Chain]:
    return list(_chain_adapters.keys())


def _solana(client: Optional[httpx.AsyncClient], s: Settings) -> ChainAdapter:
    return SolanaAdapter(rpc_url=s.helius_rpc_url, client=client, batch_size=s.solana_rpc_batch_size)


def _moralis(chain: Chain) -> AdapterFactory:
    def build(client: Optional[httpx.AsyncClient], s: Settings) -> ChainAdapter:
        return MoralisAdapter(chain, api_key=s.moralis_api_key or "", base_url=s.moralis_base_url, client=client)
    return build


register_chain_adapter(Chain.SOL, _solana)
register_chain_adapter(Chain.ETH, _moralis(Chain.ETH))
register_chain_adapter(Chain.BNB, _moralis(Chain.BNB))
