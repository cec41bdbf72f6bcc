"""Asset contracts: non-fungible custody registry and fungible payment token"""
from gavel.core.assets.nft import AssetRegistry
from gavel.core.assets.token import FungibleToken

__all__ = [
    "AssetRegistry",
    "FungibleToken",
]
