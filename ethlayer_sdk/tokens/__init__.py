"""
Token standard adapters.
"""
from .erc20 import ERC20Adapter
from .erc721 import ERC721Adapter
from .erc1155 import ERC1155Adapter
from .metadata import MetadataFetcher

__all__ = ["ERC20Adapter", "ERC721Adapter", "ERC1155Adapter", "MetadataFetcher"]
