"""
Blockchain backends for the wallet service.
"""

from hotwallet.backends.base import BlockchainBackend

__all__ = ["BlockchainBackend"]
