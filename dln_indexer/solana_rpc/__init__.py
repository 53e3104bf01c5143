"""
Solana RPC access: async JSON-RPC client and response models.
"""

from dln_indexer.solana_rpc.client import SolanaRpcClient
from dln_indexer.solana_rpc.models import (
    InnerInstruction,
    ParsedInstruction,
    ParsedTransaction,
    SignatureInfo,
)

__all__ = [
    "InnerInstruction",
    "ParsedInstruction",
    "ParsedTransaction",
    "SignatureInfo",
    "SolanaRpcClient",
]
