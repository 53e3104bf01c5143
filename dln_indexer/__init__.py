"""
DLN order indexer: cross-chain order history from Solana program logs.

Pages backward through the transaction history of the DLN source and
destination programs, rebuilds "order created" / "order fulfilled" records
from program events and inner instructions, and stores them in staged
tables for later aggregation.
"""

__version__ = "0.1.0"
