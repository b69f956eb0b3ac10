"""pdascope: Percolator PDA derivation and ledger topology inspection."""

__version__ = "0.1.0"
