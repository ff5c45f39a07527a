"""
Tagged Ledger

A small in-memory ledger of denomination-tagged amounts held in vaults,
with conservation-preserving split/merge, atomic transfers and
all-or-nothing operation batches.
"""

__version__ = "1.0.0"
