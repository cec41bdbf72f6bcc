"""Core engine: ledger substrate, assets, oracle, auction, factory, bridge."""
