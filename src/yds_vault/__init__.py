"""Client for a yield-donating ERC-4626 vault on a local development chain."""

__version__ = "0.1.0"
