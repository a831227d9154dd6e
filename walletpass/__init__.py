"""Apple Wallet pass bundle builder."""

__version__ = "1.0.0"
