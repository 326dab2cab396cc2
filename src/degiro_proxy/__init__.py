"""DeGiro session, account and portfolio proxy."""

__version__ = "0.1.0"
