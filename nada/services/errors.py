"""Shared exception hierarchy for wallet services.

Policy denials (rate limit, daily limit, amount cap, balance) are returned
as check results, never raised.
"""

# ── Ledger ────────────────────────────────────────────────────────────────────


class LedgerError(Exception):
    """Base exception for ledger and profile store errors."""


class LedgerUnavailableError(LedgerError):
    """The backing store could not be queried or written."""


# ── Exchange ──────────────────────────────────────────────────────────────────


class ExchangeError(Exception):
    """Base exception for exchange request errors."""


class InvalidExchangeError(ExchangeError):
    """The requested amount is not a valid exchange quantity."""


class AccountNotFoundError(ExchangeError):
    """No wallet account exists for the user."""
