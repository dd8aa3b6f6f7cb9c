"""Exceptions raised by the dominance protocol and its ledgers.

Only the benign duplicate-key race on a first insert is absorbed internally,
and it is reported as ``UpsertResult.CONFLICT`` rather than an exception.
Everything here propagates to the poller, which decides whether to retry.
"""

from __future__ import annotations


class DominatorError(Exception):
    """Base exception for dominance errors."""

    pass


class LedgerError(DominatorError):
    """A ledger backend operation failed."""

    pass


class SetupFailure(DominatorError):
    """The ledger could not be reached or its unique index created."""

    pass


class ReadFailure(DominatorError):
    """The current leader record could not be read."""

    pass
