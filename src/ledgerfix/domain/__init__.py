"""Domain layer for ledgerfix."""

from ledgerfix.domain.alignment import BalanceAlignmentService
from ledgerfix.domain.corrective import CorrectivePoster
from ledgerfix.domain.ledger import LedgerService
from ledgerfix.domain.recalculate import BalanceRecalculator
from ledgerfix.domain.renumber import RenumberService
from ledgerfix.domain.reset import ResetService

__all__ = [
    "BalanceAlignmentService",
    "CorrectivePoster",
    "LedgerService",
    "BalanceRecalculator",
    "RenumberService",
    "ResetService",
]
