"""Change ledger and rollback."""

from hostcare.ledger.ledger import ChangeLedger, load_entries
from hostcare.ledger.undo import UNDO_HANDLERS, undo_all

__all__ = (
    "UNDO_HANDLERS",
    "ChangeLedger",
    "load_entries",
    "undo_all",
)
