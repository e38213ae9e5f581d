from .block_booking import BlockBooking
from .ledger import CreditAccount, CreditLedgerEntry
from .monitoring import OperatorAlert
from .payment import CreditPurchase
from .training_session import TrainingSession

__all__ = [
    "BlockBooking",
    "CreditAccount",
    "CreditLedgerEntry",
    "CreditPurchase",
    "OperatorAlert",
    "TrainingSession",
]
