from slotbook.domain.slots import CreditPack, Slot, SlotCatalog, credit_packs_from_settings
from slotbook.domain.value_objects import Month, MonthRange

__all__ = [
    "CreditPack",
    "Month",
    "MonthRange",
    "Slot",
    "SlotCatalog",
    "credit_packs_from_settings",
]
