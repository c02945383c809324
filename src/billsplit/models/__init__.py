from .bill import (
    UNASSIGNED_ID,
    UNASSIGNED_NAME,
    AdditionalCharge,
    Bill,
    ChargeSource,
    ChargeType,
    LineItem,
    Meta,
    Participant,
    SplitAllocation,
    SplitLogic,
    SplitMethod,
)
from .extraction import RawBillPayload, ReceiptExtractionDeps
from .totals import ItemContribution, Totals, UserTotal

__all__ = [
    "UNASSIGNED_ID",
    "UNASSIGNED_NAME",
    "AdditionalCharge",
    "Bill",
    "ChargeSource",
    "ChargeType",
    "ItemContribution",
    "LineItem",
    "Meta",
    "Participant",
    "RawBillPayload",
    "ReceiptExtractionDeps",
    "SplitAllocation",
    "SplitLogic",
    "SplitMethod",
    "Totals",
    "UserTotal",
]
