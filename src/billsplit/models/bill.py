"""Bill data model.

Every model is frozen and every collection is a tuple, so a ``Bill`` is a
stable snapshot: mutations in ``services.bill_store`` build a new ``Bill``
with ``model_copy(update=...)`` instead of touching the old one.
"""
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

UNASSIGNED_ID = "unassigned"
UNASSIGNED_NAME = "Unassigned"


class SplitMethod(str, Enum):
    """How an item's allocations were derived. Descriptive only."""
    EXPLICIT = "explicit"
    EQUAL = "equal"
    RATIO = "ratio"


class ChargeSource(str, Enum):
    RECEIPT = "receipt"
    USER_PROMPT = "user_prompt"
    USER = "user"


class ChargeType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"  # whole-number percent: 20 means 20%


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Meta(_Frozen):
    currency: str = "USD"
    notes: str = ""


class Participant(_Frozen):
    id: str
    name: str


class LineItem(_Frozen):
    """A receipt line. ``total_price`` is what gets split; ``unit_price`` is informational."""
    id: str
    description: str
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)


class SplitAllocation(_Frozen):
    participant_id: str
    weight: float = Field(gt=0)


class SplitLogic(_Frozen):
    item_id: str
    method: SplitMethod = SplitMethod.RATIO
    allocations: Tuple[SplitAllocation, ...] = ()

    def weight_for(self, participant_id: str) -> float:
        for allocation in self.allocations:
            if allocation.participant_id == participant_id:
                return allocation.weight
        return 0.0


class AdditionalCharge(_Frozen):
    """Bill-level surcharge (tax, tip, service fee...) split in proportion to base cost."""
    id: str
    label: str
    source: ChargeSource = ChargeSource.RECEIPT
    type: ChargeType = ChargeType.FIXED
    value: float = Field(default=0.0, ge=0)


class Bill(_Frozen):
    meta: Meta = Meta()
    participants: Tuple[Participant, ...] = ()
    line_items: Tuple[LineItem, ...] = ()
    split_logic: Tuple[SplitLogic, ...] = ()
    additional_charges: Tuple[AdditionalCharge, ...] = ()

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        return next((p for p in self.participants if p.id == participant_id), None)

    def get_line_item(self, item_id: str) -> Optional[LineItem]:
        return next((i for i in self.line_items if i.id == item_id), None)

    def get_split_logic(self, item_id: str) -> Optional[SplitLogic]:
        return next((l for l in self.split_logic if l.item_id == item_id), None)

    def get_charge(self, charge_id: str) -> Optional[AdditionalCharge]:
        return next((c for c in self.additional_charges if c.id == charge_id), None)

    def as_raw(self) -> Dict[str, Any]:
        """JSON-compatible dict in the same shape the extraction service returns."""
        return self.model_dump(mode="json")
