from typing import Dict, List

from pydantic import BaseModel

from .bill import UNASSIGNED_ID


class ItemContribution(BaseModel):
    """One line item as seen from a single participant."""
    description: str
    total_price: float
    share: float  # fraction of total_price this participant carries


class UserTotal(BaseModel):
    name: str
    base_amount: float = 0.0
    charge_shares: Dict[str, float] = {}  # charge id -> amount
    total: float = 0.0
    items: List[ItemContribution] = []


class Totals(BaseModel):
    subtotal: float
    total_charges: Dict[str, float]  # charge id -> absolute amount
    total_charges_sum: float
    grand_total: float
    by_user: Dict[str, UserTotal]  # participant id -> breakdown, "unassigned" last

    @property
    def unassigned(self) -> UserTotal:
        return self.by_user[UNASSIGNED_ID]

    @property
    def has_unassigned(self) -> bool:
        return self.unassigned.base_amount > 0 or bool(self.unassigned.items)

    def display_users(self) -> Dict[str, UserTotal]:
        """Breakdown without the unassigned bucket when nothing is left in it."""
        return {
            participant_id: user
            for participant_id, user in self.by_user.items()
            if participant_id != UNASSIGNED_ID or user.total != 0
        }
