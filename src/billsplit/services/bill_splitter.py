"""Bill splitting service"""
from typing import Dict

from loguru import logger

from ..models.bill import UNASSIGNED_ID, UNASSIGNED_NAME, AdditionalCharge, Bill, ChargeType
from ..models.totals import ItemContribution, Totals, UserTotal


def charge_amount(charge: AdditionalCharge, subtotal: float) -> float:
    """Absolute amount of a charge; percentages apply to the pre-charge subtotal."""
    if charge.type == ChargeType.PERCENTAGE:
        return subtotal * (charge.value / 100)
    return charge.value


def compute_totals(bill: Bill) -> Totals:
    """
    Distribute every line item and charge of a bill over its participants.

    Item costs are split by allocation weight (each weight normalized against
    the item's weight sum). Items without allocations land in the
    "unassigned" bucket. Charges are then shared in proportion to each
    bucket's part of the subtotal. Amounts are left unrounded; rounding is a
    display concern.

    Args:
        bill: Bill snapshot to compute from. It is not modified.

    Returns:
        Totals with the subtotal, per-charge amounts, grand total and a
        breakdown per participant id plus the "unassigned" bucket.
    """
    # 1. One accumulator per participant, plus the unassigned bucket
    by_user: Dict[str, UserTotal] = {
        participant.id: UserTotal(name=participant.name) for participant in bill.participants
    }
    by_user[UNASSIGNED_ID] = UserTotal(name=UNASSIGNED_NAME)
    unassigned = by_user[UNASSIGNED_ID]

    # 2. Item costs
    subtotal = 0.0
    split_by_item = {logic.item_id: logic for logic in bill.split_logic}
    for item in bill.line_items:
        subtotal += item.total_price
        logic = split_by_item.get(item.id)
        allocations = [
            allocation for allocation in (logic.allocations if logic else ())
            if allocation.participant_id in by_user and allocation.participant_id != UNASSIGNED_ID
        ]
        # Weights are scaled by the largest one so their sum stays finite
        scale = max((allocation.weight for allocation in allocations), default=0.0)
        total_weight = sum(allocation.weight / scale for allocation in allocations) if scale > 0 else 0.0

        if not allocations or total_weight <= 0:
            unassigned.base_amount += item.total_price
            unassigned.items.append(
                ItemContribution(description=item.description, total_price=item.total_price, share=1.0)
            )
            continue

        for allocation in allocations:
            share_fraction = (allocation.weight / scale) / total_weight
            user = by_user[allocation.participant_id]
            user.base_amount += item.total_price * share_fraction
            user.items.append(
                ItemContribution(description=item.description, total_price=item.total_price, share=share_fraction)
            )

    # 3. Charge amounts
    total_charges = {
        charge.id: charge_amount(charge, subtotal) for charge in bill.additional_charges
    }
    total_charges_sum = sum(total_charges.values())

    # 4. Charge shares follow each bucket's part of the subtotal
    for user in by_user.values():
        user_share_of_subtotal = user.base_amount / subtotal if subtotal > 0 else 0.0
        user.charge_shares = {
            charge_id: amount * user_share_of_subtotal for charge_id, amount in total_charges.items()
        }
        user.total = user.base_amount + sum(user.charge_shares.values())

    return Totals(
        subtotal=subtotal,
        total_charges=total_charges,
        total_charges_sum=total_charges_sum,
        grand_total=subtotal + total_charges_sum,
        by_user=by_user,
    )


class BillSplitterService:
    def calculate_split(self, bill: Bill) -> Totals:
        """
        Calculate the split of a bill and log the breakdown

        Returns:
            Totals as computed by ``compute_totals``
        """
        totals = compute_totals(bill)
        currency = bill.meta.currency

        logger.info("--- Bill Breakdown ---")
        for user in totals.display_users().values():
            logger.info(f"{user.name}:")
            logger.info(f"  Item Share: {user.base_amount:.2f} {currency}")
            for charge in bill.additional_charges:
                logger.info(f"  {charge.label} Share: {user.charge_shares.get(charge.id, 0.0):.2f} {currency}")
            logger.info(f"  Total: {user.total:.2f} {currency}")
            logger.info("-" * 20)

        calculated_total_bill = sum(user.total for user in totals.by_user.values())
        logger.info(f"Calculated Total Bill: {calculated_total_bill:.2f} {currency}")
        logger.info(f"Original Total Bill:   {totals.grand_total:.2f} {currency}")

        if totals.has_unassigned:
            unassigned_items = [item.description for item in totals.unassigned.items]
            logger.warning(f"Unassigned items (cost not allocated): {', '.join(unassigned_items)}")

        return totals


# Global service instance
bill_splitter_service = BillSplitterService()
