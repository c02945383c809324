"""Editing operations on a Bill.

Each operation takes the current Bill and returns a new one. Invalid input
(unknown ids, empty names, negative or non-finite numbers, deleting the
last participant) returns the Bill it was given, unchanged: edits come from a
live session and a bad one is dropped instead of raised.
"""
import math
from typing import Any, Optional, Tuple

from loguru import logger

from ..core.config import settings
from ..models.bill import (
    AdditionalCharge,
    Bill,
    ChargeSource,
    ChargeType,
    LineItem,
    Participant,
    SplitAllocation,
    SplitLogic,
    SplitMethod,
)
from ..models.totals import Totals
from .bill_splitter import compute_totals
from .normalizer import clean_text, generate_id, to_number

CHARGE_FIELDS = ("label", "type", "value", "source")


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except OverflowError:
        return False


def _is_price(value: Any) -> bool:
    return _is_number(value) and value >= 0


def _is_quantity(value: Any) -> bool:
    return _is_number(value) and value >= 1 and float(value).is_integer()


def _resolve_prices(
    quantity: int,
    unit_price: Optional[float],
    total_price: Optional[float],
    current_unit_price: float,
) -> Optional[Tuple[float, float]]:
    """(unit_price, total_price) after an edit; an explicit total wins over unit x quantity."""
    if total_price is not None:
        total = round(total_price, 2)
        unit = round(unit_price, 2) if unit_price is not None else round(total / quantity, 2)
    else:
        unit = unit_price if unit_price is not None else current_unit_price
        total = round(unit * quantity, 2)
        unit = round(unit, 2)
    if not math.isfinite(total):
        return None
    return unit, total


# --- Participants ---

def add_participant(bill: Bill, name: Optional[str] = None) -> Bill:
    position = len(bill.participants)
    participant = Participant(
        id=generate_id("participant", position, (p.id for p in bill.participants)),
        name=clean_text(name, settings.max_name_length) or f"Person {position + 1}",
    )
    return bill.model_copy(update={"participants": bill.participants + (participant,)})


def rename_participant(bill: Bill, participant_id: str, name: str) -> Bill:
    participant = bill.get_participant(participant_id)
    new_name = clean_text(name, settings.max_name_length)
    if participant is None or new_name is None or new_name == participant.name:
        return bill
    return bill.model_copy(update={
        "participants": tuple(
            p.model_copy(update={"name": new_name}) if p.id == participant_id else p
            for p in bill.participants
        )
    })


def delete_participant(bill: Bill, participant_id: str) -> Bill:
    """Remove a participant and every allocation pointing at them.

    A bill always keeps at least one participant, so deleting the last one is ignored.
    """
    if bill.get_participant(participant_id) is None or len(bill.participants) <= 1:
        return bill
    return bill.model_copy(update={
        "participants": tuple(p for p in bill.participants if p.id != participant_id),
        "split_logic": tuple(
            logic.model_copy(update={
                "allocations": tuple(a for a in logic.allocations if a.participant_id != participant_id)
            })
            for logic in bill.split_logic
        ),
    })


# --- Line items ---

def add_line_item(
    bill: Bill,
    description: str,
    *,
    quantity: float = 1,
    unit_price: Optional[float] = None,
    total_price: Optional[float] = None,
) -> Bill:
    clean_description = clean_text(description, settings.max_description_length)
    if clean_description is None or not _is_quantity(quantity):
        return bill
    if any(value is not None and not _is_price(value) for value in (unit_price, total_price)):
        return bill

    prices = _resolve_prices(int(quantity), unit_price, total_price, 0.0)
    if prices is None:
        return bill
    unit, total = prices
    item = LineItem(
        id=generate_id("item", len(bill.line_items), (i.id for i in bill.line_items)),
        description=clean_description,
        quantity=int(quantity),
        unit_price=unit,
        total_price=total,
    )
    return bill.model_copy(update={"line_items": bill.line_items + (item,)})


def edit_line_item(
    bill: Bill,
    item_id: str,
    *,
    description: Optional[str] = None,
    quantity: Optional[float] = None,
    unit_price: Optional[float] = None,
    total_price: Optional[float] = None,
) -> Bill:
    """Update the supplied fields of a line item.

    An explicit ``total_price`` is taken as is. Otherwise, changing the
    quantity or unit price recomputes ``total_price = unit_price * quantity``.
    """
    item = bill.get_line_item(item_id)
    if item is None:
        return bill

    update: dict = {}
    if description is not None:
        clean_description = clean_text(description, settings.max_description_length)
        if clean_description is None:
            return bill
        update["description"] = clean_description
    if quantity is not None and not _is_quantity(quantity):
        return bill
    if any(value is not None and not _is_price(value) for value in (unit_price, total_price)):
        return bill

    if quantity is not None or unit_price is not None or total_price is not None:
        new_quantity = int(quantity) if quantity is not None else item.quantity
        prices = _resolve_prices(new_quantity, unit_price, total_price, item.unit_price)
        if prices is None:
            return bill
        update["quantity"] = new_quantity
        update["unit_price"], update["total_price"] = prices

    edited = item.model_copy(update=update)
    if edited == item:
        return bill
    return bill.model_copy(update={
        "line_items": tuple(edited if i.id == item_id else i for i in bill.line_items)
    })


def delete_line_item(bill: Bill, item_id: str) -> Bill:
    if bill.get_line_item(item_id) is None:
        return bill
    return bill.model_copy(update={
        "line_items": tuple(i for i in bill.line_items if i.id != item_id),
        "split_logic": tuple(l for l in bill.split_logic if l.item_id != item_id),
    })


# --- Allocations ---

def set_allocation_weight(bill: Bill, item_id: str, participant_id: str, weight: float) -> Bill:
    """Give a participant ``weight`` shares of an item; a weight of 0 removes them."""
    if not _is_price(weight):
        return bill
    if bill.get_line_item(item_id) is None or bill.get_participant(participant_id) is None:
        return bill

    logic = bill.get_split_logic(item_id)
    if weight == 0:
        if logic is None or logic.weight_for(participant_id) == 0:
            return bill
        updated = logic.model_copy(update={
            "allocations": tuple(a for a in logic.allocations if a.participant_id != participant_id)
        })
    elif logic is None:
        new_logic = SplitLogic(
            item_id=item_id,
            method=SplitMethod.RATIO,
            allocations=(SplitAllocation(participant_id=participant_id, weight=weight),),
        )
        return bill.model_copy(update={"split_logic": bill.split_logic + (new_logic,)})
    elif logic.weight_for(participant_id) > 0:
        if logic.weight_for(participant_id) == weight:
            return bill
        updated = logic.model_copy(update={
            "allocations": tuple(
                a.model_copy(update={"weight": weight}) if a.participant_id == participant_id else a
                for a in logic.allocations
            )
        })
    else:
        updated = logic.model_copy(update={
            "allocations": logic.allocations + (SplitAllocation(participant_id=participant_id, weight=weight),)
        })

    return bill.model_copy(update={
        "split_logic": tuple(updated if l.item_id == item_id else l for l in bill.split_logic)
    })


# --- Charges ---

def _charge_value(value: Any) -> float:
    return round(max(0.0, to_number(value, 0)), 2)


def add_charge(
    bill: Bill,
    label: Optional[str] = None,
    type: Any = ChargeType.FIXED,
    value: Any = 0,
    source: Any = ChargeSource.USER,
) -> Bill:
    try:
        charge_type = ChargeType(type)
    except (TypeError, ValueError):
        return bill
    try:
        charge_source = ChargeSource(source)
    except (TypeError, ValueError):
        charge_source = ChargeSource.USER

    position = len(bill.additional_charges)
    charge = AdditionalCharge(
        id=generate_id("charge", position, (c.id for c in bill.additional_charges)),
        label=clean_text(label, settings.max_label_length) or f"Charge {position + 1}",
        source=charge_source,
        type=charge_type,
        value=_charge_value(value),
    )
    return bill.model_copy(update={"additional_charges": bill.additional_charges + (charge,)})


def edit_charge(bill: Bill, charge_id: str, field: str, value: Any) -> Bill:
    charge = bill.get_charge(charge_id)
    if charge is None or field not in CHARGE_FIELDS:
        return bill

    try:
        if field == "label":
            new_value = clean_text(value, settings.max_label_length)
            if new_value is None:
                return bill
        elif field == "type":
            new_value = ChargeType(value)
        elif field == "source":
            new_value = ChargeSource(value)
        else:
            new_value = _charge_value(value)
    except (TypeError, ValueError):
        return bill

    edited = charge.model_copy(update={field: new_value})
    if edited == charge:
        return bill
    return bill.model_copy(update={
        "additional_charges": tuple(edited if c.id == charge_id else c for c in bill.additional_charges)
    })


def delete_charge(bill: Bill, charge_id: str) -> Bill:
    if bill.get_charge(charge_id) is None:
        return bill
    return bill.model_copy(update={
        "additional_charges": tuple(c for c in bill.additional_charges if c.id != charge_id)
    })


class BillStore:
    """Holds the one Bill of a session and its current totals."""

    def __init__(self, bill: Optional[Bill] = None):
        self._bill: Optional[Bill] = None
        self._totals: Optional[Totals] = None
        if bill is not None:
            self.load(bill)

    @property
    def bill(self) -> Optional[Bill]:
        return self._bill

    @property
    def totals(self) -> Optional[Totals]:
        return self._totals

    def load(self, bill: Bill) -> None:
        self._bill = bill
        self._totals = compute_totals(bill)
        logger.info(
            f"Loaded bill with {len(bill.participants)} participants and {len(bill.line_items)} items"
        )

    def reset(self) -> None:
        self._bill = None
        self._totals = None

    def _apply(self, operation, *args, **kwargs) -> bool:
        if self._bill is None:
            logger.warning(f"Ignored {operation.__name__}: no bill loaded")
            return False
        updated = operation(self._bill, *args, **kwargs)
        if updated == self._bill:
            logger.warning(f"Ignored {operation.__name__}{args}: invalid input or no change")
            return False
        self._bill = updated
        self._totals = compute_totals(updated)
        return True

    def add_participant(self, name: Optional[str] = None) -> bool:
        return self._apply(add_participant, name)

    def rename_participant(self, participant_id: str, name: str) -> bool:
        return self._apply(rename_participant, participant_id, name)

    def delete_participant(self, participant_id: str) -> bool:
        return self._apply(delete_participant, participant_id)

    def add_line_item(self, description: str, **fields) -> bool:
        return self._apply(add_line_item, description, **fields)

    def edit_line_item(self, item_id: str, **fields) -> bool:
        return self._apply(edit_line_item, item_id, **fields)

    def delete_line_item(self, item_id: str) -> bool:
        return self._apply(delete_line_item, item_id)

    def set_allocation_weight(self, item_id: str, participant_id: str, weight: float) -> bool:
        return self._apply(set_allocation_weight, item_id, participant_id, weight)

    def add_charge(self, **fields) -> bool:
        return self._apply(add_charge, **fields)

    def edit_charge(self, charge_id: str, field: str, value: Any) -> bool:
        return self._apply(edit_charge, charge_id, field, value)

    def delete_charge(self, charge_id: str) -> bool:
        return self._apply(delete_charge, charge_id)
