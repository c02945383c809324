"""Repair loosely structured extraction output into a valid Bill.

``normalize`` is total: whatever comes back from the model (missing ids,
string prices, negative quantities, allocations pointing at people who do
not exist) is turned into a Bill that satisfies every referential rule the
bill store relies on. Normalizing an already normalized bill changes nothing.
"""
import json
import math
import re
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from loguru import logger
from pydantic import BaseModel

from ..core.config import settings
from ..models.bill import (
    UNASSIGNED_ID,
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

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")

# Fixed ids used when an older {tax, tip, fees} payload is converted to charges
TAX_CHARGE_ID = "tax"
TIP_CHARGE_ID = "tip"


def to_number(value: Any, fallback: float = 0.0) -> float:
    """Read a finite float from a number or a numeric string, else ``fallback``."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # int too large for a float
            return fallback
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return fallback
        number = float(match.group(0))
    else:
        return fallback
    return number if math.isfinite(number) else fallback


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clean_text(value: Any, max_length: int) -> Optional[str]:
    """Trimmed, length-capped string, or None when there is nothing left."""
    if not isinstance(value, str):
        return None
    text = value.strip()[:max_length].strip()
    return text or None


def generate_id(prefix: str, index: int, taken: Iterable[str] = ()) -> str:
    taken = set(taken)
    while True:
        candidate = f"{prefix}-{index}-{uuid.uuid4().hex[:5]}"
        if candidate not in taken and candidate != UNASSIGNED_ID:
            return candidate


def _as_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _unique_id(raw_id: Any, prefix: str, index: int, taken: Set[str]) -> str:
    entry_id = _as_id(raw_id)
    if entry_id is None or entry_id in taken or entry_id == UNASSIGNED_ID:
        if entry_id is not None:
            logger.debug(f"Replacing duplicate or reserved {prefix} id '{entry_id}'")
        entry_id = generate_id(prefix, index, taken)
    taken.add(entry_id)
    return entry_id


def normalize_meta(raw: Any) -> Meta:
    meta = _as_mapping(raw)
    currency = clean_text(meta.get("currency"), 10)
    notes = meta.get("notes")
    return Meta(
        currency=currency.upper() if currency else settings.default_currency,
        notes=notes if isinstance(notes, str) else "",
    )


def normalize_participants(raw: Any) -> List[Participant]:
    entries = _as_list(raw) or [{"name": "Person 1"}]
    taken: Set[str] = set()
    participants = []
    for index, entry in enumerate(entries):
        entry = _as_mapping(entry)
        participants.append(Participant(
            id=_unique_id(entry.get("id"), "participant", index, taken),
            name=clean_text(entry.get("name"), settings.max_name_length) or f"Person {index + 1}",
        ))
    return participants


def normalize_line_item(entry: Mapping[str, Any], index: int, taken: Set[str]) -> LineItem:
    quantity = max(1, round_half_up(to_number(entry.get("quantity"), 1)))
    total = to_number(entry.get("total_price"), to_number(entry.get("unit_price"), 0) * quantity)
    total = round(max(0.0, total), 2) if math.isfinite(total) else 0.0
    return LineItem(
        id=_unique_id(entry.get("id"), "item", index, taken),
        description=clean_text(entry.get("description"), settings.max_description_length) or f"Item {index + 1}",
        quantity=quantity,
        unit_price=round(total / quantity, 2),
        total_price=total,
    )


def normalize_line_items(raw: Any) -> List[LineItem]:
    taken: Set[str] = set()
    return [
        normalize_line_item(_as_mapping(entry), index, taken)
        for index, entry in enumerate(_as_list(raw))
    ]


def normalize_split_logic_entry(
    entry: Mapping[str, Any],
    index: int,
    item_ids: List[str],
    participant_ids: Set[str],
) -> Optional[SplitLogic]:
    item_id = _as_id(entry.get("item_id"))
    if item_id is None and index < len(item_ids):
        # No item reference at all: assume entries follow line item order
        item_id = item_ids[index]
    if item_id is None or item_id not in item_ids:
        logger.warning(f"Dropping split logic #{index}: unknown item '{item_id}'")
        return None

    try:
        method = SplitMethod(entry.get("method"))
    except (TypeError, ValueError):
        method = SplitMethod.RATIO

    weights: Dict[str, float] = {}
    for allocation in _as_list(entry.get("allocations")):
        allocation = _as_mapping(allocation)
        participant_id = _as_id(allocation.get("participant_id"))
        weight = round(to_number(allocation.get("weight"), 0), 3)
        if participant_id is None or participant_id not in participant_ids or weight <= 0:
            logger.warning(
                f"Dropping allocation of item '{item_id}' to '{participant_id}' (weight {weight})"
            )
            continue
        weights[participant_id] = weight

    return SplitLogic(
        item_id=item_id,
        method=method,
        allocations=tuple(
            SplitAllocation(participant_id=participant_id, weight=weight)
            for participant_id, weight in weights.items()
        ),
    )


def normalize_split_logic(
    raw: Any, line_items: List[LineItem], participants: List[Participant]
) -> List[SplitLogic]:
    item_ids = [item.id for item in line_items]
    participant_ids = {p.id for p in participants}

    # Later entries for the same item replace earlier ones
    by_item: Dict[str, SplitLogic] = {}
    for index, entry in enumerate(_as_list(raw)):
        logic = normalize_split_logic_entry(_as_mapping(entry), index, item_ids, participant_ids)
        if logic is not None:
            by_item[logic.item_id] = logic
    return list(by_item.values())


def normalize_charge(
    entry: Mapping[str, Any],
    index: int,
    taken: Set[str],
    *,
    default_id: Optional[str] = None,
    default_label: Optional[str] = None,
    default_source: ChargeSource = ChargeSource.RECEIPT,
) -> AdditionalCharge:
    raw_id = entry.get("id") if _as_id(entry.get("id")) else default_id
    try:
        source = ChargeSource(entry.get("source"))
    except (TypeError, ValueError):
        source = default_source
    try:
        charge_type = ChargeType(entry.get("type"))
    except (TypeError, ValueError):
        charge_type = ChargeType.FIXED
    return AdditionalCharge(
        id=_unique_id(raw_id, "charge", index, taken),
        label=clean_text(entry.get("label"), settings.max_label_length) or default_label or f"Charge {index + 1}",
        source=source,
        type=charge_type,
        value=round(max(0.0, to_number(entry.get("value"), 0)), 2),
    )


def normalize_charges(raw_charges: Any, raw_modifiers: Any = None) -> List[AdditionalCharge]:
    taken: Set[str] = set()
    if raw_charges is not None or raw_modifiers is None:
        return [
            normalize_charge(_as_mapping(entry), index, taken)
            for index, entry in enumerate(_as_list(raw_charges))
        ]

    # Older payloads carry a fixed tax/tip pair plus a list of extra fees
    modifiers = _as_mapping(raw_modifiers)
    charges = [
        normalize_charge(
            _as_mapping(modifiers.get("tax")), 0, taken,
            default_id=TAX_CHARGE_ID, default_label="Tax", default_source=ChargeSource.RECEIPT,
        ),
        normalize_charge(
            _as_mapping(modifiers.get("tip")), 1, taken,
            default_id=TIP_CHARGE_ID, default_label="Tip", default_source=ChargeSource.USER_PROMPT,
        ),
    ]
    for offset, fee in enumerate(_as_list(modifiers.get("fees"))):
        charges.append(normalize_charge(
            _as_mapping(fee), offset + 2, taken,
            default_id=f"fee-{offset + 1}", default_label=f"Fee {offset + 1}",
        ))
    return charges


def _load(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Normalizer received text that is not JSON; starting from an empty bill")
            return {}
    return _as_mapping(raw)


def normalize(raw: Any) -> Bill:
    """Build a structurally valid Bill from any extraction result.

    Args:
        raw: dict, pydantic model or JSON text shaped (more or less) like a bill.

    Returns:
        A Bill with unique ids, at least one participant, clamped prices and
        split logic that only references existing items and participants.
    """
    data = _load(raw)
    participants = normalize_participants(data.get("participants"))
    line_items = normalize_line_items(data.get("line_items"))
    split_logic = normalize_split_logic(data.get("split_logic"), line_items, participants)
    charges = normalize_charges(data.get("additional_charges"), data.get("modifiers"))

    bill = Bill(
        meta=normalize_meta(data.get("meta")),
        participants=tuple(participants),
        line_items=tuple(line_items),
        split_logic=tuple(split_logic),
        additional_charges=tuple(charges),
    )
    logger.debug(
        f"Normalized bill: {len(bill.participants)} participants, {len(bill.line_items)} items, "
        f"{len(bill.split_logic)} split entries, {len(bill.additional_charges)} charges"
    )
    return bill
