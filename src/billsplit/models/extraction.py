from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


@dataclass
class ReceiptExtractionDeps:
    """Dependencies for the receipt extraction agent."""
    instructions: str
    image_bytes: Optional[bytes] = None
    media_type: str = "image/jpeg"
    feedback: Optional[str] = None
    previous_output: Optional[str] = None


class RawBillPayload(BaseModel):
    """Loosely typed extraction result.

    Only the top-level shape is enforced here: the arrays a bill cannot be
    built without must be present and be lists. Entry contents are left
    untyped for the normalizer to repair.
    """
    model_config = ConfigDict(extra="allow")

    participants: List[Any]
    line_items: List[Any]
    split_logic: List[Any] = []
    additional_charges: Optional[List[Any]] = None
    meta: Any = None
    modifiers: Any = None  # older tax/tip payload shape
