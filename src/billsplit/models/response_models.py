from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .bill import Bill, ChargeSource, ChargeType
from .totals import Totals


class SessionCreatedResponse(BaseModel):
    session_id: str


class SessionStateResponse(BaseModel):
    session_id: str
    step: str
    error: Optional[str] = None
    bill: Optional[Bill] = None
    totals: Optional[Totals] = None


class ProcessBillResponse(BaseModel):
    success: bool
    message: str
    bill: Optional[Bill] = None
    totals: Optional[Totals] = None
    raw_output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class MutationResponse(BaseModel):
    applied: bool
    bill: Bill
    totals: Totals


class ParticipantRequest(BaseModel):
    name: Optional[str] = None


class LineItemRequest(BaseModel):
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None


class AllocationRequest(BaseModel):
    weight: float


class ChargeRequest(BaseModel):
    label: Optional[str] = None
    type: ChargeType = ChargeType.FIXED
    value: Any = 0
    source: ChargeSource = ChargeSource.USER


class ChargeEditRequest(BaseModel):
    field: str
    value: Any


class CalculateSplitRequest(BaseModel):
    bill: Dict[str, Any]


class CalculateSplitResponse(BaseModel):
    success: bool
    message: str
    bill: Optional[Bill] = None
    totals: Optional[Totals] = None
    summary: Optional[str] = None
    error: Optional[str] = None


class ParticipantSettlement(BaseModel):
    participant_id: str
    name: str
    total: float
    formatted_total: str
    payment_link: str


class SummaryResponse(BaseModel):
    totals: Totals
    summary: str
    settlements: List[ParticipantSettlement]


class HealthResponse(BaseModel):
    status: str
    message: str
    version: str
