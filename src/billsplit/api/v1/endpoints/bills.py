from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from loguru import logger

from ....core.config import settings
from ....models.response_models import (
    AllocationRequest,
    CalculateSplitRequest,
    CalculateSplitResponse,
    ChargeEditRequest,
    ChargeRequest,
    HealthResponse,
    LineItemRequest,
    MutationResponse,
    ParticipantRequest,
    ParticipantSettlement,
    ProcessBillResponse,
    SessionCreatedResponse,
    SessionStateResponse,
    SummaryResponse,
)
from ....models.bill import UNASSIGNED_ID
from ....services.bill_splitter import bill_splitter_service
from ....services.llm_service import LLMService, get_llm_service
from ....services.normalizer import normalize
from ....services.session import BillSession, SessionRegistry, session_registry
from ....services.settlement import build_payment_request_link, build_summary, format_money

router = APIRouter()


def get_registry() -> SessionRegistry:
    return session_registry


def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> BillSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def get_editable_session(session: BillSession = Depends(get_session)) -> BillSession:
    if session.store.bill is None:
        raise HTTPException(status_code=409, detail="No bill loaded in this session")
    return session


def _state(session: BillSession) -> SessionStateResponse:
    return SessionStateResponse(
        session_id=session.session_id,
        step=session.step.value,
        error=session.error,
        bill=session.store.bill,
        totals=session.store.totals,
    )


def _mutation(session: BillSession, applied: bool) -> MutationResponse:
    return MutationResponse(applied=applied, bill=session.store.bill, totals=session.store.totals)


def _charge_labels(bill) -> dict:
    return {charge.id: charge.label for charge in bill.additional_charges}


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        message="Bill Split API is running",
        version=settings.app_version,
    )


@router.post("/calculate", response_model=CalculateSplitResponse)
async def calculate_split(request: CalculateSplitRequest):
    """
    Normalize a raw bill payload and calculate its split without a session
    """
    try:
        bill = normalize(request.bill)
        totals = bill_splitter_service.calculate_split(bill)
        return CalculateSplitResponse(
            success=True,
            message="Split calculated successfully",
            bill=bill,
            totals=totals,
            summary=build_summary(totals, bill.meta.currency, _charge_labels(bill)),
        )
    except Exception as e:
        logger.error(f"Error calculating split: {e}")
        return CalculateSplitResponse(
            success=False,
            message="Failed to calculate split",
            error=str(e),
        )


# --- Sessions ---

@router.post("/sessions", response_model=SessionCreatedResponse, status_code=201)
async def create_session(registry: SessionRegistry = Depends(get_registry)):
    session = registry.create()
    return SessionCreatedResponse(session_id=session.session_id)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def get_session_state(session: BillSession = Depends(get_session)):
    return _state(session)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    if not registry.remove(session_id):
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("/sessions/{session_id}/process", response_model=ProcessBillResponse)
async def process_bill(
    session: BillSession = Depends(get_session),
    llm_service: LLMService = Depends(get_llm_service),
    file: Optional[UploadFile] = File(None),
    instructions: str = Form(""),
    feedback: Optional[str] = Form(None),
    previous_output: Optional[str] = Form(None),
):
    """
    Extract a bill from an uploaded receipt image and splitting instructions
    """
    image_bytes = None
    media_type = "image/jpeg"
    if file is not None:
        if file.content_type not in settings.allowed_file_types:
            raise HTTPException(
                status_code=400,
                detail=f"File type {file.content_type} not allowed"
            )
        image_bytes = await file.read()
        if len(image_bytes) > settings.max_file_size:
            raise HTTPException(
                status_code=400,
                detail="File size exceeds maximum allowed size"
            )
        media_type = file.content_type

    committed = await session.process_receipt(
        llm_service,
        image_bytes,
        instructions,
        media_type=media_type,
        feedback=feedback,
        previous_output=previous_output,
    )
    if not committed:
        return ProcessBillResponse(
            success=False,
            message="Failed to process receipt",
            error=session.error,
        )

    return ProcessBillResponse(
        success=True,
        message="Receipt processed successfully",
        bill=session.store.bill,
        totals=session.store.totals,
        raw_output=session.last_raw_output.model_dump(),
    )


@router.post("/sessions/{session_id}/example", response_model=SessionStateResponse)
async def load_example(session: BillSession = Depends(get_session)):
    session.load_example()
    return _state(session)


@router.delete("/sessions/{session_id}/bill", response_model=SessionStateResponse)
async def start_over(session: BillSession = Depends(get_session)):
    session.start_over()
    return _state(session)


# --- Participants ---

@router.post("/sessions/{session_id}/participants", response_model=MutationResponse)
async def add_participant(request: ParticipantRequest, session: BillSession = Depends(get_editable_session)):
    return _mutation(session, session.store.add_participant(request.name))


@router.patch("/sessions/{session_id}/participants/{participant_id}", response_model=MutationResponse)
async def rename_participant(
    participant_id: str, request: ParticipantRequest, session: BillSession = Depends(get_editable_session)
):
    return _mutation(session, session.store.rename_participant(participant_id, request.name))


@router.delete("/sessions/{session_id}/participants/{participant_id}", response_model=MutationResponse)
async def delete_participant(participant_id: str, session: BillSession = Depends(get_editable_session)):
    return _mutation(session, session.store.delete_participant(participant_id))


# --- Line items ---

@router.post("/sessions/{session_id}/items", response_model=MutationResponse)
async def add_line_item(request: LineItemRequest, session: BillSession = Depends(get_editable_session)):
    fields = request.model_dump(exclude_none=True, exclude={"description"})
    return _mutation(session, session.store.add_line_item(request.description, **fields))


@router.patch("/sessions/{session_id}/items/{item_id}", response_model=MutationResponse)
async def edit_line_item(
    item_id: str, request: LineItemRequest, session: BillSession = Depends(get_editable_session)
):
    return _mutation(session, session.store.edit_line_item(item_id, **request.model_dump(exclude_none=True)))


@router.delete("/sessions/{session_id}/items/{item_id}", response_model=MutationResponse)
async def delete_line_item(item_id: str, session: BillSession = Depends(get_editable_session)):
    return _mutation(session, session.store.delete_line_item(item_id))


@router.put("/sessions/{session_id}/items/{item_id}/allocations/{participant_id}", response_model=MutationResponse)
async def set_allocation_weight(
    item_id: str,
    participant_id: str,
    request: AllocationRequest,
    session: BillSession = Depends(get_editable_session),
):
    return _mutation(session, session.store.set_allocation_weight(item_id, participant_id, request.weight))


# --- Charges ---

@router.post("/sessions/{session_id}/charges", response_model=MutationResponse)
async def add_charge(request: ChargeRequest, session: BillSession = Depends(get_editable_session)):
    return _mutation(session, session.store.add_charge(**request.model_dump()))


@router.patch("/sessions/{session_id}/charges/{charge_id}", response_model=MutationResponse)
async def edit_charge(
    charge_id: str, request: ChargeEditRequest, session: BillSession = Depends(get_editable_session)
):
    return _mutation(session, session.store.edit_charge(charge_id, request.field, request.value))


@router.delete("/sessions/{session_id}/charges/{charge_id}", response_model=MutationResponse)
async def delete_charge(charge_id: str, session: BillSession = Depends(get_editable_session)):
    return _mutation(session, session.store.delete_charge(charge_id))


# --- Settlement ---

@router.get("/sessions/{session_id}/summary", response_model=SummaryResponse)
async def get_summary(session: BillSession = Depends(get_editable_session)):
    """
    Money-formatted totals, a shareable text summary and payment links per participant
    """
    bill = session.store.bill
    totals = bill_splitter_service.calculate_split(bill)
    currency = bill.meta.currency
    settlements = [
        ParticipantSettlement(
            participant_id=participant_id,
            name=user.name,
            total=user.total,
            formatted_total=format_money(user.total, currency),
            payment_link=build_payment_request_link(user),
        )
        for participant_id, user in totals.by_user.items()
        if participant_id != UNASSIGNED_ID
    ]
    return SummaryResponse(
        totals=totals,
        summary=build_summary(totals, currency, _charge_labels(bill)),
        settlements=settlements,
    )
