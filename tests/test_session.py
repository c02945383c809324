import asyncio

import pytest

from billsplit.core.constants import EXAMPLE_BILL_DATA
from billsplit.core.exceptions import ExtractionParseError
from billsplit.models import RawBillPayload
from billsplit.services.session import BillSession, SessionRegistry, SessionStep


class StubExtractionService:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def process_receipt(self, image_bytes, instructions, **kwargs):
        self.calls.append((image_bytes, instructions, kwargs))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_successful_extraction_loads_the_bill():
    session = BillSession("s1")
    service = StubExtractionService(result=RawBillPayload.model_validate(EXAMPLE_BILL_DATA))

    committed = await session.process_receipt(service, b"img", "Alex had the burger")

    assert committed is True
    assert session.step == SessionStep.EDITOR
    assert session.error is None
    assert [p.name for p in session.store.bill.participants] == ["Alex", "Sam", "Jordan"]
    assert session.store.totals.grand_total == pytest.approx(76.05)
    assert session.last_raw_output.participants[0]["id"] == "p1"


@pytest.mark.asyncio
async def test_feedback_is_passed_through():
    session = BillSession("s1")
    service = StubExtractionService(result=RawBillPayload.model_validate(EXAMPLE_BILL_DATA))

    await session.process_receipt(service, None, "split it", feedback="wrong tip", previous_output="{}")

    _, instructions, kwargs = service.calls[0]
    assert instructions == "split it"
    assert kwargs["feedback"] == "wrong tip"
    assert kwargs["previous_output"] == "{}"


@pytest.mark.asyncio
async def test_failed_first_extraction_returns_to_input():
    session = BillSession("s1")
    service = StubExtractionService(error=ExtractionParseError(ExtractionParseError.INVALID_JSON, "bad json"))

    committed = await session.process_receipt(service, b"img", "")

    assert committed is False
    assert session.step == SessionStep.INPUT
    assert session.error == "bad json"
    assert session.store.bill is None


@pytest.mark.asyncio
async def test_failed_regeneration_keeps_previous_bill():
    session = BillSession("s1")
    session.load_example()
    bill = session.store.bill
    service = StubExtractionService(error=ExtractionParseError(ExtractionParseError.NO_JSON_OBJECT, "no json"))

    committed = await session.process_receipt(service, b"img", "")

    assert committed is False
    assert session.step == SessionStep.EDITOR
    assert session.store.bill is bill


@pytest.mark.asyncio
async def test_cancelled_extraction_leaves_session_untouched():
    session = BillSession("s1")
    session.load_example()
    bill = session.store.bill
    service = StubExtractionService(error=asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await session.process_receipt(service, b"img", "")

    assert session.step == SessionStep.EDITOR
    assert session.store.bill is bill


def test_start_over_clears_everything():
    session = BillSession("s1")
    session.load_example()
    session.error = "stale"

    session.start_over()

    assert session.step == SessionStep.INPUT
    assert session.store.bill is None
    assert session.error is None
    assert session.last_raw_output is None


def test_registry_tracks_sessions():
    registry = SessionRegistry()

    session = registry.create()

    assert registry.get(session.session_id) is session
    assert len(registry) == 1
    assert registry.remove(session.session_id) is True
    assert registry.remove(session.session_id) is False
    assert registry.get(session.session_id) is None


@pytest.mark.asyncio
async def test_payload_with_oversized_numbers_still_commits():
    session = BillSession("s1")
    payload = RawBillPayload.model_validate({
        "participants": [{"id": "p1", "name": "Alex"}],
        "line_items": [{"id": "i1", "description": "Soup", "total_price": 10 ** 400}],
    })

    committed = await session.process_receipt(StubExtractionService(result=payload), b"img", "")

    assert committed is True
    assert session.step == SessionStep.EDITOR
    assert session.store.bill.line_items[0].total_price == 0
