import json

import pytest
from fastapi.testclient import TestClient
from pydantic_ai.messages import ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from billsplit.api.v1.endpoints.bills import get_registry
from billsplit.core.constants import EXAMPLE_BILL_DATA
from billsplit.main import app
from billsplit.services.llm_service import LLMService, get_llm_service
from billsplit.services.session import SessionRegistry

API = "/api/v1/bills"


def _service_replying(text):
    def respond(messages, info: AgentInfo) -> ModelResponse:
        return ModelResponse(parts=[TextPart(text)])

    return LLMService(model=FunctionModel(respond))


@pytest.fixture
def client():
    registry = SessionRegistry()
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_llm_service] = lambda: _service_replying(json.dumps(EXAMPLE_BILL_DATA))
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def session_id(client):
    response = client.post(f"{API}/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


@pytest.fixture
def example_session(client, session_id):
    client.post(f"{API}/sessions/{session_id}/example")
    return session_id


def test_root_and_health(client):
    assert client.get("/").json()["version"] == "1.0.0"
    assert client.get(f"{API}/health").json()["status"] == "healthy"


def test_new_session_starts_at_input(client, session_id):
    state = client.get(f"{API}/sessions/{session_id}").json()

    assert state["step"] == "input"
    assert state["bill"] is None


def test_unknown_session_is_404(client):
    assert client.get(f"{API}/sessions/nope").status_code == 404
    assert client.delete(f"{API}/sessions/nope").status_code == 404


def test_edits_need_a_loaded_bill(client, session_id):
    response = client.post(f"{API}/sessions/{session_id}/participants", json={"name": "Alex"})

    assert response.status_code == 409


def test_example_bill_totals(client, example_session):
    state = client.get(f"{API}/sessions/{example_session}").json()

    assert state["step"] == "editor"
    assert state["totals"]["grand_total"] == pytest.approx(76.05)
    assert state["totals"]["by_user"]["p1"]["total"] == pytest.approx(29.25)


def test_process_receipt_upload(client, session_id):
    response = client.post(
        f"{API}/sessions/{session_id}/process",
        files={"file": ("receipt.png", b"fake-image", "image/png")},
        data={"instructions": "Alex had the burger"},
    )

    body = response.json()
    assert body["success"] is True
    assert body["totals"]["subtotal"] == pytest.approx(58.5)
    assert body["raw_output"]["participants"][0]["name"] == "Alex"
    assert client.get(f"{API}/sessions/{session_id}").json()["step"] == "editor"


def test_process_rejects_unsupported_file_type(client, session_id):
    response = client.post(
        f"{API}/sessions/{session_id}/process",
        files={"file": ("receipt.gif", b"GIF89a", "image/gif")},
    )

    assert response.status_code == 400


def test_process_failure_is_reported_and_bill_kept(client, example_session):
    app.dependency_overrides[get_llm_service] = lambda: _service_replying("I can't read that.")

    response = client.post(
        f"{API}/sessions/{example_session}/process",
        data={"instructions": "try again", "feedback": "wrong tip", "previous_output": "{}"},
    )

    body = response.json()
    assert body["success"] is False
    assert "JSON" in body["error"]
    state = client.get(f"{API}/sessions/{example_session}").json()
    assert state["step"] == "editor"
    assert state["error"] == body["error"]
    assert len(state["bill"]["participants"]) == 3


def test_participant_edits(client, example_session):
    base = f"{API}/sessions/{example_session}/participants"

    added = client.post(base, json={"name": "Riley"}).json()
    assert added["applied"] is True
    assert added["bill"]["participants"][-1]["name"] == "Riley"

    renamed = client.patch(f"{base}/p2", json={"name": "Samantha"}).json()
    assert renamed["bill"]["participants"][1]["name"] == "Samantha"

    deleted = client.delete(f"{base}/p1").json()
    assert deleted["applied"] is True
    assert deleted["totals"]["by_user"]["unassigned"]["base_amount"] == pytest.approx(16.5)

    assert client.delete(f"{base}/ghost").json()["applied"] is False


def test_item_and_allocation_edits(client, example_session):
    base = f"{API}/sessions/{example_session}/items"

    added = client.post(base, json={"description": "Fries", "quantity": 2, "unit_price": 3}).json()
    item = added["bill"]["line_items"][-1]
    assert item["total_price"] == 6
    assert added["totals"]["by_user"]["unassigned"]["base_amount"] == pytest.approx(6)

    allocated = client.put(f"{base}/{item['id']}/allocations/p3", json={"weight": 1}).json()
    assert allocated["totals"]["by_user"]["p3"]["base_amount"] == pytest.approx(20)

    edited = client.patch(f"{base}/i3", json={"quantity": 2}).json()
    assert edited["totals"]["subtotal"] == pytest.approx(88.5)

    rejected = client.post(base, json={"description": "   "}).json()
    assert rejected["applied"] is False

    deleted = client.delete(f"{base}/i1").json()
    assert [l["item_id"] for l in deleted["bill"]["split_logic"]] == ["i2", "i3", item["id"]]


def test_charge_edits(client, example_session):
    base = f"{API}/sessions/{example_session}/charges"

    added = client.post(base, json={"label": "Service", "type": "fixed", "value": "4"}).json()
    charge = added["bill"]["additional_charges"][-1]
    assert charge["source"] == "user"
    assert added["totals"]["grand_total"] == pytest.approx(80.05)

    edited = client.patch(f"{base}/tip", json={"field": "value", "value": 10}).json()
    assert edited["totals"]["total_charges"]["tip"] == pytest.approx(5.85)

    deleted = client.delete(f"{base}/{charge['id']}").json()
    assert [c["id"] for c in deleted["bill"]["additional_charges"]] == ["tax", "tip"]


def test_summary(client, example_session):
    body = client.get(f"{API}/sessions/{example_session}/summary").json()

    assert body["summary"].startswith("Subtotal: $58.50\nTax: $5.85\nTip: $11.70\nTotal: $76.05")
    settlements = {s["name"]: s for s in body["settlements"]}
    assert set(settlements) == {"Alex", "Sam", "Jordan"}
    assert settlements["Alex"]["formatted_total"] == "$29.25"
    assert settlements["Alex"]["payment_link"].startswith("venmo://paycharge?txn=charge&amount=29.25&note=")


def test_start_over_and_delete_session(client, example_session):
    state = client.delete(f"{API}/sessions/{example_session}/bill").json()
    assert state["step"] == "input"
    assert state["bill"] is None

    assert client.delete(f"{API}/sessions/{example_session}").status_code == 204
    assert client.get(f"{API}/sessions/{example_session}").status_code == 404


def test_stateless_calculate(client):
    body = client.post(f"{API}/calculate", json={"bill": EXAMPLE_BILL_DATA}).json()

    assert body["success"] is True
    assert body["totals"]["grand_total"] == pytest.approx(76.05)
    assert "Jordan: $18.20" in body["summary"]
