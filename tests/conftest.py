import pytest

from billsplit.core.constants import EXAMPLE_BILL_DATA
from billsplit.models import Bill
from billsplit.services.normalizer import normalize


@pytest.fixture
def example_bill() -> Bill:
    return normalize(EXAMPLE_BILL_DATA)
