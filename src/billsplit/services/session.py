"""In-memory editing sessions: one bill store per user session."""
import asyncio
import uuid
from enum import Enum
from typing import Dict, Optional

from loguru import logger

from ..core.constants import EXAMPLE_BILL_DATA
from ..core.exceptions import ExtractionError
from ..models.extraction import RawBillPayload
from .bill_store import BillStore
from .llm_service import LLMService
from .normalizer import normalize


class SessionStep(str, Enum):
    INPUT = "input"
    PROCESSING = "processing"
    EDITOR = "editor"


class BillSession:
    def __init__(self, session_id: str):
        self.session_id = session_id
        self.store = BillStore()
        self.step = SessionStep.INPUT
        self.error: Optional[str] = None
        self.last_raw_output: Optional[RawBillPayload] = None

    async def process_receipt(
        self,
        service: LLMService,
        image_bytes: Optional[bytes],
        instructions: str,
        media_type: str = "image/jpeg",
        feedback: Optional[str] = None,
        previous_output: Optional[str] = None,
    ) -> bool:
        """
        Run extraction and replace the session's bill with the normalized result

        On failure the error message is kept for display and the previous bill
        stays in place. A cancelled extraction leaves the session as it was.

        Returns:
            True when a new bill was committed
        """
        previous_step = self.step
        self.step = SessionStep.PROCESSING
        self.error = None
        try:
            payload = await service.process_receipt(
                image_bytes,
                instructions,
                media_type=media_type,
                feedback=feedback,
                previous_output=previous_output,
            )
        except asyncio.CancelledError:
            logger.info(f"Extraction cancelled for session {self.session_id}")
            self.step = previous_step
            raise
        except ExtractionError as e:
            logger.error(f"Extraction failed for session {self.session_id}: {e}")
            self.error = str(e)
            self.step = SessionStep.EDITOR if self.store.bill is not None else SessionStep.INPUT
            return False

        self.last_raw_output = payload
        self.store.load(normalize(payload))
        self.step = SessionStep.EDITOR
        return True

    def load_example(self) -> None:
        self.store.load(normalize(EXAMPLE_BILL_DATA))
        self.error = None
        self.step = SessionStep.EDITOR

    def start_over(self) -> None:
        self.store.reset()
        self.last_raw_output = None
        self.error = None
        self.step = SessionStep.INPUT


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, BillSession] = {}

    def create(self) -> BillSession:
        session = BillSession(uuid.uuid4().hex)
        self._sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id}")
        return session

    def get(self, session_id: str) -> Optional[BillSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


# Global registry instance
session_registry = SessionRegistry()
