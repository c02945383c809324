"""LLM service for receipt extraction"""
import json
from functools import lru_cache
from typing import Optional

from loguru import logger
from pydantic import ValidationError
from pydantic_ai import Agent, BinaryContent, RunContext
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.models import Model

from ..core.exceptions import (
    ExtractionConfigError,
    ExtractionError,
    ExtractionParseError,
    ExtractionServiceError,
)
from ..core.prompts import RECEIPT_EXTRACTION_PROMPT
from ..models.extraction import RawBillPayload, ReceiptExtractionDeps
from .llm_factory import get_default_model


def parse_extraction_response(text: str) -> RawBillPayload:
    """
    Turn the model's answer into a bill payload

    The answer may wrap the JSON object in prose or code fences, so everything
    outside the first "{" and the last "}" is ignored.

    Raises:
        ExtractionParseError: no JSON object, invalid JSON, or required arrays missing
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ExtractionParseError(
            ExtractionParseError.NO_JSON_OBJECT, "The extraction service did not return a JSON object"
        )

    try:
        data = json.loads(text[start:end + 1])
    except ValueError as e:
        # JSONDecodeError, or an integer literal past the int conversion limit
        raise ExtractionParseError(
            ExtractionParseError.INVALID_JSON, f"The extraction service returned invalid JSON: {getattr(e, 'msg', e)}"
        ) from e

    try:
        return RawBillPayload.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in error["loc"]) or "<root>" for error in e.errors()})
        raise ExtractionParseError(
            ExtractionParseError.SCHEMA_MISMATCH,
            f"The extraction result is missing required data: {', '.join(fields)}",
        ) from e


class LLMService:
    def __init__(self, model: Optional[Model] = None):
        """Initialize LLM service; the model is resolved from settings on first use unless given"""
        self._model = model
        self._agent: Optional[Agent] = None

    def _init_receipt_agent(self, model: Model) -> Agent:
        """Initialize receipt extraction agent"""
        agent = Agent(
            model,
            output_type=str,
            deps_type=ReceiptExtractionDeps,
        )

        @agent.instructions
        def receipt_system_prompt(ctx: RunContext[ReceiptExtractionDeps]):
            return RECEIPT_EXTRACTION_PROMPT

        return agent

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            model = self._model
            if model is None:
                try:
                    model = get_default_model()
                except ValueError as e:
                    logger.error(f"Could not initialize LLM model: {e}")
                    raise ExtractionConfigError(str(e)) from e
            self._agent = self._init_receipt_agent(model)
            logger.info("LLM Service initialized successfully")
        return self._agent

    async def process_receipt(
        self,
        image_bytes: Optional[bytes],
        instructions: str,
        media_type: str = "image/jpeg",
        feedback: Optional[str] = None,
        previous_output: Optional[str] = None,
    ) -> RawBillPayload:
        """
        Extract a bill payload from a receipt image and splitting instructions

        Args:
            image_bytes: Receipt image, or None to work from the instructions alone
            instructions: User's description of who had what
            media_type: MIME type of the image
            feedback: Optional correction notes for a regeneration
            previous_output: Previous raw output the feedback refers to

        Returns:
            The raw payload, ready for ``normalize``

        Raises:
            ExtractionError: the receipt could not be turned into a payload
        """
        instructions = (instructions or "").strip()
        if not image_bytes and not instructions:
            raise ExtractionError("Upload a receipt image or describe the bill first")

        deps = ReceiptExtractionDeps(
            instructions=instructions,
            image_bytes=image_bytes,
            media_type=media_type,
            feedback=feedback,
            previous_output=previous_output,
        )

        user_prompt = f"User Instructions: {instructions}"
        if feedback and previous_output:
            user_prompt += (
                f"\n\nPrevious output had issues: {feedback}\nPrevious output was: {previous_output}"
                "\nPlease improve based on this feedback."
            )

        messages = [user_prompt]
        if image_bytes:
            messages.append(BinaryContent(data=image_bytes, media_type=media_type))

        agent = self.agent
        logger.info(f"Extracting bill from {'receipt image and ' if image_bytes else ''}instructions...")
        try:
            result = await agent.run(messages, deps=deps)
        except ModelHTTPError as e:
            logger.error(f"Extraction service returned HTTP {e.status_code}: {e.body}")
            raise ExtractionServiceError(f"Extraction service returned HTTP {e.status_code}") from e
        except Exception as e:
            logger.error(f"Error in LLM processing: {e}")
            raise ExtractionServiceError(f"Failed to process receipt - {e}") from e

        logger.debug(f"Raw extraction output: {result.output}")
        payload = parse_extraction_response(result.output)
        logger.info(
            f"Extracted {len(payload.participants)} participants and {len(payload.line_items)} line items"
        )
        return payload


@lru_cache(maxsize=1)
def get_llm_service() -> LLMService:
    return LLMService()
