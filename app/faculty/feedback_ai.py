"""
AI suggestions for faculty on their grading approach and remarks (Gemini)
"""

import logging
from abc import ABC, abstractmethod

import google.generativeai as genai

from app.core.exceptions import ServiceUnavailableError, StorageError

logger = logging.getLogger(__name__)

FEEDBACK_PROMPT = """You are an AI assistant providing feedback to faculty members on their grading approach and remarks.

Analyze the faculty's grading approach and remarks on student assignments and provide suggestions for improvement.

Grading Approach: {grading_approach}
Remarks: {remarks}

Suggestions:"""


def build_feedback_prompt(grading_approach: str, remarks: str) -> str:
    return FEEDBACK_PROMPT.format(grading_approach=grading_approach.strip(), remarks=remarks.strip())


class FeedbackGenerator(ABC):

    @abstractmethod
    async def suggest(self, grading_approach: str, remarks: str) -> str:
        ...


class GeminiFeedbackGenerator(FeedbackGenerator):

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash-lite"):
        if not api_key:
            raise ServiceUnavailableError("AI feedback")
        genai.configure(api_key=api_key)
        self.model_name = model_name

    async def suggest(self, grading_approach: str, remarks: str) -> str:
        prompt = build_feedback_prompt(grading_approach, remarks)
        try:
            model = genai.GenerativeModel(self.model_name)
            response = await model.generate_content_async(prompt)
            return response.text.strip()
        except Exception as e:
            logger.error(f"Gemini feedback request failed: {e}", exc_info=True)
            raise StorageError("AI feedback is unavailable right now, please try again", operation="ai_feedback")


class DisabledFeedbackGenerator(FeedbackGenerator):
    """Used when no GEMINI_API_KEY is configured"""

    async def suggest(self, grading_approach: str, remarks: str) -> str:
        raise ServiceUnavailableError("AI feedback")
