from __future__ import annotations
import logging
from typing import Dict, Optional

from tailor.resilience.classifier import classify

from .errors import ClassifiedError, ErrorCategory

logger = logging.getLogger(__name__)

_MESSAGES: Dict[ErrorCategory, str] = {
    ErrorCategory.RATE_LIMITED: "Too many requests right now. Please wait a moment and try again.",
    ErrorCategory.OVERLOADED: "The AI service is busy. Please try again shortly.",
    ErrorCategory.TIMEOUT: "The request took too long to complete. Please try again.",
    ErrorCategory.NETWORK: "Could not reach the AI service. Check your connection and try again.",
    ErrorCategory.AUTH_FAILURE: "The AI service rejected the configured credentials. Check the API key.",
    ErrorCategory.VALIDATION_FAILURE: "The AI service rejected the request. Review your input and try again.",
}

DEFAULT_MESSAGE = "Failed to generate. The AI may be busy or unavailable. Please try again."


def message_for(category: ErrorCategory) -> str:
    return _MESSAGES.get(category, DEFAULT_MESSAGE)


def translate(error: BaseException, context: str = "", *,
              classified: Optional[ClassifiedError] = None) -> str:
    """
    Map a raw failure to a short, stable message safe to show a user.
    The raw error and its classification are logged, never returned.
    """
    if classified is None:
        classified = classify(error)
    message = message_for(classified.category)
    logger.error(
        "%s failed: category=%s retryable=%s error_type=%s error=%r -> %r",
        context or "generation",
        classified.category.value,
        classified.is_retryable,
        type(error).__name__,
        classified.message,
        message,
    )
    return message
