"""
Domain exceptions.

Typed exceptions for explicit error handling. The conversation engine maps
each family to a user-facing outcome:

- ExternalServiceError: retry invitation, session unchanged
- ValidationError: targeted correction prompt, session unchanged
- ExpiredSessionError: "resend the photo", session cleared
"""

from __future__ import annotations


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    Allows catching all domain errors with single except clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# MEAL DOMAIN EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class RecognitionError(DomainError):
    """
    AI food recognition failed.

    Raised when:
    - Vision API returns no usable content
    - Response does not match the expected schema

    Example:
        >>> raise RecognitionError("Model returned no usable content")
    """

    pass


# ═══════════════════════════════════════════════════════════
# CONVERSATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ValidationError(DomainError):
    """
    User input validation failed.

    Raised when:
    - Weight reply is not a number
    - Selected item index is out of range
    """

    pass


class InvalidWeightError(ValidationError):
    """
    Weight reply could not be parsed.

    Example:
        >>> raise InvalidWeightError("Not a number: 'abc'")
    """

    pass


class InvalidSelectionError(ValidationError):
    """
    Menu selection does not point to an item of the pending analysis.

    Example:
        >>> raise InvalidSelectionError("edit_item_5 with 3 pending items")
    """

    pass


class ExpiredSessionError(DomainError):
    """
    Interactive reply against a cleared or replaced analysis.

    Raised when:
    - No pending analysis exists for the conversation
    - Edit cursor belongs to a superseded analysis
    """

    pass


class EnvelopeError(DomainError):
    """
    Inbound webhook payload is malformed.

    Example:
        >>> raise EnvelopeError("Body is not valid JSON")
    """

    pass


# ═══════════════════════════════════════════════════════════
# EXTERNAL SERVICE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ExternalServiceError(DomainError):
    """
    External service call failed.

    Base class for all collaborator errors (network, API, 5xx).

    Example:
        >>> raise ExternalServiceError("Graph API failed: 502")
    """

    pass


class RateLimitError(ExternalServiceError):
    """
    API rate limit exceeded.

    Example:
        >>> raise RateLimitError("USDA rate limit (attempt 1)")
    """

    pass


class TimeoutError(ExternalServiceError):  # noqa: A001
    """
    API call timed out.

    Example:
        >>> raise TimeoutError("USDA API timeout after 15s")
    """

    pass


class ServiceUnavailableError(ExternalServiceError):
    """
    External service unavailable.

    Raised when:
    - Service down
    - Circuit breaker open
    """

    pass


class MediaDownloadError(ExternalServiceError):
    """
    Inbound media could not be fetched.

    Raised when:
    - Media metadata lookup fails
    - Binary download fails or is empty
    """

    pass


class TransportError(ExternalServiceError):
    """
    Outbound chat message could not be delivered.

    Example:
        >>> raise TransportError("Graph API rejected message: 400")
    """

    pass


class NutrientLookupError(ExternalServiceError):
    """
    Nutrient reference lookup failed (network or parse).

    The enrichment pipeline treats it exactly like "not found".
    """

    pass
