"""Custom exception hierarchy for conversation rewards.

Following error taxonomy: retryable, non-retryable, validation.
"""


class ConversationRewardsError(Exception):
    """Base exception for all application errors."""

    pass


class RetryableError(ConversationRewardsError):
    """Errors that can be retried (network issues, temporary failures)."""

    pass


class NonRetryableError(ConversationRewardsError):
    """Errors that should not be retried (validation, auth, logic errors)."""

    pass


class ValidationError(NonRetryableError):
    """Data validation errors."""

    pass


class ConfigurationError(ValidationError):
    """A pipeline stage configuration block failed validation."""

    pass


class MissingSpecificationError(ValidationError):
    """The issue specification text required to build a prompt is empty."""

    pass


class LLMAPIError(RetryableError):
    """LLM API communication errors."""

    pass
