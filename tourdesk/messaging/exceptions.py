"""Domain errors raised by the ticket delivery pipeline."""


class MessagingError(Exception):
    pass


class DispatchPreconditionError(MessagingError):
    """A dispatch was refused before any message was created.

    ``code`` is machine-readable (``missing_reference``, ``attachment_mismatch``,
    ...). ``security`` marks violations that must be logged at error level.
    """

    def __init__(self, message, code, security=False):
        super().__init__(message)
        self.code = code
        self.security = security


class PlanOverrideError(MessagingError):
    """A forced channel was requested but the booking lacks the contact field."""


class TemplateNotFound(MessagingError):
    pass


class SendError(MessagingError):
    """A vendor call failed. ``message`` is the persisted, failed Message."""

    def __init__(self, detail, message=None):
        super().__init__(detail)
        self.message = message


def categorize_error(error):
    """Bucket a vendor error string for the monitoring stats."""
    if not error:
        return 'unknown'
    text = error.lower()
    if 'invalid' in text and 'number' in text:
        return 'invalid_number'
    if 'undeliverable' in text or 'unreachable' in text:
        return 'unreachable'
    if 'rate' in text or 'limit' in text:
        return 'rate_limited'
    if 'timeout' in text:
        return 'timeout'
    if 'blocked' in text or 'spam' in text:
        return 'blocked'
    if 'template' in text:
        return 'template_error'
    return 'other'
