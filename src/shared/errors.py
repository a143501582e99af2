"""Error taxonomy for the marketplace.

Every error carries a ``messages`` dict keyed by field (``{"status": ["..."]}``)
and a ``retryable`` flag. Retryable errors tell an upstream caller (the payment
processor, a client) that the same request may succeed later; terminal errors
will never succeed as sent.
"""


class MarketplaceError(Exception):
    """Base class for every domain-level failure."""

    retryable = False
    default_field = "error"

    def __init__(self, messages: dict | str | None = None):
        if messages is None:
            messages = {self.default_field: [self.__class__.__name__]}
        elif isinstance(messages, str):
            messages = {self.default_field: [messages]}
        self.messages = messages
        super().__init__(messages)

    @property
    def code(self) -> str:
        return self.__class__.__name__

    def first_message(self) -> str:
        for values in self.messages.values():
            if values:
                return str(values[0])
        return self.code


class Unauthenticated(MarketplaceError):
    default_field = "customer_id"


class NotFound(MarketplaceError):
    pass


class ValidationError(MarketplaceError):
    pass


class InvalidCheckoutState(MarketplaceError):
    default_field = "checkout"


class InvalidSignature(MarketplaceError):
    default_field = "signature"


class MalformedMetadata(MarketplaceError):
    retryable = True
    default_field = "metadata"


class PersistenceFailure(MarketplaceError):
    retryable = True
    default_field = "persistence"


class PaymentProviderUnavailable(MarketplaceError):
    retryable = True
    default_field = "payment_provider"


class Forbidden(MarketplaceError):
    default_field = "actor"


class InvalidTransition(MarketplaceError):
    default_field = "status"


class MissingContactInfo(MarketplaceError):
    default_field = "recipient"


class RateProviderError(MarketplaceError):
    """Raised by rate providers; always absorbed by the conversion service."""

    retryable = True
    default_field = "rate_provider"
