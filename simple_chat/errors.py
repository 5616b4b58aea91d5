"""Exception types raised by the conversation service."""

from typing import Optional


class SimpleChatError(Exception):
    """Base class for service errors."""


class ProviderError(SimpleChatError):
    """Transport or protocol failure while talking to a provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.cause = cause
        self.status_code = status_code


class ServiceNotInitializedError(SimpleChatError):
    """Operation on a provider that was never successfully initialized."""

    def __init__(self, service_id: Optional[str]):
        if service_id is None:
            super().__init__("No default service has been set")
        else:
            super().__init__(f"Service with ID {service_id} is not initialized")
        self.service_id = service_id


class UnknownServiceError(SimpleChatError):
    """No adapter factory is registered under the requested id."""

    def __init__(self, service_id: str):
        super().__init__(f"No factory registered for service ID: {service_id}")
        self.service_id = service_id


class UnknownModelError(SimpleChatError):
    """Model id is not in the provider's catalog."""

    def __init__(self, service_id: str, model_id: str):
        super().__init__(f"Model {model_id} is not available for service {service_id}")
        self.service_id = service_id
        self.model_id = model_id


class TurnFailedError(SimpleChatError):
    """A conversation turn could not produce an assistant reply."""

    def __init__(self, provider: str, cause: BaseException):
        super().__init__(f"Turn failed on {provider}: {cause}")
        self.provider = provider
        self.cause = cause
