"""Provider registry: configured adapters and the active selection."""

import functools
import logging
from typing import Dict, List, Optional

from .adapter import AdapterFactory, ProviderAdapter
from .anthropic_client import create_anthropic_client
from .config import Config
from .errors import ServiceNotInitializedError, UnknownServiceError
from .mock_client import MOCK_MODEL_ID, create_mock_client
from .models import ModelOption, ProviderInfo, ServiceConfig
from .openai_client import create_openai_client

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """
    Holds adapter instances keyed by provider id.

    Handles:
    - Factory registration and adapter initialization
    - Active (default) provider selection
    - Model enumeration and selection per provider
    """

    def __init__(self):
        self._factories: Dict[str, AdapterFactory] = {}
        self._services: Dict[str, ProviderAdapter] = {}
        self._active_id: Optional[str] = None

    def register_factory(self, service_id: str, factory: AdapterFactory):
        """Register an adapter factory under a provider id."""
        self._factories[service_id] = factory

    def initialize(self, service_id: str, config: ServiceConfig) -> Optional[ProviderAdapter]:
        """
        Create and register an adapter.

        Returns None without registering anything when the config has no
        API key or the factory fails. The first adapter registered
        becomes the active one.

        Raises:
            UnknownServiceError: If no factory is registered for the id
        """
        logger.info(f"Initializing AI service: {service_id}")

        factory = self._factories.get(service_id)
        if factory is None:
            raise UnknownServiceError(service_id)

        if not config.api_key:
            logger.warning(f"Skipping initialization of {service_id} service - no API key provided")
            return None

        try:
            service = factory(config)
        except Exception:
            logger.exception(f"Error creating service {service_id}")
            return None

        self._services[service_id] = service
        if self._active_id is None:
            self._active_id = service_id

        return service

    def set_active(self, service_id: str):
        """Make an initialized provider the active one."""
        if service_id not in self._services:
            raise ServiceNotInitializedError(service_id)

        self._active_id = service_id
        logger.info(f"Active AI service -> {service_id}")

    def get_active(self) -> ProviderAdapter:
        if self._active_id is None:
            raise ServiceNotInitializedError(None)
        return self.get(self._active_id)

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    def get(self, service_id: str) -> ProviderAdapter:
        service = self._services.get(service_id)
        if service is None:
            raise ServiceNotInitializedError(service_id)
        return service

    def list_all(self) -> List[ProviderAdapter]:
        return list(self._services.values())

    def has(self, service_id: str) -> bool:
        return service_id in self._services

    def list_models(self, service_id: str) -> List[ModelOption]:
        return self.get(service_id).get_available_models()

    def get_selected_model(self, service_id: str) -> str:
        return self.get(service_id).get_selected_model()

    def set_model(self, service_id: str, model_id: str):
        self.get(service_id).set_model(model_id)
        logger.info(f"Model for {service_id} -> {model_id}")

    def describe(self) -> List[ProviderInfo]:
        """Summary of every initialized provider."""
        return [
            ProviderInfo(
                id=service_id,
                name=service.name,
                selected_model=service.get_selected_model(),
                active=service_id == self._active_id,
            )
            for service_id, service in self._services.items()
        ]

    async def close(self):
        """Close every adapter's HTTP client."""
        for service in self._services.values():
            await service.close()


def build_registry(cfg: Config) -> ServiceRegistry:
    """
    Build the registry for a session from configuration.

    Real providers are initialized when any has credentials; otherwise,
    or when mock mode is forced, only the offline mock is registered.
    The preferred default becomes active when it initialized.
    """
    registry = ServiceRegistry()
    registry.register_factory(
        "openai", functools.partial(create_openai_client, timeout=cfg.request_timeout)
    )
    registry.register_factory(
        "anthropic",
        functools.partial(
            create_anthropic_client, timeout=cfg.request_timeout, api_version=cfg.anthropic_version
        ),
    )
    registry.register_factory(
        "mock",
        functools.partial(create_mock_client, chunk_delay=cfg.mock_chunk_delay, timeout=cfg.request_timeout),
    )

    if cfg.use_mock or not cfg.has_credentials():
        logger.warning("No provider credentials configured - using offline mock service")
        registry.initialize("mock", ServiceConfig(api_key="offline", model=MOCK_MODEL_ID))
        return registry

    for service_id, service_config in cfg.service_configs().items():
        registry.initialize(service_id, service_config)

    if registry.has(cfg.default_service):
        registry.set_active(cfg.default_service)
    else:
        logger.warning(f"Default AI service {cfg.default_service} unavailable, using {registry.active_id}")

    return registry
