"""Provider gateway selection from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from histvault.core.data.providers.polygon import PolygonGateway
from histvault.core.data.providers.stub_provider import StubGateway
from histvault.core.exceptions import ConfigurationError
from histvault.core.patterns import RetryConfig

if TYPE_CHECKING:
    from histvault.core.config import ProviderConfig
    from histvault.core.data.providers.base import ProviderGateway

PROVIDER_NAMES = ("polygon", "stub")


def create_gateway(config: ProviderConfig) -> ProviderGateway:
    """根据提供商配置创建网关."""

    name = config.name.strip().lower()
    if name == "polygon":
        retry_config = RetryConfig(
            max_attempts=max(config.max_retries, 0) + 1,
            base_delay=config.backoff_factor,
            max_delay=config.max_backoff,
        )
        return PolygonGateway(
            config.api_key or "",
            base_url=config.base_url,
            timeout=config.timeout,
            page_limit=config.page_limit,
            retry_config=retry_config,
        )
    if name == "stub":
        return StubGateway()
    raise ConfigurationError(
        f"Unknown provider '{config.name}', expected one of {', '.join(PROVIDER_NAMES)}",
        parameter="provider.name",
    )


__all__ = ["PROVIDER_NAMES", "create_gateway"]
