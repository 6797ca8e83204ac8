"""数据提供商网关."""

from histvault.core.data.providers.base import ProviderGateway
from histvault.core.data.providers.factory import PROVIDER_NAMES, create_gateway
from histvault.core.data.providers.polygon import PolygonGateway, polygon_ticker
from histvault.core.data.providers.stub_provider import StubGateway, make_trade_bars

__all__ = [
    "PROVIDER_NAMES",
    "ProviderGateway",
    "PolygonGateway",
    "StubGateway",
    "create_gateway",
    "make_trade_bars",
    "polygon_ticker",
]
