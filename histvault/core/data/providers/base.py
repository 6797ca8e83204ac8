"""Provider gateway capability."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from histvault.core.models import FetchRequest, Observation


class ProviderGateway(ABC):
    """Executes one fetch request against an external data source.

    ``fetch`` returns ``None`` when the provider has nothing for the request
    (absent) and raises :class:`~histvault.core.exceptions.ProviderUnavailable`
    when the provider could not be asked at all.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""

    @abstractmethod
    async def fetch(self, request: FetchRequest) -> Sequence[Observation] | None:
        """Retrieve raw observations for ``request``."""

    async def aclose(self) -> None:
        """Release network resources held by the gateway."""

    async def __aenter__(self) -> ProviderGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["ProviderGateway"]
