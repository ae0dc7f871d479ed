from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from loguru import logger

from .errors import InvalidProvider
from .schema import Anchor, ProviderQuery


AnchorLike = Union[Anchor, dict]
ProvideResult = Union[Iterable[AnchorLike], None, Awaitable[Optional[Iterable[AnchorLike]]]]


@runtime_checkable
class SupportsProvide(Protocol):
    """Structural form of the provider contract."""

    name: str

    def provide(self, query: ProviderQuery) -> ProvideResult: ...


class AnchorProvider(ABC):
    """
    Base class for anchor-computation plugins.

    Subclasses set ``name`` and implement ``provide``, which may be a plain
    method or a coroutine. Returning anything other than a list or tuple
    means "no anchors this refresh".
    """

    name: str = ""

    @abstractmethod
    def provide(self, query: ProviderQuery) -> ProvideResult:
        raise NotImplementedError


class FunctionProvider(AnchorProvider):
    """Wrap a plain (sync or async) callable as a provider."""

    def __init__(self, name: str, fn: Callable[[ProviderQuery], ProvideResult]):
        self.name = name
        self._fn = fn

    def provide(self, query: ProviderQuery) -> ProvideResult:
        return self._fn(query)

    def __repr__(self) -> str:
        return f"FunctionProvider({self.name!r})"


def check_provider(provider: Any) -> None:
    """Raise InvalidProvider unless provider satisfies the contract."""
    if not isinstance(provider, (AnchorProvider, SupportsProvide)):
        raise InvalidProvider(
            f"{type(provider).__name__} is not a provider (needs a name and a provide() method)"
        )
    name = getattr(provider, "name", None)
    if not isinstance(name, str) or not name:
        raise InvalidProvider(f"{type(provider).__name__} has no provider name")
    if not callable(getattr(provider, "provide", None)):
        raise InvalidProvider(f"Provider {name!r} has no callable provide()")


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: List[SupportsProvide] = []

    def register(self, provider: SupportsProvide) -> bool:
        """
        Add a provider after checking its contract.

        Returns False when this exact provider object is already registered.
        """
        check_provider(provider)
        if any(p is provider for p in self._providers):
            return False
        self._providers.append(provider)
        logger.info("Registered anchor provider {}", provider.name)
        return True

    def unregister(self, provider: SupportsProvide) -> bool:
        for index, existing in enumerate(self._providers):
            if existing is provider:
                del self._providers[index]
                return True
        return False

    def get(self, name: str) -> Optional[SupportsProvide]:
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    def all(self) -> Sequence[SupportsProvide]:
        return tuple(self._providers)

    def __len__(self) -> int:
        return len(self._providers)
