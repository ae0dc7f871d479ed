"""
Kernel: the machinery of Chronus.

- schema: contexts, frames, anchors, sequences
- events: typed event bus
- registry: anchor provider contract and registry
- store: bucketed anchor store
- storage / sequences: persisted sequence library
- channels: message channels and the sequence gateway
- ticker: periodic countdown publisher
- engine: the engine instance tying it all together

The kernel is distinct from lib/ (pure helpers built on top of it).
"""
from .errors import (
    ChronusError,
    ConfigError,
    InvalidAnchor,
    InvalidContext,
    InvalidCursor,
    InvalidFrame,
    InvalidProvider,
    UnknownContext,
)
from .schema import Anchor, Context, EngineState, Frame, ProviderQuery, Sequence, SequenceStep, to_timestamp
from .events import (
    AnchorTick,
    BlendUpdated,
    ContextChanged,
    CursorChanged,
    Event,
    EventBus,
    EventKind,
    ProviderError,
    SequencesUpdated,
    Subscription,
)
from .registry import AnchorProvider, FunctionProvider, ProviderRegistry
from .store import AnchorStore
from .storage import KeyValueStorage, MemoryStorage, SqliteStorage, StorageErrorKind, StorageResult
from .sequences import SequenceLibrary
from .channels import Channel, ChannelHub, SequenceGateway, SequencesResponse
from .ticker import TickEngine
from .engine import ChronusEngine

__all__ = [
    # Errors
    "ChronusError",
    "ConfigError",
    "InvalidAnchor",
    "InvalidContext",
    "InvalidCursor",
    "InvalidFrame",
    "InvalidProvider",
    "UnknownContext",
    # Schema
    "Anchor",
    "Context",
    "EngineState",
    "Frame",
    "ProviderQuery",
    "Sequence",
    "SequenceStep",
    "to_timestamp",
    # Events
    "AnchorTick",
    "BlendUpdated",
    "ContextChanged",
    "CursorChanged",
    "Event",
    "EventBus",
    "EventKind",
    "ProviderError",
    "SequencesUpdated",
    "Subscription",
    # Providers
    "AnchorProvider",
    "FunctionProvider",
    "ProviderRegistry",
    # Storage
    "AnchorStore",
    "KeyValueStorage",
    "MemoryStorage",
    "SqliteStorage",
    "StorageErrorKind",
    "StorageResult",
    "SequenceLibrary",
    # Channels
    "Channel",
    "ChannelHub",
    "SequenceGateway",
    "SequencesResponse",
    # Engine
    "TickEngine",
    "ChronusEngine",
]
