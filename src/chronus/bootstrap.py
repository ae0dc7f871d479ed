"""
Bootstrap: wiring an engine from configuration.

create_engine() builds the objects; the engine loads stored sequences as it is
constructed. bootstrap() also brings the engine to a usable state: civil
provider registered, a default context active and, when an event loop is
running, the tick loop started.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .config import ChronusConfig, load_config
from .kernel.channels import ChannelHub, SequenceGateway
from .kernel.engine import ChronusEngine
from .kernel.storage import KeyValueStorage, MemoryStorage, SqliteStorage
from .log import configure_logging
from .providers.civil import CivilProvider


@dataclass
class Runtime:
    """Everything bootstrap() wires together."""

    config: ChronusConfig
    engine: ChronusEngine
    hub: ChannelHub
    gateway: SequenceGateway

    def close(self) -> None:
        self.engine.stop()
        self.gateway.close()


def create_storage(config: ChronusConfig) -> KeyValueStorage:
    if config.db_path:
        return SqliteStorage(config.db_path)
    return MemoryStorage()


def create_engine(
    config: Optional[ChronusConfig] = None,
    hub: Optional[ChannelHub] = None,
) -> Runtime:
    config = config or load_config()
    engine = ChronusEngine(
        storage=create_storage(config),
        storage_key=config.storage_key,
        frame=config.default_frame,
        tick_interval=config.tick_interval,
    )
    hub = hub or ChannelHub()
    gateway = SequenceGateway(engine.sequences, hub, inbox=config.inbox_channel, reply_to=config.reply_channel)
    return Runtime(config=config, engine=engine, hub=hub, gateway=gateway)


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def bootstrap(
    config: Optional[ChronusConfig] = None,
    hub: Optional[ChannelHub] = None,
    *,
    configure_logs: bool = True,
) -> Runtime:
    config = config or load_config()
    if configure_logs:
        configure_logging(config.log_level)

    runtime = create_engine(config, hub)
    engine = runtime.engine

    engine.register_provider(CivilProvider())

    if not engine.list_contexts():
        engine.add_context(
            {"id": config.default_context_id, "label": "Local", "tz": config.default_tz}
        )
        engine.set_frame(config.default_frame)
        if _loop_running():
            engine.start()
        else:
            logger.debug("No running event loop; tick loop not started")
    return runtime
