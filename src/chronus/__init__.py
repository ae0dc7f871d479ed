"""
chronus: time-anchor scheduling engine.

Public API re-exports from kernel/ (machinery), lib/ (helpers) and the
bundled providers.
"""
from loguru import logger as _logger

from .kernel import *  # noqa: F401, F403
from .kernel import __all__ as _kernel_all
from .lib.blender import SequenceStepView, blend_subset, pick_sequence_steps
from .lib.runner import RecurrencePattern, build_recurring_run, build_single_run
from .providers.civil import CivilProvider
from .config import ChronusConfig, load_config
from .bootstrap import Runtime, bootstrap, create_engine
from .log import configure_logging

_logger.disable("chronus")

__all__ = [
    *_kernel_all,
    # Lib
    "SequenceStepView",
    "blend_subset",
    "pick_sequence_steps",
    "RecurrencePattern",
    "build_recurring_run",
    "build_single_run",
    # Providers
    "CivilProvider",
    # Wiring
    "ChronusConfig",
    "load_config",
    "Runtime",
    "bootstrap",
    "create_engine",
    "configure_logging",
]
