"""
Blender: scoped, read-only views over the anchor store.

Nothing here writes to the engine. blend_subset narrows an existing blend
by provider source and time window; pick_sequence_steps flattens sequence
templates so they can be fed to the runner.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Collection, Iterable, List, Optional, Union

from pydantic import ConfigDict

from ..kernel.schema import Anchor, Frame, SequenceStep, to_timestamp

if TYPE_CHECKING:
    from ..kernel.engine import ChronusEngine
    from ..kernel.sequences import SequenceLibrary


class SequenceStepView(SequenceStep):
    """A step annotated with the sequence it belongs to."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    sequence_id: str
    sequence_label: Optional[str] = None


def blend_subset(
    engine: "ChronusEngine",
    *,
    context_id: Optional[str] = None,
    frame: Optional[Union[Frame, str]] = None,
    start: Any = None,
    end: Any = None,
    sources: Collection[str] = (),
) -> List[Anchor]:
    """
    Anchors of one bucket whose source is in ``sources`` (all sources when
    empty) and whose time falls within [start, end] (either bound optional).
    """
    lower: Optional[datetime] = to_timestamp(start) if start is not None else None
    upper: Optional[datetime] = to_timestamp(end) if end is not None else None
    wanted = set(sources)

    selected = []
    for anchor in engine.get_anchors(context_id=context_id, frame=frame):
        if wanted and anchor.source not in wanted:
            continue
        if lower is not None and anchor.at < lower:
            continue
        if upper is not None and anchor.at > upper:
            continue
        selected.append(anchor)
    selected.sort(key=lambda a: a.at)
    return selected


def pick_sequence_steps(
    library: "SequenceLibrary", ids: Optional[Iterable[str]] = None
) -> List[SequenceStepView]:
    """Flatten the steps of all sequences (or those listed in ``ids``)."""
    steps: List[SequenceStepView] = []
    for sequence in library.get_sequences(ids=ids):
        for step in sequence.steps:
            fields = step.model_dump(exclude_unset=True)
            fields.update(sequence_id=sequence.id, sequence_label=sequence.label)
            steps.append(SequenceStepView.model_validate(fields))
    return steps
