"""Per-batch case selection.

Synopsis:
Pass one of the reconciliation pipeline: tags every batch, in stable order, with
exactly one rendering case so event synthesis can match on the case type.
"""

from __future__ import annotations

from typing import Iterable

from ._blends import BlendTable, stable_batch_order
from ._splits import resolve_split
from .types import (
    Batch,
    BatchCase,
    BlendMemberCase,
    BlendOriginCase,
    SimpleCase,
    SplitCase,
)


# --- Case classifier ---
# Purpose: Choose Simple, Split, BlendMember or BlendOrigin for one batch.
# Inputs: Batch and the pass-one blend table.
# Outputs: BatchCase.
def classify_batch(batch: Batch, blends: BlendTable) -> BatchCase:
    groups = blends.for_batch(batch.id)
    shared = {group.lot.id for group in groups}

    split = resolve_split(batch)
    if split is not None:
        return SplitCase(
            batch=batch,
            parent_lots=tuple(lot for lot in split.parent_lots if lot.id not in shared),
            children=tuple(child for child in split.children if child.lot.id not in shared),
            blends=groups,
        )

    if not groups:
        return SimpleCase(batch=batch, lots=batch.lots)

    own = tuple(lot for lot in batch.lots if lot.id not in shared)
    if not own and any(group.origin_batch_id == batch.id for group in groups):
        return BlendOriginCase(batch=batch, blends=groups)
    return BlendMemberCase(batch=batch, lots=own, blends=groups)


def classify_batches(batches: Iterable[Batch], blends: BlendTable) -> tuple[BatchCase, ...]:
    return tuple(classify_batch(batch, blends) for batch in stable_batch_order(batches))
