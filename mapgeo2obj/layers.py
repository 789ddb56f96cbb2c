from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .model import MAX_LAYER_COUNT, ObjectRecord

_log = logging.getLogger(__name__)

PRESENT = "1"
ABSENT = "0"


@dataclass(frozen=True)
class Layer:
    index: int
    presence: str  # one char per object
    duplicate_of: Optional[int] = None

    @property
    def mask(self) -> int:
        return 1 << self.index

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_of is not None


def presence_string(objects: Sequence[ObjectRecord], layer: int) -> str:
    bit = 1 << layer
    return "".join(PRESENT if (o.layer_mask & bit) == bit else ABSENT for o in objects)


def object_in_layer(obj: ObjectRecord, layer_filter: int) -> bool:
    return (obj.layer_mask & layer_filter) == layer_filter


@dataclass(frozen=True)
class LayerPlan:
    layers: List[Layer]
    discovered: int

    @classmethod
    def from_objects(cls, objects: Sequence[ObjectRecord], discovered: int) -> "LayerPlan":
        layers: List[Layer] = []
        for i in range(MAX_LAYER_COUNT):
            s = presence_string(objects, i)
            dup = next((l.index for l in layers if l.presence == s), None)
            layers.append(Layer(i, s, dup))
        return cls(layers, discovered)

    @property
    def layered(self) -> bool:
        # only 0xff masks means there are no distinct layers to split
        return self.discovered != 0

    def is_used(self, layer: Layer) -> bool:
        return (self.discovered & layer.mask) == layer.mask

    def exported(self, keep_unused: bool = False) -> List[Layer]:
        """Unique layers to write; empty when the file is unlayered."""
        if not self.layered:
            return []
        return [l for l in self.layers if not l.is_duplicate and (keep_unused or self.is_used(l))]

    def report(self) -> None:
        if not self.layered:
            _log.info("mapgeo did not contain multiple layers")
            return
        for l in self.layers:
            if l.is_duplicate:
                _log.info("layer %d is a duplicate of layer %d and was not converted", l.index, l.duplicate_of)
            elif not self.is_used(l):
                _log.info("layer %d contains no objects of its own and may be unused", l.index)
