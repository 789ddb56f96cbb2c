"""
Which optional sections a given mapgeo version carries.

Every version-dependent field of the decoder goes through one of these
properties, so the byte walker never compares version numbers itself.
"""

from __future__ import annotations

from dataclasses import dataclass

MAGIC = b"OEGM"  # "MGEO" stored backwards
MIN_VERSION = 5
MAX_VERSION = 11
SUPPORTED_VERSIONS = tuple(range(MIN_VERSION, MAX_VERSION + 1))


@dataclass(frozen=True)
class FormatVersion:
    number: int

    @property
    def supported(self) -> bool:
        return MIN_VERSION <= self.number <= MAX_VERSION

    # header

    @property
    def has_header_reserved_byte(self) -> bool:
        # dropped in v7
        return self.number < 7

    @property
    def header_reserved_int_count(self) -> int:
        # one added in v9, a second in v10
        return int(self.number >= 9) + int(self.number >= 10)

    # object records

    @property
    def has_object_pad_byte(self) -> bool:
        # the only difference between v5 and v6
        return self.number >= 6

    @property
    def has_layer_mask(self) -> bool:
        return self.number >= 7

    @property
    def legacy_object_float_count(self) -> int:
        return 27 if self.number < 8 else 0

    @property
    def has_v11_reserved_byte(self) -> bool:
        return self.number >= 11

    @property
    def object_trailer_size(self) -> int:
        return 20 if self.number >= 9 else 0
