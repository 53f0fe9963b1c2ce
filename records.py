"""
Fixed-layout record readers for map lumps.

Each reader decodes as many whole records as the data holds. A trailing
partial record is ignored; broken WADs are common enough that this can't be
an error.
"""

import struct
from typing import List, NamedTuple, Type, TypeVar

from wad import decode_lump_name

# '<' little-endian, 'H' unsigned 16-bit, 'h' signed 16-bit, '8s' texture name.
LINEDEF_FORMAT = '<7H'
SECTOR_FORMAT = '<hh8s8sHHH'
THING_FORMAT = '<hhHHH'

LINEDEF_SIZE = struct.calcsize(LINEDEF_FORMAT)  # 14
SECTOR_SIZE = struct.calcsize(SECTOR_FORMAT)    # 26
THING_SIZE = struct.calcsize(THING_FORMAT)      # 10


class Linedef(NamedTuple):
    start_vertex: int
    end_vertex: int
    flags: int
    type: int
    tag: int
    front_sidedef: int
    back_sidedef: int


class Sector(NamedTuple):
    floor_height: int
    ceiling_height: int
    floor_texture: str
    ceiling_texture: str
    light_level: int
    type: int
    tag: int


class Thing(NamedTuple):
    x: int
    y: int
    angle: int
    type: int
    flags: int


R = TypeVar('R')


def whole_records(data: bytes, record_size: int) -> bytes:
    """Trim data down to a multiple of record_size."""
    return data[:len(data) - len(data) % record_size]


def _read_records(data: bytes, fmt: str, record_type: Type[R]) -> List[R]:
    size = struct.calcsize(fmt)
    return [record_type(*fields) for fields in struct.iter_unpack(fmt, whole_records(data, size))]


def read_linedefs(data: bytes) -> List[Linedef]:
    return _read_records(data, LINEDEF_FORMAT, Linedef)


def read_sectors(data: bytes) -> List[Sector]:
    sectors = []
    for floor, ceiling, floor_tex, ceiling_tex, light, type_, tag in struct.iter_unpack(
            SECTOR_FORMAT, whole_records(data, SECTOR_SIZE)):
        sectors.append(Sector(floor, ceiling, decode_lump_name(floor_tex), decode_lump_name(ceiling_tex),
                              light, type_, tag))
    return sectors


def read_things(data: bytes) -> List[Thing]:
    return _read_records(data, THING_FORMAT, Thing)


def read_dehacked_lines(data: bytes) -> List[str]:
    # DeHackEd files predate any notion of encoding; Latin-1 never fails.
    return data.decode('latin-1').split('\n')
