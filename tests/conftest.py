"""Shared fixtures for the Wadinator test suite."""
import struct
import sys
from pathlib import Path

import pytest

# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Lump order inside a map, after the marker.
MAP_LUMP_ORDER = ("THINGS", "LINEDEFS", "SIDEDEFS", "VERTEXES", "SEGS",
                  "SSECTORS", "NODES", "SECTORS", "REJECT", "BLOCKMAP")


def pack_linedef(flags=0, type=0, tag=0):
    return struct.pack('<7H', 0, 1, flags, type, tag, 0, 0xFFFF)


def pack_sector(type=0, tag=0, floor=0, ceiling=128):
    return struct.pack('<hh8s8sHHH', floor, ceiling, b'FLOOR4_8', b'CEIL3_5', 160, type, tag)


def pack_thing(type=1, flags=7, x=0, y=0, angle=90):
    return struct.pack('<hhHHH', x, y, angle, type, flags)


def raw_wad(lumps, magic=b'PWAD'):
    """Build WAD bytes by hand: header, lump data, then the directory."""
    data = b''
    directory = b''
    offset = 12
    for name, payload in lumps:
        directory += struct.pack('<ii8s', offset, len(payload), name.encode('ascii'))
        data += payload
        offset += len(payload)
    return struct.pack('<4sii', magic, len(lumps), offset) + data + directory


def map_lumps(name, things=(), linedefs=(), sectors=()):
    """A map marker followed by the usual ten lumps."""
    payloads = {
        "THINGS": b''.join(things),
        "LINEDEFS": b''.join(linedefs),
        "SECTORS": b''.join(sectors),
    }
    return [(name, b'')] + [(lump, payloads.get(lump, b'')) for lump in MAP_LUMP_ORDER]


class WadHelpers:
    pack_linedef = staticmethod(pack_linedef)
    pack_sector = staticmethod(pack_sector)
    pack_thing = staticmethod(pack_thing)
    raw_wad = staticmethod(raw_wad)
    map_lumps = staticmethod(map_lumps)


@pytest.fixture
def wad_helpers():
    return WadHelpers


@pytest.fixture
def make_wad(tmp_path):
    """Write a WAD built from (name, bytes) pairs and return its path."""
    counter = iter(range(1000))

    def _make(lumps, magic=b'PWAD'):
        path = tmp_path / f"test{next(counter)}.wad"
        path.write_bytes(raw_wad(lumps, magic))
        return path

    return _make
