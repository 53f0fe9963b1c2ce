#!/usr/bin/python3

import os
import shutil
import struct
import sys
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional, Tuple, Union

HEADER_FORMAT = '<4sii'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
ENTRY_FORMAT = '<ii8s'
ENTRY_SIZE = struct.calcsize(ENTRY_FORMAT)

# The writer patches the directory position in after the lumps are written.
DIRECTORY_POSITION_OFFSET = 8

LUMP_NAME_LENGTH = 8
LUMP_NAME_ENCODING = 'cp437'


class WadFormatError(ValueError):
    pass


class LumpLookupError(LookupError):
    def __init__(self, lump_name: str, message: str):
        super().__init__(message)
        self.lump_name = lump_name


class LumpNotFoundError(LumpLookupError):
    def __init__(self, lump_name: str):
        super().__init__(lump_name, f"'{lump_name}' could not be found!")


class AmbiguousLumpError(LumpLookupError):
    def __init__(self, lump_name: str, count: int):
        super().__init__(lump_name, f"Multiple instances of '{lump_name}' found! ({count})")
        self.count = count


class WadType(Enum):
    UNKNOWN = None
    IWAD = b'IWAD'
    PWAD = b'PWAD'


class WadHeader(NamedTuple):
    magic: bytes
    entries: int
    directory_position: int


class DirectoryEntry(NamedTuple):
    position: int
    size: int
    name: str


LumpSource = Union[bytes, bytearray, str, os.PathLike]


def decode_lump_name(raw: bytes) -> str:
    """Decode a fixed-width lump name, stopping at the first NUL byte."""
    return raw.split(b'\x00', 1)[0].decode(LUMP_NAME_ENCODING)


def lump_name_bytes(name: str) -> bytes:
    """Encode a lump name the way the directory stores it."""
    name = name[:LUMP_NAME_LENGTH].upper()
    return name.encode(LUMP_NAME_ENCODING, errors='replace').ljust(LUMP_NAME_LENGTH, b'\x00')


class Wad:
    """
    Read access to a WAD file. The directory is read up front; lump data is
    read on demand with a seek, so the file stays open until close() is
    called or the with block exits.
    """
    def __init__(self, filename):
        self.filename = filename
        self.lumps: List[DirectoryEntry] = []
        self._file = open(filename, 'rb')
        try:
            self.header = self._read_header()

            # Unknown files don't get their directory read at all. An empty
            # lump list is all the analyzer needs to know about them.
            if self.type is not WadType.UNKNOWN:
                self.lumps = self._read_directory()
        except BaseException:
            self._file.close()
            raise

    def __enter__(self) -> 'Wad':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    @property
    def type(self) -> WadType:
        try:
            return WadType(self.header.magic)
        except ValueError:
            return WadType.UNKNOWN

    def _read_header(self) -> WadHeader:
        # Read and Parse the WAD Header (12 bytes)
        # The header contains the WAD type, number of lumps, and the
        # location of the directory (the "infotable").
        header_data = self._file.read(HEADER_SIZE)
        if len(header_data) < HEADER_SIZE:
            raise WadFormatError(f"Invalid WAD file {self.filename}: Header is too short.")

        return WadHeader(*struct.unpack(HEADER_FORMAT, header_data))

    def _read_directory(self) -> List[DirectoryEntry]:
        count = max(self.header.entries, 0)
        if count == 0:
            return []
        if self.header.directory_position < 0:
            raise WadFormatError(f"Invalid WAD file {self.filename}: Negative directory position.")

        # Don't trust the header's count for the size of the read.
        file_size = os.fstat(self._file.fileno()).st_size
        if self.header.directory_position + count * ENTRY_SIZE > file_size:
            raise WadFormatError(
                f"Invalid WAD file {self.filename}: Directory of {count} entries "
                f"runs past the end of the file."
            )

        self._file.seek(self.header.directory_position)
        directory_data = self._file.read(count * ENTRY_SIZE)
        if len(directory_data) < count * ENTRY_SIZE:
            raise WadFormatError(
                f"Invalid WAD file {self.filename}: Directory is incomplete. "
                f"Expected {count} entries, got {len(directory_data) // ENTRY_SIZE}."
            )

        return [
            DirectoryEntry(position, size, decode_lump_name(raw_name))
            for position, size, raw_name in struct.iter_unpack(ENTRY_FORMAT, directory_data)
        ]

    def find_lumps(self, name: str) -> List[DirectoryEntry]:
        """Return every directory entry called name, in directory order."""
        return [entry for entry in self.lumps if entry.name == name]

    def get_lump(self, lump: Union[DirectoryEntry, str]) -> bytes:
        """
        Read a lump's data. Lumps may be given as a directory entry or by
        name; a name must match exactly one entry.
        """
        if isinstance(lump, str):
            matches = self.find_lumps(lump)
            if not matches:
                raise LumpNotFoundError(lump)
            if len(matches) > 1:
                raise AmbiguousLumpError(lump, len(matches))
            lump = matches[0]

        if lump.size <= 0:
            return b''
        if lump.position < 0:
            raise WadFormatError(f"Negative position for '{lump.name}'.")

        self._file.seek(lump.position)
        lump_data = self._file.read(lump.size)
        if len(lump_data) < lump.size:
            raise WadFormatError(
                f"Incomplete lump data for '{lump.name}'. "
                f"Expected {lump.size} bytes, got {len(lump_data)}."
            )
        return lump_data


def _copy_source(source: LumpSource, f) -> int:
    if isinstance(source, (bytes, bytearray)):
        f.write(source)
        return len(source)

    start = f.tell()
    with open(source, 'rb') as src:
        shutil.copyfileobj(src, f)
    return f.tell() - start


def write_wad(filename, lumps: Iterable[Tuple[str, LumpSource]]) -> List[DirectoryEntry]:
    """
    Create a PWAD from (name, source) pairs. A source is either the lump's
    bytes or the path of a file to copy in verbatim. Returns the directory
    that was written.
    """
    lumps = list(lumps)
    directory = []

    with open(filename, 'wb') as f:
        # Header. The directory position gets filled in at the end.
        f.write(struct.pack(HEADER_FORMAT, WadType.PWAD.value, len(lumps), 0))

        # Lump data
        for name, source in lumps:
            position = f.tell()
            size = _copy_source(source, f)
            directory.append((position, size, lump_name_bytes(name)))

        # Directory
        directory_position = f.tell()
        for position, size, raw_name in directory:
            f.write(struct.pack(ENTRY_FORMAT, position, size, raw_name))

        f.seek(DIRECTORY_POSITION_OFFSET)
        f.write(struct.pack('<i', directory_position))

    return [DirectoryEntry(position, size, decode_lump_name(raw_name))
            for position, size, raw_name in directory]


def main(argv: Optional[List[str]] = None) -> int:
    """Print the directory of a WAD file."""
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: wad.py <file.wad>", file=sys.stderr)
        return 1

    try:
        with Wad(argv[0]) as w:
            print(f"{argv[0]}: {w.type.name}, {len(w.lumps)} lumps")
            for index, entry in enumerate(w.lumps):
                print(f"{index:5d}  {entry.name:<8s}  {entry.position:10d}  {entry.size:10d}")
    except (OSError, WadFormatError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
