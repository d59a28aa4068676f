# pack.py -- Reading git pack files
# Copyright (C) 2026 The Libellus developers
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# Libellus is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Reading objects out of git pack files.

``git gc`` moves objects into packs: a ``.pack`` file with zlib-compressed,
often delta-encoded object bodies, and an ``.idx`` file mapping object ids
to offsets in it. Only version 2 indexes (the default since git 1.5.2) are
understood; packs may be version 2 or 3. Nothing here writes packs, new
objects are always stored loose.
"""

__all__ = [
    "DELTA_TYPES",
    "OFS_DELTA",
    "REF_DELTA",
    "Pack",
    "PackData",
    "PackIndex",
    "apply_delta",
    "bisect_find_sha",
    "load_pack_index",
    "read_pack_header",
    "unpack_object",
]

import logging
import mmap
import os
import threading
import zlib
from collections.abc import Callable, Iterator
from struct import unpack_from
from typing import BinaryIO, Optional, Union

from .errors import ApplyDeltaError, FileFormatException
from .file import GitFile
from .objects import ObjectID, RawObjectID, hex_to_sha, sha_to_hex

logger = logging.getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

PACK_HEADER_SIZE = 12
PACK_INDEX_MAGIC = b"\377tOc"

_FANOUT_OFFSET = 8
_NAMES_OFFSET = _FANOUT_OFFSET + 256 * 4
_ZLIB_BUFSIZE = 4096

# Longest chain of deltas followed before giving up.
MAX_DELTA_CHAIN = 10000

# (type_num, delta base, data); the base is None, an absolute pack offset
# (OFS_DELTA) or a raw object id (REF_DELTA).
PackEntry = tuple[int, Union[None, int, bytes], bytes]

ExternalResolver = Callable[[bytes], tuple[int, bytes]]


def _read_byte(read: Callable[[int], bytes]) -> int:
    b = read(1)
    if not b:
        raise FileFormatException("unexpected end of pack data")
    return b[0]


def _inflate(read: Callable[[int], bytes], size: int) -> bytes:
    decomp = zlib.decompressobj()
    out = bytearray()
    while not decomp.eof:
        chunk = read(_ZLIB_BUFSIZE)
        if not chunk:
            raise FileFormatException("zlib stream truncated")
        try:
            out += decomp.decompress(chunk)
        except zlib.error as exc:
            raise FileFormatException(f"corrupt zlib stream: {exc}") from exc
    if len(out) != size:
        raise FileFormatException(
            f"object inflated to {len(out)} bytes, header said {size}"
        )
    return bytes(out)


def read_pack_header(read: Callable[[int], bytes]) -> tuple[int, int]:
    """Read the 12 byte pack header.

    Returns: Tuple of (pack version, number of objects)
    Raises:
      FileFormatException: if this is not a version 2 or 3 pack
    """
    header = read(PACK_HEADER_SIZE)
    if len(header) < PACK_HEADER_SIZE or header[:4] != b"PACK":
        raise FileFormatException(f"not a pack file: {header[:4]!r}")
    version, num_objects = unpack_from(">LL", header, 4)
    if version not in (2, 3):
        raise FileFormatException(f"unsupported pack version {version}")
    return version, num_objects


def unpack_object(read: Callable[[int], bytes]) -> PackEntry:
    """Read one pack entry.

    Each entry starts with its type and inflated size, packed into
    little-endian groups of 7 bits (4 in the first byte). OFS_DELTA entries
    continue with the distance back to their base, REF_DELTA entries with
    the raw id of theirs. The zlib-compressed body follows.

    Args:
      read: Read function positioned at the start of the entry; it may be
        asked for more than the entry holds
    Returns: (type_num, delta base, data). For OFS_DELTA the base is the
        distance back from this entry, and for deltas the data is the delta.
    """
    byte = _read_byte(read)
    type_num = (byte >> 4) & 0x07
    size = byte & 0x0F
    shift = 4
    while byte & 0x80:
        byte = _read_byte(read)
        size |= (byte & 0x7F) << shift
        shift += 7

    base: Union[None, int, bytes] = None
    if type_num == OFS_DELTA:
        byte = _read_byte(read)
        distance = byte & 0x7F
        while byte & 0x80:
            byte = _read_byte(read)
            distance = ((distance + 1) << 7) | (byte & 0x7F)
        base = distance
    elif type_num == REF_DELTA:
        base = read(20)
        if len(base) != 20:
            raise FileFormatException("truncated delta base")
    return type_num, base, _inflate(read, size)


def _delta_header_size(delta: bytes, index: int) -> tuple[int, int]:
    size = 0
    shift = 0
    while True:
        if index >= len(delta):
            raise ApplyDeltaError("delta header truncated")
        byte = delta[index]
        index += 1
        size |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return size, index


def apply_delta(base: bytes, delta: bytes) -> bytes:
    """Rebuild an object from its base and a git delta.

    A delta holds the base and result sizes, then a list of instructions:
    copy a range of the base (high bit set) or insert the next ``n`` bytes
    of the delta (``n`` in 1..127).

    Raises:
      ApplyDeltaError: if the delta is malformed or does not fit ``base``
    """
    base_size, index = _delta_header_size(delta, 0)
    result_size, index = _delta_header_size(delta, index)
    if base_size != len(base):
        raise ApplyDeltaError(f"delta expects a {base_size} byte base, got {len(base)}")
    out = bytearray()
    end = len(delta)
    try:
        while index < end:
            opcode = delta[index]
            index += 1
            if opcode & 0x80:
                offset = 0
                for i in range(4):
                    if opcode & (1 << i):
                        offset |= delta[index] << (8 * i)
                        index += 1
                size = 0
                for i in range(3):
                    if opcode & (0x10 << i):
                        size |= delta[index] << (8 * i)
                        index += 1
                if size == 0:
                    size = 0x10000
                if offset + size > base_size:
                    raise ApplyDeltaError("copy runs past the end of the base")
                out += base[offset : offset + size]
            elif opcode:
                if index + opcode > end:
                    raise ApplyDeltaError("insert runs past the end of the delta")
                out += delta[index : index + opcode]
                index += opcode
            else:
                raise ApplyDeltaError("invalid delta opcode 0")
    except IndexError as exc:
        raise ApplyDeltaError("delta truncated") from exc
    if len(out) != result_size:
        raise ApplyDeltaError(f"delta produced {len(out)} bytes, expected {result_size}")
    return bytes(out)


def bisect_find_sha(
    start: int, end: int, sha: bytes, unpack_name: Callable[[int], bytes]
) -> Optional[int]:
    """Find ``sha`` among the sorted names ``start`` (inclusive) to ``end``.

    Args:
      unpack_name: returns the raw name at an index
    Returns: index of ``sha``, or None if it is not there
    """
    while start < end:
        middle = (start + end) // 2
        name = unpack_name(middle)
        if name < sha:
            start = middle + 1
        elif name > sha:
            end = middle
        else:
            return middle
    return None


def _map_file(f: BinaryIO) -> Union[bytes, mmap.mmap]:
    size = os.fstat(f.fileno()).st_size
    if size == 0:
        return b""
    try:
        return mmap.mmap(f.fileno(), size, access=mmap.ACCESS_READ)
    except (OSError, ValueError):
        return f.read()


class PackIndex:
    """Version 2 pack index.

    Layout: magic and version, a 256 entry fan-out table (entry ``b`` counts
    the objects whose first byte is at most ``b``), the sorted raw names,
    their CRC32s, 4 byte offsets and finally 8 byte offsets for entries whose
    4 byte offset has the high bit set.
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = os.fspath(path)
        with GitFile(self.path, "rb") as f:
            self._contents = _map_file(f)
        if len(self._contents) < _NAMES_OFFSET + 40:
            self.close()
            raise FileFormatException(f"{self.path}: pack index too short")
        magic = bytes(self._contents[:4])
        (version,) = unpack_from(">L", self._contents, 4)
        if magic != PACK_INDEX_MAGIC or version != 2:
            self.close()
            raise FileFormatException(f"{self.path}: not a version 2 pack index")
        self._fanout = unpack_from(">256L", self._contents, _FANOUT_OFFSET)
        count = self._fanout[-1]
        self._offsets_offset = _NAMES_OFFSET + 24 * count
        self._large_offsets_offset = self._offsets_offset + 4 * count
        if len(self._contents) < self._large_offsets_offset + 40:
            self.close()
            raise FileFormatException(f"{self.path}: pack index truncated")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r})"

    def close(self) -> None:
        if isinstance(self._contents, mmap.mmap):
            self._contents.close()

    def __enter__(self) -> "PackIndex":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __len__(self) -> int:
        return self._fanout[-1]

    def _name(self, i: int) -> bytes:
        offset = _NAMES_OFFSET + 20 * i
        return bytes(self._contents[offset : offset + 20])

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the hex ids in this index, in sorted order."""
        for i in range(len(self)):
            yield sha_to_hex(self._name(i))

    def __contains__(self, sha: bytes) -> bool:
        try:
            self.object_offset(sha)
        except KeyError:
            return False
        return True

    def object_offset(self, sha: bytes) -> int:
        """Return the offset of an object in the pack.

        Args:
          sha: hex or raw object id
        Raises:
          KeyError: if the index has no entry for ``sha``
        """
        raw: RawObjectID = hex_to_sha(sha) if len(sha) == 40 else RawObjectID(sha)
        first = raw[0]
        start = self._fanout[first - 1] if first else 0
        i = bisect_find_sha(start, self._fanout[first], raw, self._name)
        if i is None:
            raise KeyError(sha)
        (offset,) = unpack_from(">L", self._contents, self._offsets_offset + 4 * i)
        if offset & 0x80000000:
            (offset,) = unpack_from(
                ">Q",
                self._contents,
                self._large_offsets_offset + 8 * (offset & 0x7FFFFFFF),
            )
        return offset



def load_pack_index(path: Union[str, os.PathLike]) -> PackIndex:
    """Open the index file at ``path``."""
    return PackIndex(path)


class PackData:
    """Random access to the entries of a ``.pack`` file.

    Reads seek a shared file handle, so they are serialized with a lock and
    a PackData may be used from several threads.
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = os.fspath(path)
        self._file = GitFile(self.path, "rb")
        self._lock = threading.Lock()
        try:
            self.version, self._num_objects = read_pack_header(self._file.read)
        except BaseException:
            self._file.close()
            raise

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r})"

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "PackData":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __len__(self) -> int:
        return self._num_objects

    def get_object_at(self, offset: int) -> PackEntry:
        """Read the entry at ``offset``.

        Returns: (type_num, delta base, data); an OFS_DELTA base is returned
            as the absolute offset of the base entry
        Raises:
          FileFormatException: if the entry is malformed
        """
        if offset < PACK_HEADER_SIZE:
            raise FileFormatException(f"offset {offset} lies inside the pack header")
        with self._lock:
            self._file.seek(offset)
            type_num, base, data = unpack_object(self._file.read)
        if type_num == OFS_DELTA:
            assert isinstance(base, int)
            if base == 0 or base > offset - PACK_HEADER_SIZE:
                raise FileFormatException(f"bad delta base distance at offset {offset}")
            base = offset - base
        return type_num, base, data


class Pack:
    """A ``.pack`` and ``.idx`` pair sharing ``basename``.

    Both files are opened on first use. REF_DELTA bases that are not in the
    pack itself (thin packs) are looked up through ``resolve_ext_ref``.
    """

    def __init__(
        self, basename: str, resolve_ext_ref: Optional[ExternalResolver] = None
    ) -> None:
        self._basename = basename
        self._data: Optional[PackData] = None
        self._index: Optional[PackIndex] = None
        self._open_lock = threading.Lock()
        self.resolve_ext_ref = resolve_ext_ref

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._basename!r})"

    @property
    def data(self) -> PackData:
        with self._open_lock:
            if self._data is None:
                self._data = PackData(self._basename + ".pack")
                logger.debug("opened %s", self._data.path)
            return self._data

    @property
    def index(self) -> PackIndex:
        with self._open_lock:
            if self._index is None:
                self._index = load_pack_index(self._basename + ".idx")
                logger.debug("loaded %s (%d objects)", self._index.path, len(self._index))
            return self._index

    def close(self) -> None:
        with self._open_lock:
            if self._data is not None:
                self._data.close()
                self._data = None
            if self._index is not None:
                self._index.close()
                self._index = None

    def __enter__(self) -> "Pack":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self.index)

    def __iter__(self) -> Iterator[ObjectID]:
        return iter(self.index)

    def __contains__(self, sha: bytes) -> bool:
        return sha in self.index

    def get_raw(self, sha: bytes) -> tuple[int, bytes]:
        """Return the type number and full contents of an object.

        Delta chains are followed down to their base and the deltas are
        applied on the way back up.

        Raises:
          KeyError: if the object, or the base of a REF_DELTA, is missing
          ApplyDeltaError: if a delta is malformed or the chain is too long
        """
        type_num, base, data = self.data.get_object_at(self.index.object_offset(sha))
        deltas = []
        while type_num in DELTA_TYPES:
            if len(deltas) >= MAX_DELTA_CHAIN:
                raise ApplyDeltaError(f"delta chain of {sha!r} is too long")
            deltas.append(data)
            if type_num == OFS_DELTA:
                assert isinstance(base, int)
                type_num, base, data = self.data.get_object_at(base)
                continue
            assert isinstance(base, bytes)
            try:
                offset = self.index.object_offset(base)
            except KeyError:
                if self.resolve_ext_ref is None:
                    raise
                type_num, data = self.resolve_ext_ref(base)
                break
            type_num, base, data = self.data.get_object_at(offset)
        for delta in reversed(deltas):
            data = apply_delta(data, delta)
        return type_num, data
