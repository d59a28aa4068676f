# utils.py -- Test utilities for libellus.
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

"""Utility functions common to libellus tests."""

import os
import struct
import zlib
from hashlib import sha1
from typing import Optional, Union

from libellus.object_store import BaseObjectStore, DiskObjectStore
from libellus.objects import hex_to_sha, object_header, sha_to_hex
from libellus.pack import DELTA_TYPES, OFS_DELTA, REF_DELTA
from libellus.repo import Repository

# Plain files are very frequently used in tests, so let the mode be very short.
F = 0o100644  # Shorthand mode for Files.

ObjectSpec = tuple[int, Union[bytes, tuple[Union[int, bytes], bytes]]]


def obj_sha(type_num: int, data: bytes) -> bytes:
    """Compute the raw SHA of an object."""
    return sha1(object_header(type_num, len(data)) + data).digest()


def _encode_size(size: int) -> bytearray:
    ret = bytearray()
    c = size & 0x7F
    size >>= 7
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return ret


def create_delta(base_buf: bytes, target_buf: bytes) -> bytes:
    """Create a delta that copies the common prefix and inserts the rest.

    Good enough to exercise delta resolution; it makes no attempt at
    finding a small delta.
    """
    out = _encode_size(len(base_buf)) + _encode_size(len(target_buf))
    prefix = 0
    while (
        prefix < min(len(base_buf), len(target_buf))
        and base_buf[prefix] == target_buf[prefix]
    ):
        prefix += 1
    offset = 0
    while offset < prefix:
        size = min(prefix - offset, 0xFFFF)
        op = bytearray([0x80])
        for i in range(4):
            byte = (offset >> (i * 8)) & 0xFF
            if byte:
                op[0] |= 1 << i
                op.append(byte)
        for i in range(2):
            byte = (size >> (i * 8)) & 0xFF
            if byte:
                op[0] |= 1 << (4 + i)
                op.append(byte)
        out += op
        offset += size
    rest = target_buf[prefix:]
    while rest:
        out.append(len(rest[:0x7F]))
        out += rest[:0x7F]
        rest = rest[0x7F:]
    return bytes(out)


def _pack_object_header(type_num: int, size: int, delta_base: object) -> bytes:
    header = bytearray()
    c = (type_num << 4) | (size & 0x0F)
    size >>= 4
    while size:
        header.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    header.append(c)
    if type_num == OFS_DELTA:
        assert isinstance(delta_base, int)
        ret = bytearray([delta_base & 0x7F])
        delta_base >>= 7
        while delta_base:
            delta_base -= 1
            ret.insert(0, 0x80 | (delta_base & 0x7F))
            delta_base >>= 7
        header.extend(ret)
    elif type_num == REF_DELTA:
        assert isinstance(delta_base, bytes) and len(delta_base) == 20
        header.extend(delta_base)
    return bytes(header)


def write_pack_index_v2(
    path: str, entries: list[tuple[bytes, int, int]], pack_checksum: bytes
) -> None:
    """Write a version 2 pack index.

    Args:
      path: Path of the index to write
      entries: (raw sha, offset, crc32) tuples
      pack_checksum: Checksum of the pack file
    """
    entries = sorted(entries)
    fan_out = [0] * 0x100
    for name, _offset, _crc32 in entries:
        fan_out[name[0]] += 1
    data = bytearray(b"\377tOc" + struct.pack(">L", 2))
    total = 0
    for count in fan_out:
        total += count
        data += struct.pack(">L", total)
    for name, _offset, _crc32 in entries:
        data += name
    for _name, _offset, crc32 in entries:
        data += struct.pack(">L", crc32)
    large_offsets = []
    for _name, offset, _crc32 in entries:
        if offset < 2**31:
            data += struct.pack(">L", offset)
        else:
            data += struct.pack(">L", 2**31 | len(large_offsets))
            large_offsets.append(offset)
    for offset in large_offsets:
        data += struct.pack(">Q", offset)
    data += pack_checksum
    data += sha1(data).digest()
    with open(path, "wb") as f:
        f.write(data)


def build_pack(
    basename: str,
    objects_spec: list[ObjectSpec],
    store: Optional[BaseObjectStore] = None,
) -> list[bytes]:
    """Write test pack data from a concise spec.

    Args:
      basename: Path of the pack without the ``.pack`` or ``.idx`` suffix
      objects_spec: A list of (type_num, obj). For non-delta types, obj
        is the string of that object's data. For delta types, obj is a
        tuple of (base, data), where base is either an index in
        objects_spec of the base for that delta, or for a ref delta the
        hex SHA of an object in ``store``, in which case the resulting
        pack will be thin. data is the full, non-deltified data for that
        object.
      store: An optional object store for looking up external refs.
    Returns: The hex SHAs of the objects, in the order given
    """
    full_objects: dict[int, tuple[int, bytes, bytes]] = {}
    while len(full_objects) < len(objects_spec):
        for i, (type_num, obj) in enumerate(objects_spec):
            if i in full_objects:
                continue
            if type_num not in DELTA_TYPES:
                assert isinstance(obj, bytes)
                full_objects[i] = (type_num, obj, obj_sha(type_num, obj))
                continue
            assert isinstance(obj, tuple)
            base, data = obj
            if isinstance(base, int):
                if base not in full_objects:
                    continue
                base_type_num = full_objects[base][0]
            else:
                assert store is not None
                base_type_num, _ = store.get_raw(base)
            full_objects[i] = (base_type_num, data, obj_sha(base_type_num, data))

    body = bytearray(b"PACK" + struct.pack(">LL", 2, len(objects_spec)))
    entries = []
    offsets: dict[int, int] = {}
    for i, (type_num, obj) in enumerate(objects_spec):
        offset = len(body)
        delta_base: object = None
        if type_num == OFS_DELTA:
            base_index, data = obj
            delta_base = offset - offsets[base_index]
            payload = create_delta(full_objects[base_index][1], data)
        elif type_num == REF_DELTA:
            base_ref, data = obj
            if isinstance(base_ref, int):
                _, base_data, delta_base = full_objects[base_ref]
            else:
                assert store is not None
                _, base_data = store.get_raw(base_ref)
                delta_base = hex_to_sha(base_ref)
            payload = create_delta(base_data, data)
        else:
            payload = obj
        raw = _pack_object_header(type_num, len(payload), delta_base) + zlib.compress(
            payload
        )
        body += raw
        offsets[i] = offset
        entries.append((full_objects[i][2], offset, zlib.crc32(raw) & 0xFFFFFFFF))
    checksum = sha1(body).digest()
    body += checksum
    with open(basename + ".pack", "wb") as f:
        f.write(body)
    write_pack_index_v2(basename + ".idx", entries, checksum)
    return [sha_to_hex(full_objects[i][2]) for i in range(len(objects_spec))]


def add_pack(
    store: DiskObjectStore,
    objects_spec: list[ObjectSpec],
    external: Optional[BaseObjectStore] = None,
) -> list[bytes]:
    """Build a pack inside the pack directory of ``store``.

    Returns: The hex SHAs of the packed objects, in the order given
    """
    tmp = os.path.join(store.pack_dir, "tmp-pack")
    shas = build_pack(tmp, objects_spec, store=external)
    with open(tmp + ".pack", "rb") as f:
        f.seek(-20, os.SEEK_END)
        name = "pack-" + sha_to_hex(f.read(20)).decode("ascii")
    os.rename(tmp + ".idx", os.path.join(store.pack_dir, name + ".idx"))
    os.rename(tmp + ".pack", os.path.join(store.pack_dir, name + ".pack"))
    return shas


def init_repo(testcase, bare: bool = True, **kwargs) -> Repository:
    """Create a repository in a temporary directory for the duration of a test."""
    path = testcase.mkdtemp()
    if bare:
        repo = Repository.init_bare(path, **kwargs)
    else:
        repo = Repository.init(path, **kwargs)
    testcase.addCleanup(repo.close)
    return repo


def write_packed_refs(
    path: str,
    refs: dict[bytes, bytes],
    peeled: Optional[dict[bytes, bytes]] = None,
) -> None:
    """Write a ``packed-refs`` file the way ``git pack-refs`` does.

    Args:
      path: Path of the file to write
      refs: ref names mapped to ids
      peeled: ids that annotated tags among ``refs`` peel to; when given,
        the file starts with the ``peeled`` header
    """
    lines = []
    if peeled is not None:
        lines.append(b"# pack-refs with: peeled fully-peeled sorted")
    for name in sorted(refs):
        lines.append(refs[name] + b" " + name)
        if peeled and name in peeled:
            lines.append(b"^" + peeled[name])
    with open(path, "wb") as f:
        f.write(b"".join(line + b"\n" for line in lines))
