# objects.py -- Access to base git objects
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

"""Access to base git objects.

Three kinds of object are stored: blobs, trees and commits. Each object is
identified by the SHA-1 of its canonical encoding, ``b"<type> <size>\\0"``
followed by the body, which makes this module compatible with git's own
object format.
"""

__all__ = [
    "OBJECT_CLASSES",
    "S_IFGITLINK",
    "ZERO_SHA",
    "Blob",
    "Commit",
    "ObjectID",
    "RawObjectID",
    "ShaFile",
    "Tree",
    "TreeEntry",
    "check_hexsha",
    "format_time_entry",
    "format_timezone",
    "hex_to_filename",
    "hex_to_sha",
    "key_entry",
    "object_class",
    "object_header",
    "parse_time_entry",
    "parse_timezone",
    "parse_tree",
    "serialize_tree",
    "sha_to_hex",
    "sorted_tree_items",
    "valid_hexsha",
]

import binascii
import os
import stat
import zlib
from collections.abc import Iterable, Iterator
from hashlib import sha1
from typing import NamedTuple, NewType, Optional, Union

from .errors import ChecksumMismatch, ObjectFormatException

ObjectID = NewType("ObjectID", bytes)
RawObjectID = NewType("RawObjectID", bytes)

ZERO_SHA = ObjectID(b"0" * 40)

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_AUTHOR_HEADER = b"author"
_COMMITTER_HEADER = b"committer"
_ENCODING_HEADER = b"encoding"

# Length of the binary and hex forms of a SHA-1 object id.
OID_LENGTH = 20
HEX_LENGTH = 40

S_IFGITLINK = 0o160000

MAX_TIME = 9223372036854775807  # (2**63) - 1 - signed long int max


def S_ISGITLINK(m: int) -> bool:
    """Check if a mode indicates a submodule.

    Args:
      m: Mode to check
    Returns: a ``boolean``
    """
    return stat.S_IFMT(m) == S_IFGITLINK


def _decompress(string: bytes) -> bytes:
    dcomp = zlib.decompressobj()
    dcomped = dcomp.decompress(string)
    dcomped += dcomp.flush()
    return dcomped


def sha_to_hex(sha: bytes) -> ObjectID:
    """Return the hex form of a raw 20 byte object id."""
    if len(sha) != 20:
        raise ValueError(f"raw object id must be 20 bytes, got {sha!r}")
    return ObjectID(binascii.hexlify(sha))


def hex_to_sha(hex: Union[bytes, str]) -> RawObjectID:
    """Return the raw 20 byte form of a hex object id.

    Raises:
      ValueError: if ``hex`` is not 40 hex digits
    """
    if len(hex) != HEX_LENGTH:
        raise ValueError(f"hex object id must be {HEX_LENGTH} digits, got {hex!r}")
    return RawObjectID(binascii.unhexlify(hex))


def valid_hexsha(hex: Union[bytes, str]) -> bool:
    """Check whether a value is a well-formed hex object id."""
    if len(hex) != HEX_LENGTH:
        return False
    try:
        binascii.unhexlify(hex)
    except (TypeError, binascii.Error):
        return False
    else:
        return True


def check_hexsha(hex: Union[bytes, str], error_msg: str) -> None:
    """Check if a string is a valid hex sha string.

    Args:
      hex: Hex string to check
      error_msg: Error message to use in exception
    Raises:
      ObjectFormatException: Raised when the string is not valid
    """
    if not valid_hexsha(hex):
        raise ObjectFormatException(f"{error_msg} {hex!r}")


def hex_to_filename(path: Union[str, bytes], hex: Union[str, bytes]) -> Union[str, bytes]:
    """Takes a hex sha and returns its filename relative to the given path."""
    # os.path.join accepts bytes or unicode, but all args must be of the same
    # type. Make sure that hex which is expected to be bytes, is the same type
    # as path.
    if isinstance(path, str) and isinstance(hex, bytes):
        hex = hex.decode("ascii")
    elif isinstance(path, bytes) and isinstance(hex, str):
        hex = hex.encode("ascii")
    dir = hex[:2]
    file = hex[2:]
    # Check from object dir
    return os.path.join(path, dir, file)  # type: ignore[arg-type]


def object_header(num_type: int, length: int) -> bytes:
    """Return an object header for the given numeric type and text length."""
    cls = object_class(num_type)
    if cls is None:
        raise AssertionError(f"unsupported class type num: {num_type}")
    return cls.type_name + b" " + str(length).encode("ascii") + b"\0"


def object_class(type: Union[bytes, int]) -> Optional[type["ShaFile"]]:
    """Get the object class corresponding to the given type.

    Args:
      type: Either a type name string or a numeric type.
    Returns: The ShaFile subclass corresponding to the given type, or None if
        type is not a valid type name/number.
    """
    return _TYPE_MAP.get(type, None)


def serializable_property(name: str, docstring: Optional[str] = None) -> property:
    """A property that helps tracking whether serialization is necessary."""

    def set(obj: "ShaFile", value: object) -> None:
        setattr(obj, "_" + name, value)
        obj._needs_serialization = True

    def get(obj: "ShaFile") -> object:
        return getattr(obj, "_" + name)

    return property(get, set, doc=docstring)


def git_line(*items: bytes) -> bytes:
    """Formats items into a space separated line."""
    return b" ".join(items) + b"\n"


class ShaFile:
    """A git SHA file."""

    __slots__ = ("_chunked_text", "_needs_serialization", "_sha")

    type_name: bytes
    type_num: int
    _chunked_text: Optional[list[bytes]]
    _sha: Optional[ObjectID]

    def __init__(self) -> None:
        """Initialize a ShaFile."""
        self._sha = None
        self._chunked_text = []
        self._needs_serialization = True

    @staticmethod
    def _parse_legacy_object_header(magic: bytes, f_read) -> "ShaFile":
        """Parse a legacy object, creating it but not reading the file."""
        bufsize = 1024
        decomp = zlib.decompressobj()
        header = decomp.decompress(magic)
        start = 0
        end = -1
        while end < 0:
            extra = f_read(bufsize)
            header += decomp.decompress(extra)
            magic += extra
            end = header.find(b"\0", start)
            start = len(header)
            if not extra and end < 0:
                raise ObjectFormatException("Missing object header terminator")
        header = header[:end]
        type_name, size = header.split(b" ", 1)
        try:
            int(size)  # sanity check
        except ValueError as exc:
            raise ObjectFormatException(f"Object size not an integer: {exc}") from exc
        obj_class = object_class(type_name)
        if not obj_class:
            raise ObjectFormatException(
                "Not a known type: {}".format(type_name.decode("ascii", "replace"))
            )
        return obj_class()

    def _parse_legacy_object(self, map: bytes) -> None:
        """Parse a legacy object, setting the raw string."""
        text = _decompress(map)
        header_end = text.find(b"\0")
        if header_end < 0:
            raise ObjectFormatException("Invalid object header, no \\0")
        header = text[:header_end]
        try:
            size = int(header.split(b" ", 1)[1])
        except (IndexError, ValueError) as exc:
            raise ObjectFormatException(f"Invalid object header: {header!r}") from exc
        body = text[header_end + 1 :]
        if len(body) != size:
            raise ObjectFormatException(
                f"Object size mismatch: header says {size}, got {len(body)}"
            )
        self.set_raw_string(body)

    def as_legacy_object_chunks(self, compression_level: int = -1) -> Iterator[bytes]:
        """Return chunks representing the object in the experimental format.

        Returns: List of strings
        """
        compobj = zlib.compressobj(compression_level)
        yield compobj.compress(self._header())
        for chunk in self.as_raw_chunks():
            yield compobj.compress(chunk)
        yield compobj.flush()

    def as_legacy_object(self, compression_level: int = -1) -> bytes:
        """Return string representing the object in the experimental format."""
        return b"".join(self.as_legacy_object_chunks(compression_level=compression_level))

    def as_raw_chunks(self) -> list[bytes]:
        """Return chunks with serialization of the object.

        Returns: List of strings, not necessarily one per line
        """
        if self._needs_serialization:
            self._sha = None
            self._chunked_text = self._serialize()
            self._needs_serialization = False
        assert self._chunked_text is not None
        return self._chunked_text

    def as_raw_string(self) -> bytes:
        """Return raw string with serialization of the object.

        Returns: String object
        """
        return b"".join(self.as_raw_chunks())

    def __bytes__(self) -> bytes:
        """Return raw string serialization of this object."""
        return self.as_raw_string()

    def __hash__(self) -> int:
        """Return unique hash for this object."""
        return hash(self.id)

    def set_raw_string(self, text: bytes, sha: Optional[ObjectID] = None) -> None:
        """Set the contents of this object from a serialized string."""
        if not isinstance(text, bytes):
            raise TypeError(f"Expected bytes for text, got {text!r}")
        self.set_raw_chunks([text], sha)

    def set_raw_chunks(self, chunks: list[bytes], sha: Optional[ObjectID] = None) -> None:
        """Set the contents of this object from a list of chunks."""
        self._chunked_text = chunks
        self._deserialize(chunks)
        if sha is None:
            self._sha = None
        else:
            self._sha = sha
        self._needs_serialization = False

    @staticmethod
    def _parse_object_header(magic: bytes, f_read) -> "ShaFile":
        return ShaFile._parse_legacy_object_header(magic, f_read)

    @classmethod
    def from_path(cls, path: Union[str, bytes]) -> "ShaFile":
        """Open a SHA file from disk."""
        with open(path, "rb") as f:
            return cls.from_file(f)

    @classmethod
    def from_file(cls, f) -> "ShaFile":
        """Get the contents of a SHA file on disk."""
        try:
            magic = f.read(2)
            obj = cls._parse_object_header(magic, f.read)
            f.seek(0)
            obj._parse_legacy_object(f.read())
            return obj
        except (IndexError, ValueError, zlib.error) as exc:
            raise ObjectFormatException("invalid object header") from exc

    @staticmethod
    def from_raw_string(
        type_num: int, string: bytes, sha: Optional[ObjectID] = None
    ) -> "ShaFile":
        """Creates an object of the indicated type from the raw string given.

        Args:
          type_num: The numeric type of the object.
          string: The raw uncompressed contents.
          sha: Optional known sha for the object
        """
        cls = object_class(type_num)
        if cls is None:
            raise ObjectFormatException(f"unsupported object type num: {type_num}")
        obj = cls()
        obj.set_raw_string(string, sha)
        return obj

    @classmethod
    def from_string(cls, string: bytes) -> "ShaFile":
        """Create a ShaFile from a string."""
        obj = cls()
        obj.set_raw_string(string)
        return obj

    def _deserialize(self, chunks: list[bytes]) -> None:
        raise NotImplementedError(self._deserialize)

    def _serialize(self) -> list[bytes]:
        raise NotImplementedError(self._serialize)

    def _header(self) -> bytes:
        return object_header(self.type_num, self.raw_length())

    def raw_length(self) -> int:
        """Returns the length of the raw string of this object."""
        return sum(map(len, self.as_raw_chunks()))

    def sha(self):
        """The SHA1 object that is the name of this object."""
        if self._sha is None or self._needs_serialization:
            # this is a local because as_raw_chunks() overwrites self._sha
            new_sha = sha1()
            new_sha.update(self._header())
            for chunk in self.as_raw_chunks():
                new_sha.update(chunk)
            self._sha = ObjectID(new_sha.hexdigest().encode("ascii"))
            return new_sha
        return _FixedSha(self._sha)

    def copy(self) -> "ShaFile":
        """Create a new copy of this SHA1 object from its raw string."""
        obj_class = object_class(self.type_num)
        if obj_class is None:
            raise AssertionError(f"invalid type num {self.type_num}")
        return obj_class.from_raw_string(self.type_num, self.as_raw_string(), self.id)

    @property
    def id(self) -> ObjectID:
        """The hex SHA of this object."""
        return ObjectID(self.sha().hexdigest().encode("ascii"))

    def verify(self, expected: ObjectID) -> None:
        """Recompute the SHA over the current contents and compare it.

        Raises:
          ChecksumMismatch: if the recomputed SHA differs from ``expected``
        """
        new_sha = sha1()
        new_sha.update(self._header())
        for chunk in self.as_raw_chunks():
            new_sha.update(chunk)
        got = new_sha.hexdigest().encode("ascii")
        if got != expected:
            raise ChecksumMismatch(expected, got)

    def __repr__(self) -> str:
        """Return string representation of this object."""
        return f"<{self.__class__.__name__} {self.id!r}>"

    def __ne__(self, other: object) -> bool:
        """Check whether this object does not match the other."""
        return not isinstance(other, ShaFile) or self.id != other.id

    def __eq__(self, other: object) -> bool:
        """Return True if the SHAs of the two objects match."""
        return isinstance(other, ShaFile) and self.id == other.id

    def __lt__(self, other: object) -> bool:
        """Return whether SHA of this object is less than the other."""
        if not isinstance(other, ShaFile):
            raise TypeError
        return self.id < other.id


class _FixedSha:
    """SHA object that behaves like hashlib's but is given a fixed value."""

    __slots__ = ("_hexsha", "_sha")

    def __init__(self, hexsha: bytes) -> None:
        self._hexsha = hexsha
        self._sha = hex_to_sha(hexsha)

    def digest(self) -> bytes:
        """Return the raw SHA digest."""
        return self._sha

    def hexdigest(self) -> str:
        """Return the hex SHA digest."""
        return self._hexsha.decode("ascii")


class Blob(ShaFile):
    """A Git Blob object."""

    __slots__ = ()

    type_name = b"blob"
    type_num = 3

    def __init__(self) -> None:
        super().__init__()
        self._chunked_text = []
        self._needs_serialization = False

    def _get_data(self) -> bytes:
        return self.as_raw_string()

    def _set_data(self, data: bytes) -> None:
        self.set_raw_string(data)

    data = property(
        _get_data, _set_data, doc="The text contained within the blob object."
    )

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._chunked_text = chunks

    def _serialize(self) -> list[bytes]:
        assert self._chunked_text is not None
        return self._chunked_text


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    path: bytes
    mode: int
    sha: ObjectID


def parse_tree(text: bytes, strict: bool = False) -> Iterator[tuple[bytes, int, ObjectID]]:
    """Parse a tree text.

    Args:
      text: Serialized text to parse
      strict: If True, enforce that modes have no leading zeros
    Returns: iterator of tuples of (name, mode, sha)

    Raises:
      ObjectFormatException: if the object was malformed in some way
    """
    count = 0
    length = len(text)
    while count < length:
        mode_end = text.find(b" ", count)
        if mode_end < 0:
            raise ObjectFormatException("Missing space after mode")
        mode_text = text[count:mode_end]
        if strict and mode_text.startswith(b"0"):
            raise ObjectFormatException(f"Invalid mode {mode_text!r}")
        try:
            mode = int(mode_text, 8)
        except ValueError as exc:
            raise ObjectFormatException(f"Invalid mode {mode_text!r}") from exc
        name_end = text.find(b"\0", mode_end)
        if name_end < 0:
            raise ObjectFormatException("Missing NUL after name")
        name = text[mode_end + 1 : name_end]
        count = name_end + 1 + OID_LENGTH
        sha = text[name_end + 1 : count]
        if len(sha) != OID_LENGTH:
            raise ObjectFormatException("Sha has invalid length")
        yield (name, mode, sha_to_hex(sha))


def serialize_tree(items: Iterable[tuple[bytes, int, bytes]]) -> Iterator[bytes]:
    """Serialize the items in a tree to a text.

    Args:
      items: Sorted iterable over (name, mode, sha) tuples
    Returns: Serialized tree text as chunks
    """
    for name, mode, hexsha in items:
        yield (
            (f"{mode:04o}").encode("ascii") + b" " + name + b"\0" + hex_to_sha(hexsha)
        )


def key_entry(entry: tuple[bytes, tuple[int, bytes]]) -> bytes:
    """Sort key for tree entry.

    Args:
      entry: (name, value) tuple
    """
    (name, (mode, _sha)) = entry
    if stat.S_ISDIR(mode):
        name += b"/"
    return name


def sorted_tree_items(
    entries: dict[bytes, tuple[int, ObjectID]],
) -> Iterator[TreeEntry]:
    """Iterate over a tree entries dictionary.

    Args:
      entries: Dictionary mapping names to (mode, sha) tuples
    Returns: Iterator over (name, mode, hexsha)
    """
    for name, entry in sorted(entries.items(), key=key_entry):
        mode, hexsha = entry
        mode = int(mode)
        if not isinstance(hexsha, bytes):
            raise TypeError(f"Expected bytes for SHA, got {hexsha!r}")
        yield TreeEntry(name, mode, ObjectID(hexsha))


class Tree(ShaFile):
    """A Git tree object."""

    __slots__ = "_entries"

    type_name = b"tree"
    type_num = 2

    def __init__(self) -> None:
        super().__init__()
        self._entries: dict[bytes, tuple[int, ObjectID]] = {}

    def __contains__(self, name: bytes) -> bool:
        return name in self._entries

    def __getitem__(self, name: bytes) -> tuple[int, ObjectID]:
        return self._entries[name]

    def __setitem__(self, name: bytes, value: tuple[int, ObjectID]) -> None:
        """Set a tree entry by name.

        Args:
          name: The name of the entry, as a string.
          value: A tuple of (mode, hexsha), where mode is the mode of the
            entry as an integral type and hexsha is the hex SHA of the entry as
            a string.
        """
        mode, hexsha = value
        self._entries[name] = (mode, hexsha)
        self._needs_serialization = True

    def __delitem__(self, name: bytes) -> None:
        del self._entries[name]
        self._needs_serialization = True

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._entries)

    def add(self, name: bytes, mode: int, hexsha: ObjectID) -> None:
        """Add an entry to the tree.

        Args:
          mode: The mode of the entry as an integral type. Not all
            possible modes are supported by git; see check() for details.
          name: The name of the entry, as a string.
          hexsha: The hex SHA of the entry as a string.
        """
        self._entries[name] = mode, hexsha
        self._needs_serialization = True

    def iteritems(self) -> Iterator[TreeEntry]:
        """Iterate over entries.

        Returns: Iterator over (name, mode, sha) tuples
        """
        return sorted_tree_items(self._entries)

    def items(self) -> list[TreeEntry]:
        """Return the sorted entries in this tree.

        Returns: List with (name, mode, sha) tuples
        """
        return list(self.iteritems())

    def _deserialize(self, chunks: list[bytes]) -> None:
        """Grab the entries in the tree."""
        try:
            parsed_entries = parse_tree(b"".join(chunks))
            self._entries = {n: (m, s) for n, m, s in parsed_entries}
        except ValueError as exc:
            raise ObjectFormatException(exc) from exc

    def check(self) -> None:
        """Check this object for internal consistency.

        Raises:
          ObjectFormatException: if the object is malformed in some way
        """
        last = None
        allowed_modes = (
            stat.S_IFREG | 0o755,
            stat.S_IFREG | 0o644,
            stat.S_IFLNK,
            stat.S_IFDIR,
            S_IFGITLINK,
            stat.S_IFREG | 0o664,
        )
        for name, mode, _sha in parse_tree(b"".join(self.as_raw_chunks()), True):
            if b"/" in name or name in (b"", b".", b"..", b".git"):
                raise ObjectFormatException(
                    "invalid name {}".format(name.decode("utf-8", "replace"))
                )
            if mode not in allowed_modes:
                raise ObjectFormatException(f"invalid mode {mode:06o}")
            entry = (name, (mode, _sha))
            if last:
                if key_entry(last) > key_entry(entry):
                    raise ObjectFormatException("entries not sorted")
                if name == last[0]:
                    raise ObjectFormatException(f"duplicate entry {name!r}")
            last = entry

    def _serialize(self) -> list[bytes]:
        return list(serialize_tree(self.iteritems()))


def parse_timezone(text: bytes) -> int:
    """Parse a timezone text fragment (e.g. '+0100').

    Args:
      text: Text to parse.
    Returns: Timezone offset in seconds east of UTC.
    """
    # cgit parses the first character as the sign, and the rest
    #  as an integer (using strtol), which could also be negative.
    #  We do the same for compatibility. See #697828.
    if text[0] not in b"+-":
        raise ValueError(f"Timezone must start with + or - ({text!r})")
    sign = text[:1]
    offset = int(text[1:])
    if sign == b"-":
        offset = -offset
    signum = ((offset < 0) and -1) or 1
    offset = abs(offset)
    hours = int(offset / 100)
    minutes = offset % 100
    return signum * (hours * 3600 + minutes * 60)


def format_timezone(offset: int) -> bytes:
    """Format a timezone for Git serialization.

    Args:
      offset: Timezone offset as seconds difference to UTC
    """
    if offset % 60 != 0:
        raise ValueError("Unable to handle non-minute offset.")
    if offset < 0:
        sign = "-"
        offset = -offset
    else:
        sign = "+"
    return ("%c%02d%02d" % (sign, offset / 3600, (offset / 60) % 60)).encode("ascii")  # noqa: UP031


def parse_time_entry(value: bytes) -> tuple[bytes, Optional[int], Optional[int]]:
    """Parse event.

    Args:
      value: Bytes representing a git commit/tag line
    Raises:
      ObjectFormatException in case of parsing error (malformed
      field date)
    Returns: Tuple of (author, time, timezone)
    """
    try:
        sep = value.rindex(b"> ")
    except ValueError:
        return (value, None, None)
    try:
        person = value[0 : sep + 1]
        rest = value[sep + 2 :]
        timetext, timezonetext = rest.rsplit(b" ", 1)
        time = int(timetext)
        timezone = parse_timezone(timezonetext)
    except ValueError as exc:
        raise ObjectFormatException(exc) from exc
    return person, time, timezone


def format_time_entry(person: bytes, time: int, timezone: int) -> bytes:
    """Format an event."""
    return b" ".join([person, str(time).encode("ascii"), format_timezone(timezone)])


def _parse_message(
    chunks: Iterable[bytes],
) -> Iterator[tuple[Optional[bytes], Optional[bytes]]]:
    """Parse a message with a list of fields and a body.

    Args:
      chunks: the raw chunks of the commit
    Returns: iterator of tuples of (field, value), one per header line, in the
        order read from the text, possibly including duplicates. Includes a
        field named None for the freeform commit message.
    """
    lines = b"".join(chunks).split(b"\n")
    k = None
    v = b""
    eof = False

    i = 0
    for i, line in enumerate(lines):  # noqa: B007
        if line.startswith(b" "):
            # Indented continuation of the previous header value
            v += b"\n" + line[1:]
        else:
            if k is not None:
                yield (k, v)
            if line == b"":
                # Empty line indicates end of headers
                break
            (k, v) = line.split(b" ", 1) if b" " in line else (line, b"")
    else:
        eof = True
        if k is not None:
            yield (k, v)
        yield (None, None)

    if not eof:
        # We reached end of headers; the rest is the message
        yield (None, b"\n".join(lines[i + 1 :]))


def _format_message(
    headers: list[tuple[bytes, bytes]], body: Optional[bytes]
) -> Iterator[bytes]:
    for field, value in headers:
        lines = value.split(b"\n")
        yield git_line(field, lines[0])
        for line in lines[1:]:
            yield b" " + line + b"\n"
    yield b"\n"  # There must be a new line after the headers
    if body:
        yield body


class Commit(ShaFile):
    """A git commit object."""

    __slots__ = (
        "_author",
        "_author_time",
        "_author_timezone",
        "_commit_time",
        "_commit_timezone",
        "_committer",
        "_encoding",
        "_extra",
        "_message",
        "_parents",
        "_tree",
    )

    type_name = b"commit"
    type_num = 1

    def __init__(self) -> None:
        super().__init__()
        self._parents: list[ObjectID] = []
        self._encoding: Optional[bytes] = None
        self._extra: list[tuple[bytes, bytes]] = []
        self._message: bytes = b""

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._parents = []
        self._extra = []
        self._tree = None
        author_info: tuple[Optional[bytes], Optional[int], Optional[int]] = (
            None,
            None,
            None,
        )
        commit_info: tuple[Optional[bytes], Optional[int], Optional[int]] = (
            None,
            None,
            None,
        )
        self._encoding = None
        self._message = b""
        for field, value in _parse_message(chunks):
            if field == _TREE_HEADER:
                self._tree = value
            elif field == _PARENT_HEADER:
                assert value is not None
                self._parents.append(ObjectID(value))
            elif field == _AUTHOR_HEADER:
                assert value is not None
                author_info = parse_time_entry(value)
            elif field == _COMMITTER_HEADER:
                assert value is not None
                commit_info = parse_time_entry(value)
            elif field == _ENCODING_HEADER:
                self._encoding = value
            elif field is None:
                self._message = value or b""
            else:
                assert value is not None
                self._extra.append((field, value))

        (self._author, self._author_time, self._author_timezone) = author_info
        (self._committer, self._commit_time, self._commit_timezone) = commit_info

    def check(self) -> None:
        """Check this object for internal consistency.

        Raises:
          ObjectFormatException: if the object is malformed in some way
        """
        if self._tree is None:
            raise ObjectFormatException("missing tree")
        check_hexsha(self._tree, "invalid tree sha")
        for parent in self._parents:
            check_hexsha(parent, "invalid parent sha")
        if self._author is None:
            raise ObjectFormatException("missing author")
        if self._committer is None:
            raise ObjectFormatException("missing committer")
        for identity in (self._author, self._committer):
            if b"<" not in identity or b">" not in identity:
                raise ObjectFormatException(f"invalid identity {identity!r}")
        if self._author_time is not None and self._author_time > MAX_TIME:
            raise ObjectFormatException("author time out of range")

    def _serialize(self) -> list[bytes]:
        headers: list[tuple[bytes, bytes]] = []
        headers.append((_TREE_HEADER, self._tree))
        for p in self._parents:
            headers.append((_PARENT_HEADER, p))
        headers.append(
            (
                _AUTHOR_HEADER,
                format_time_entry(
                    self._author, self._author_time, self._author_timezone
                ),
            )
        )
        headers.append(
            (
                _COMMITTER_HEADER,
                format_time_entry(
                    self._committer, self._commit_time, self._commit_timezone
                ),
            )
        )
        if self.encoding:
            headers.append((_ENCODING_HEADER, self.encoding))
        for k, v in self._extra:
            headers.append((k, v))
        return list(_format_message(headers, self._message))

    tree = serializable_property("tree", "Tree that is the state of this commit")

    def _get_parents(self) -> list[ObjectID]:
        """Return a list of parents of this commit."""
        return self._parents

    def _set_parents(self, value: list[ObjectID]) -> None:
        """Set a list of parents of this commit."""
        self._needs_serialization = True
        self._parents = value

    parents = property(
        _get_parents,
        _set_parents,
        doc="Parents of this commit, by their SHA1.",
    )

    @property
    def extra(self) -> list[tuple[bytes, bytes]]:
        """Return extra settings of this commit."""
        return self._extra

    author = serializable_property("author", "The name of the author of the commit")

    committer = serializable_property(
        "committer", "The name of the committer of the commit"
    )

    message = serializable_property("message", "The commit message")

    commit_time = serializable_property(
        "commit_time",
        "The timestamp of the commit. As the number of seconds since the epoch.",
    )

    commit_timezone = serializable_property(
        "commit_timezone", "The zone the commit time is in"
    )

    author_time = serializable_property(
        "author_time",
        "The timestamp the commit was written. As the number of "
        "seconds since the epoch.",
    )

    author_timezone = serializable_property(
        "author_timezone", "Returns the zone the author time is in."
    )

    encoding = serializable_property("encoding", "Encoding of the commit message.")


OBJECT_CLASSES = (
    Commit,
    Tree,
    Blob,
)

_TYPE_MAP: dict[Union[bytes, int], type[ShaFile]] = {}

for cls in OBJECT_CLASSES:
    _TYPE_MAP[cls.type_name] = cls
    _TYPE_MAP[cls.type_num] = cls
