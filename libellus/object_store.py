# object_store.py -- Object store for git objects
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

"""Git object store interfaces and implementation."""

__all__ = [
    "INFODIR",
    "PACKDIR",
    "BaseObjectStore",
    "DiskObjectStore",
    "MemoryObjectStore",
]

import logging
import os
import tempfile
import zlib
from collections.abc import Iterable, Iterator
from typing import Optional, Union

from .errors import (
    ApplyDeltaError,
    ChecksumMismatch,
    Corrupt,
    FileFormatException,
    NotBlobError,
    NotCommitError,
    NotTreeError,
    ObjectFormatException,
    ObjectMissing,
    StoreIOError,
)
from .file import FileLocked, GitFile
from .objects import (
    Blob,
    Commit,
    ObjectID,
    ShaFile,
    Tree,
    TreeEntry,
    check_hexsha,
    hex_to_filename,
    hex_to_sha,
    key_entry,
    sha_to_hex,
    valid_hexsha,
)
from .pack import Pack

logger = logging.getLogger(__name__)

INFODIR = "info"
PACKDIR = "pack"

PACK_MODE = 0o444


def _to_hexsha(sha: bytes) -> ObjectID:
    if len(sha) == 40:
        if not valid_hexsha(sha):
            raise ValueError(f"Invalid sha {sha!r}")
        return ObjectID(sha)
    elif len(sha) == 20:
        return sha_to_hex(sha)
    else:
        raise ValueError(f"Invalid sha {sha!r}")


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


class BaseObjectStore:
    """Object store interface.

    Besides the mapping-style access shared with other git tools
    (``store[sha]``, ``sha in store``, ``add_object``), stores offer typed
    accessors that create and fetch blobs, trees and commits directly.
    """

    def contains_loose(self, sha: bytes) -> bool:
        """Check if a particular object is present by SHA1 and is loose."""
        raise NotImplementedError(self.contains_loose)

    def contains_packed(self, sha: bytes) -> bool:
        """Check if a particular object is present by SHA1 and is packed."""
        return False

    def __contains__(self, sha1: bytes) -> bool:
        """Check if a particular object is present by SHA1.

        This method makes no distinction between loose and packed objects.
        """
        return self.contains_loose(sha1) or self.contains_packed(sha1)

    def get_raw(self, name: bytes) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        Raises:
          ObjectMissing: if no object with that sha is present
        """
        raise NotImplementedError(self.get_raw)

    def __getitem__(self, sha1: bytes) -> ShaFile:
        """Obtain an object by SHA1.

        The object is hashed again after parsing. Stored bytes that do not
        hash to ``sha1``, or that cannot be parsed, raise :class:`Corrupt`.
        """
        hexsha = _to_hexsha(sha1)
        type_num, uncomp = self.get_raw(hexsha)
        try:
            obj = ShaFile.from_raw_string(type_num, uncomp)
        except (ObjectFormatException, ValueError) as exc:
            raise Corrupt(hexsha, "unparseable object", extra=str(exc)) from exc
        try:
            obj.verify(hexsha)
        except ChecksumMismatch as exc:
            logger.warning("object %s failed verification", hexsha.decode("ascii"))
            raise Corrupt(exc.expected, exc.got) from exc
        return obj

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs that are present in this store."""
        raise NotImplementedError(self.__iter__)

    def __len__(self) -> int:
        """Return the number of distinct objects in this store."""
        return sum(1 for _ in self)

    def add_object(self, obj: ShaFile) -> None:
        """Add a single object to this object store."""
        raise NotImplementedError(self.add_object)

    def close(self) -> None:
        """Close any files opened by this object store."""

    def _get_typed(self, sha: bytes, cls: type, error: type) -> ShaFile:
        obj = self[sha]
        if not isinstance(obj, cls):
            raise error(_to_hexsha(sha))
        return obj

    def put_blob(self, data: bytes) -> ObjectID:
        """Store a blob.

        Args:
          data: Contents of the blob
        Returns: id of the blob; storing the same data again is a no-op
        """
        return self._put(Blob.from_string(data))

    def get_blob(self, sha: bytes) -> bytes:
        """Return the contents of a blob.

        Raises:
          ObjectMissing: if the object is absent
          NotBlobError: if the object is not a blob
          Corrupt: if the stored bytes fail verification
        """
        return self._get_typed(sha, Blob, NotBlobError).data

    def put_tree(self, entries: Iterable[tuple[bytes, int, bytes]]) -> ObjectID:
        """Store a tree.

        Args:
          entries: (name, mode, sha) tuples, in canonical tree order and
            unique by name
        Returns: id of the tree
        Raises:
          ObjectFormatException: if entries are out of order, duplicated or
            malformed
        """
        tree = Tree()
        last = None
        for name, mode, sha in entries:
            if not name or b"/" in name or b"\0" in name:
                raise ObjectFormatException(f"invalid tree entry name {name!r}")
            check_hexsha(sha, "invalid sha for tree entry")
            entry = (name, (mode, sha))
            if last is not None:
                if name == last[0]:
                    raise ObjectFormatException(f"duplicate entry {name!r}")
                if key_entry(last) > key_entry(entry):
                    raise ObjectFormatException(
                        f"entries not sorted: {last[0]!r} before {name!r}"
                    )
            tree.add(name, mode, ObjectID(sha))
            last = entry
        return self._put(tree)

    def get_tree(self, sha: bytes) -> list[TreeEntry]:
        """Return the entries of a tree, in canonical order.

        Raises:
          ObjectMissing: if the object is absent
          NotTreeError: if the object is not a tree
          Corrupt: if the stored bytes fail verification
        """
        return self._get_typed(sha, Tree, NotTreeError).items()

    def put_commit(
        self,
        tree: bytes,
        parents: Iterable[bytes],
        author: Union[str, bytes],
        message: Union[str, bytes],
        timestamp: int,
        timezone: int = 0,
        committer: Union[str, bytes, None] = None,
    ) -> ObjectID:
        """Store a commit.

        Args:
          tree: id of the root tree
          parents: ids of the parent commits
          author: identity, ``Name <email>``
          message: commit message, stored as given
          timestamp: seconds since the epoch
          timezone: offset from UTC in seconds
          committer: identity of the committer; defaults to ``author``
        Returns: id of the commit
        Raises:
          ObjectMissing: if the tree or a parent is not in this store
        """
        tree = _to_hexsha(tree)
        parents = [_to_hexsha(p) for p in parents]
        for sha in [tree, *parents]:
            if sha not in self:
                raise ObjectMissing(sha)
        commit = Commit()
        commit.tree = tree
        commit.parents = parents
        commit.author = _as_bytes(author)
        commit.committer = _as_bytes(committer) if committer is not None else commit.author
        commit.author_time = commit.commit_time = int(timestamp)
        commit.author_timezone = commit.commit_timezone = timezone
        commit.message = _as_bytes(message)
        commit.check()
        return self._put(commit)

    def get_commit(self, sha: bytes) -> Commit:
        """Return a commit.

        Raises:
          ObjectMissing: if the object is absent
          NotCommitError: if the object is not a commit
          Corrupt: if the stored bytes fail verification
        """
        return self._get_typed(sha, Commit, NotCommitError)

    def _put(self, obj: ShaFile) -> ObjectID:
        self.add_object(obj)
        return obj.id


class DiskObjectStore(BaseObjectStore):
    """Git-style object store that exists on disk."""

    def __init__(
        self,
        path: Union[str, os.PathLike],
        *,
        loose_compression_level: int = -1,
        fsync_object_files: bool = False,
    ) -> None:
        """Open an object store.

        Args:
          path: Path of the object store.
          loose_compression_level: zlib compression level for loose objects
          fsync_object_files: whether to fsync object files for durability
        """
        self.path = os.fspath(path)
        self.pack_dir = os.path.join(self.path, PACKDIR)
        self.loose_compression_level = loose_compression_level
        self.fsync_object_files = fsync_object_files
        self._pack_cache: dict[str, Pack] = {}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    @classmethod
    def init(cls, path: Union[str, os.PathLike]) -> "DiskObjectStore":
        """Initialize a new disk object store.

        Creates the ``info`` and ``pack`` subdirectories.
        """
        try:
            os.mkdir(path)
        except FileExistsError:
            pass
        os.mkdir(os.path.join(path, INFODIR))
        os.mkdir(os.path.join(path, PACKDIR))
        return cls(path)

    @property
    def packs(self) -> list[Pack]:
        """List with pack objects."""
        self._update_pack_cache()
        return list(self._pack_cache.values())

    def _update_pack_cache(self) -> list[Pack]:
        """Read and iterate over new pack files and cache them."""
        try:
            pack_dir_contents = os.listdir(self.pack_dir)
        except FileNotFoundError:
            self.close()
            return []
        except OSError as exc:
            raise StoreIOError(f"unable to list {self.pack_dir}: {exc}") from exc
        pack_files = set()
        for name in pack_dir_contents:
            if name.startswith("pack-") and name.endswith(".pack"):
                # verify that idx exists first (otherwise the pack was not yet
                # fully written)
                idx_name = os.path.splitext(name)[0] + ".idx"
                if idx_name in pack_dir_contents:
                    pack_files.add(name[: -len(".pack")])

        # Open newly appeared pack files
        new_packs = []
        for f in pack_files:
            if f not in self._pack_cache:
                pack = Pack(os.path.join(self.pack_dir, f), resolve_ext_ref=self.get_raw)
                new_packs.append(pack)
                self._pack_cache[f] = pack
                logger.debug("found pack %s", f)
        # Remove disappeared pack files
        for f in set(self._pack_cache) - pack_files:
            self._pack_cache.pop(f).close()
        return new_packs

    def close(self) -> None:
        """Close all packs opened by this store."""
        while self._pack_cache:
            (_name, pack) = self._pack_cache.popitem()
            pack.close()

    def _get_shafile_path(self, sha: bytes) -> str:
        # Check from object dir
        return hex_to_filename(self.path, _to_hexsha(sha))

    def _iter_loose_objects(self) -> Iterator[ObjectID]:
        try:
            bases = os.listdir(self.path)
        except FileNotFoundError:
            return
        for base in bases:
            if len(base) != 2:
                continue
            for rest in os.listdir(os.path.join(self.path, base)):
                sha = os.fsencode(base + rest)
                if not valid_hexsha(sha):
                    continue
                yield ObjectID(sha)

    def contains_loose(self, sha: bytes) -> bool:
        return os.path.exists(self._get_shafile_path(sha))

    def contains_packed(self, sha: bytes) -> bool:
        for pack in self.packs:
            try:
                if sha in pack:
                    return True
            except OSError as exc:
                raise StoreIOError(f"unable to read {pack!r}: {exc}") from exc
        return False

    def __iter__(self) -> Iterator[ObjectID]:
        seen = set()
        for sha in self._iter_loose_objects():
            seen.add(sha)
            yield sha
        for pack in self.packs:
            for sha in pack:
                if sha not in seen:
                    seen.add(sha)
                    yield sha

    def _get_loose_object(self, sha: ObjectID) -> Optional[ShaFile]:
        path = self._get_shafile_path(sha)
        try:
            return ShaFile.from_path(path)
        except FileNotFoundError:
            return None
        except (ObjectFormatException, zlib.error) as exc:
            raise Corrupt(sha, "unreadable loose object", extra=str(exc)) from exc
        except OSError as exc:
            raise StoreIOError(f"unable to read {path}: {exc}") from exc

    def _get_packed_raw(self, hexsha: ObjectID) -> Optional[tuple[int, bytes]]:
        raw = hex_to_sha(hexsha)
        for pack in self.packs:
            try:
                return pack.get_raw(raw)
            except KeyError:
                continue
            except (zlib.error, ApplyDeltaError, FileFormatException) as exc:
                raise Corrupt(hexsha, "unreadable packed object", extra=str(exc)) from exc
            except OSError as exc:
                raise StoreIOError(f"unable to read {pack!r}: {exc}") from exc
        return None

    def get_raw(self, name: bytes) -> tuple[int, bytes]:
        """Obtain the raw fulltext for an object.

        Loose objects take precedence over packed ones.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        """
        hexsha = _to_hexsha(name)
        obj = self._get_loose_object(hexsha)
        if obj is not None:
            return obj.type_num, obj.as_raw_string()
        ret = self._get_packed_raw(hexsha)
        if ret is not None:
            return ret
        raise ObjectMissing(hexsha)

    def add_object(self, obj: ShaFile) -> None:
        """Add a single object to this object store.

        Args:
          obj: Object to add
        """
        path = self._get_shafile_path(obj.id)
        dir = os.path.dirname(path)
        try:
            try:
                os.mkdir(dir)
            except FileExistsError:
                pass
            if os.path.exists(path) or self.contains_packed(obj.id):
                logger.debug("object %s already present", obj.id.decode("ascii"))
                return
            data = obj.as_legacy_object(compression_level=self.loose_compression_level)
            try:
                with GitFile(
                    path, "wb", mask=PACK_MODE, fsync=self.fsync_object_files
                ) as f:
                    f.write(data)
            except FileLocked:
                # Another writer is storing the same object.
                self._write_loose_tempfile(path, data)
        except StoreIOError:
            raise
        except OSError as exc:
            raise StoreIOError(f"unable to write object {path}: {exc}") from exc
        logger.debug("wrote %s %s", obj.type_name.decode("ascii"), obj.id.decode("ascii"))

    def _write_loose_tempfile(self, path: str, data: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix="tmp_obj_")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                if self.fsync_object_files:
                    f.flush()
                    os.fsync(f.fileno())
            os.chmod(tmp_path, PACK_MODE)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise


class MemoryObjectStore(BaseObjectStore):
    """Object store that keeps all objects in memory."""

    def __init__(self) -> None:
        self._data: dict[ObjectID, ShaFile] = {}

    def contains_loose(self, sha: bytes) -> bool:
        """Check if a particular object is present by SHA1 and is loose."""
        return _to_hexsha(sha) in self._data

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs that are present in this store."""
        return iter(list(self._data.keys()))

    def __len__(self) -> int:
        return len(self._data)

    def get_raw(self, name: bytes) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        """
        hexsha = _to_hexsha(name)
        try:
            obj = self._data[hexsha]
        except KeyError:
            raise ObjectMissing(hexsha) from None
        return obj.type_num, obj.as_raw_string()

    def add_object(self, obj: ShaFile) -> None:
        """Add a single object to this object store."""
        if obj.id in self._data:
            return
        self._data[obj.id] = obj.copy()
