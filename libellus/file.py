# file.py -- Locked writes to repository files
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

"""Reading and atomically replacing files inside a repository.

A write to ``foo`` goes to ``foo.lock``, which is created exclusively and
renamed over ``foo`` once complete. Readers, libellus or git, see either the
old or the new contents. While the lock file exists no other writer may
start.
"""

__all__ = [
    "FileLocked",
    "GitFile",
    "ensure_dir_exists",
]

import os
import warnings
from types import TracebackType
from typing import IO, Optional, Union

PathT = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]


def ensure_dir_exists(dirname: PathT) -> None:
    """Create ``dirname`` and its parents unless it already exists."""
    os.makedirs(dirname, exist_ok=True)


class FileLocked(Exception):
    """Another writer holds the lock file of ``filename``."""

    def __init__(self, filename: PathT, lockfilename: Union[str, bytes]) -> None:
        self.filename = filename
        self.lockfilename = lockfilename
        super().__init__(filename, lockfilename)


def GitFile(
    filename: PathT,
    mode: str = "rb",
    mask: int = 0o644,
    fsync: bool = True,
) -> Union[IO[bytes], "_LockedFile"]:
    """Open a repository file.

    Args:
      filename: Path to the file
      mode: ``"rb"`` for a plain read, ``"wb"`` for a locked replace
      mask: permissions of a newly written file
      fsync: whether a write is flushed to disk before the rename
    Raises:
      ValueError: for any other mode
      FileLocked: if the file is being written by someone else
    """
    if mode == "rb":
        return open(filename, "rb")
    if mode == "wb":
        return _LockedFile(filename, mask, fsync)
    raise ValueError(f"unsupported mode {mode!r}; use 'rb' or 'wb'")


class _LockedFile:
    """Pending replacement of a file, held in its lock file.

    ``close()`` publishes the new contents and ``abort()`` throws them away;
    one of the two must be called to release the lock. Used as a context
    manager, an exception aborts.
    """

    def __init__(self, filename: PathT, mask: int, fsync: bool) -> None:
        self._filename: Union[str, bytes] = os.fspath(filename)
        if isinstance(self._filename, bytes):
            self._lockfilename: Union[str, bytes] = self._filename + b".lock"
        else:
            self._lockfilename = self._filename + ".lock"
        self._fsync = fsync
        try:
            fd = os.open(self._lockfilename, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mask)
        except FileExistsError as exc:
            raise FileLocked(self._filename, self._lockfilename) from exc
        self._file = os.fdopen(fd, "wb")
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def abort(self) -> None:
        """Drop the lock file and leave the target untouched."""
        if self._closed:
            return
        self._closed = True
        self._file.close()
        try:
            os.remove(self._lockfilename)
        except FileNotFoundError:
            pass

    def close(self) -> None:
        """Rename the lock file over the target.

        Raises:
          OSError: if the rename fails; the lock is released regardless
        """
        if self._closed:
            return
        try:
            self._file.flush()
            if self._fsync:
                os.fsync(self._file.fileno())
            self._file.close()
            os.replace(self._lockfilename, self._filename)
        except BaseException:
            self.abort()
            raise
        # From here on the lock path may belong to the next writer.
        self._closed = True

    def __enter__(self) -> "_LockedFile":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            warnings.warn(
                f"unreleased lock {self._lockfilename!r}", ResourceWarning, stacklevel=2
            )
            self.abort()
