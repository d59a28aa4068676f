# errors.py -- errors for libellus
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

"""Libellus exception classes.

Lookups that fail because something is absent raise subclasses of
:class:`NotFound`, which is itself a :class:`KeyError` so that mapping-style
callers keep working. Everything else is either a format problem, a storage
problem or a lost race on a reference.
"""

import binascii
from typing import Optional, Union

__all__ = [
    "ApplyDeltaError",
    "ChecksumMismatch",
    "Conflict",
    "Corrupt",
    "FileFormatException",
    "InvalidPath",
    "NotBlobError",
    "NotCommitError",
    "NotFound",
    "NotRepository",
    "NotTreeError",
    "ObjectFormatException",
    "ObjectMissing",
    "PackedRefsException",
    "PathNotFound",
    "RefFormatError",
    "RefNotFound",
    "StoreIOError",
    "WrongObjectException",
]


def _to_display(value: Union[bytes, str]) -> str:
    if isinstance(value, bytes):
        if len(value) == 20:
            return binascii.hexlify(value).decode("ascii")
        return value.decode("utf-8", "replace")
    return value


def _path_display(value: Union[bytes, str]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


class NotFound(KeyError):
    """Something that was asked for does not exist."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class ObjectMissing(NotFound):
    """Indicates that a requested object is missing."""

    def __init__(self, sha: bytes) -> None:
        """Initialize an ObjectMissing exception.

        Args:
            sha: The SHA of the missing object.
        """
        self.sha = sha
        super().__init__(f"{_to_display(sha)} is not in the object store")


class RefNotFound(NotFound):
    """No reference matches the requested name."""

    def __init__(self, name: bytes) -> None:
        self.name = name
        super().__init__(f"reference {_path_display(name)} not found")


class PathNotFound(NotFound):
    """A path does not resolve within a tree."""

    def __init__(self, path: bytes) -> None:
        self.path = path
        super().__init__(f"path {_path_display(path)!r} not found")


class WrongObjectException(Exception):
    """Baseclass for all the _ is not a _ exceptions on objects.

    Do not instantiate directly.

    Subclasses should define a type_name attribute that indicates what
    was expected if they were raised.
    """

    type_name: str

    def __init__(self, sha: bytes) -> None:
        """Initialize a WrongObjectException.

        Args:
            sha: The SHA of the object that was not of the expected type.
        """
        self.sha = sha
        Exception.__init__(self, f"{_to_display(sha)} is not a {self.type_name}")


class NotCommitError(WrongObjectException):
    """Indicates that the sha requested does not point to a commit."""

    type_name = "commit"


class NotTreeError(WrongObjectException):
    """Indicates that the sha requested does not point to a tree."""

    type_name = "tree"


class NotBlobError(WrongObjectException):
    """Indicates that the sha requested does not point to a blob."""

    type_name = "blob"


class ChecksumMismatch(Exception):
    """A checksum didn't match the expected contents."""

    def __init__(
        self,
        expected: Union[bytes, str],
        got: Union[bytes, str],
        extra: Optional[str] = None,
    ) -> None:
        """Initialize a ChecksumMismatch exception.

        Args:
          expected: The expected checksum value (bytes or hex string).
          got: The actual checksum value (bytes or hex string).
          extra: Optional additional error information.
        """
        self.expected = _to_display(expected)
        self.got = _to_display(got)
        self.extra = extra
        message = f"Checksum mismatch: Expected {self.expected}, got {self.got}"
        if extra is not None:
            message += f"; {extra}"
        Exception.__init__(self, message)


class Corrupt(ChecksumMismatch):
    """Stored object bytes failed re-verification."""


class ApplyDeltaError(Exception):
    """Indicates that applying a delta failed."""


class NotRepository(Exception):
    """Indicates that no repository was found at a location."""


class FileFormatException(Exception):
    """Base class for exceptions relating to reading git file formats."""


class PackedRefsException(FileFormatException):
    """Indicates an error parsing a packed-refs file."""


class ObjectFormatException(FileFormatException):
    """Indicates an error parsing an object."""


class RefFormatError(Exception):
    """Indicates an invalid ref name."""


class InvalidPath(ValueError):
    """A path is empty or malformed for the requested operation."""

    def __init__(self, path: Union[bytes, str], reason: str = "invalid path") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {_path_display(path)!r}")


class StoreIOError(OSError):
    """The backing storage could not be read or written."""


class Conflict(Exception):
    """A reference kept moving while a commit was being installed."""

    def __init__(self, refname: bytes, attempts: int) -> None:
        self.refname = refname
        self.attempts = attempts
        super().__init__(
            f"{_path_display(refname)} changed concurrently; "
            f"gave up after {attempts} attempts"
        )
