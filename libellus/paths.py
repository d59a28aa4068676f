# paths.py -- Resolving paths within trees
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

"""Resolve slash-separated paths against a root tree."""

__all__ = [
    "File",
    "list_path",
    "lookup_tree",
    "normalize_path",
    "read_path",
]

import stat
from typing import NamedTuple, Union

from .errors import InvalidPath, NotTreeError, PathNotFound
from .object_store import BaseObjectStore
from .objects import S_ISGITLINK, ObjectID, Tree

INVALID_SEGMENTS = (b"", b".", b"..", b".git")


class File(NamedTuple):
    """An entry of a directory listing."""

    name: bytes
    is_blob: bool
    oid: ObjectID


def normalize_path(path: Union[str, bytes]) -> list[bytes]:
    """Split a path into its segments.

    Leading slashes and a single trailing slash are ignored, so ``""`` and
    ``"/"`` both name the root and yield an empty list.

    Raises:
      InvalidPath: if a segment is empty, ``.``, ``..`` or ``.git``, or
        contains a NUL byte
    """
    if isinstance(path, str):
        path = path.encode("utf-8")
    stripped = path.lstrip(b"/")
    if stripped.endswith(b"/"):
        stripped = stripped[:-1]
    if not stripped:
        return []
    segments = stripped.split(b"/")
    for segment in segments:
        if segment in INVALID_SEGMENTS:
            raise InvalidPath(path, f"invalid path segment {segment!r}")
        if b"\0" in segment:
            raise InvalidPath(path, "NUL byte in path")
    return segments


def _get_tree(store: BaseObjectStore, sha: bytes) -> Tree:
    tree = store[sha]
    if not isinstance(tree, Tree):
        raise NotTreeError(sha)
    return tree


def lookup_tree(store: BaseObjectStore, root: bytes, segments: list[bytes]) -> ObjectID:
    """Descend from ``root`` through ``segments`` to a tree.

    Args:
      store: Object store to read trees from
      root: id of the root tree
      segments: path segments, as returned by :func:`normalize_path`
    Returns: id of the tree named by ``segments``
    Raises:
      PathNotFound: if a segment is missing or does not name a tree
    """
    sha = ObjectID(root)
    for i, segment in enumerate(segments):
        tree = _get_tree(store, sha)
        try:
            mode, sha = tree[segment]
        except KeyError:
            raise PathNotFound(b"/".join(segments[: i + 1])) from None
        if not stat.S_ISDIR(mode) or S_ISGITLINK(mode):
            raise PathNotFound(b"/".join(segments[: i + 1]))
    return sha


def list_path(
    store: BaseObjectStore, root: bytes, path: Union[str, bytes]
) -> list[File]:
    """List the entries of the directory at ``path``, without recursing.

    Returns: entries in canonical tree order
    """
    segments = normalize_path(path)
    tree = _get_tree(store, lookup_tree(store, root, segments))
    return [
        File(name, not stat.S_ISDIR(mode) and not S_ISGITLINK(mode), sha)
        for name, mode, sha in tree.iteritems()
    ]


def read_path(store: BaseObjectStore, root: bytes, path: Union[str, bytes]) -> bytes:
    """Return the contents of the file at ``path``.

    Raises:
      InvalidPath: if ``path`` is empty or malformed
      PathNotFound: if ``path`` does not name a file
    """
    segments = normalize_path(path)
    if not segments:
        raise InvalidPath(path, "cannot read the root directory")
    tree = _get_tree(store, lookup_tree(store, root, segments[:-1]))
    try:
        mode, sha = tree[segments[-1]]
    except KeyError:
        raise PathNotFound(b"/".join(segments)) from None
    if stat.S_ISDIR(mode) or S_ISGITLINK(mode):
        raise PathNotFound(b"/".join(segments))
    return store.get_blob(sha)
