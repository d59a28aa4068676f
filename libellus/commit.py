# commit.py -- Building new commits that change one path
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

"""Build a new commit that adds or replaces a single file.

New trees are written bottom-up: only the trees along the changed path are
rewritten, every sibling keeps its id. Nothing here touches a ref.
"""

__all__ = [
    "build_commit",
    "local_timezone",
    "make_commit",
    "upsert_tree",
]

import logging
import stat
import time
from typing import Optional, Union

from .errors import InvalidPath, NotTreeError
from .object_store import BaseObjectStore
from .objects import S_ISGITLINK, ObjectID, Tree
from .paths import normalize_path

logger = logging.getLogger(__name__)

FILE_MODE = stat.S_IFREG | 0o644
EXECUTABLE_MODE = stat.S_IFREG | 0o755


def local_timezone(timestamp: Optional[float] = None) -> int:
    """Return the local offset from UTC, in seconds, at ``timestamp``."""
    return time.localtime(timestamp).tm_gmtoff


def _upsert(
    store: BaseObjectStore,
    tree_sha: Optional[ObjectID],
    segments: list[bytes],
    depth: int,
    blob_sha: ObjectID,
) -> ObjectID:
    if tree_sha is None:
        tree = Tree()
    else:
        tree = store[tree_sha]
        if not isinstance(tree, Tree):
            raise NotTreeError(tree_sha)
    name = segments[depth]
    try:
        existing: Optional[tuple[int, ObjectID]] = tree[name]
    except KeyError:
        existing = None
    if depth == len(segments) - 1:
        if existing is not None and existing[0] == EXECUTABLE_MODE:
            mode = EXECUTABLE_MODE
        else:
            mode = FILE_MODE
        tree[name] = (mode, blob_sha)
    else:
        if existing is None:
            subtree_sha = None
        elif stat.S_ISDIR(existing[0]) and not S_ISGITLINK(existing[0]):
            subtree_sha = existing[1]
        else:
            raise InvalidPath(
                b"/".join(segments),
                "{} is not a directory".format(
                    b"/".join(segments[: depth + 1]).decode("utf-8", "replace")
                ),
            )
        tree[name] = (
            stat.S_IFDIR,
            _upsert(store, subtree_sha, segments, depth + 1, blob_sha),
        )
    return store.put_tree(tree.iteritems())


def upsert_tree(
    store: BaseObjectStore,
    old_root: Optional[bytes],
    segments: list[bytes],
    blob_sha: bytes,
) -> ObjectID:
    """Add or replace the file at ``segments`` and return the new root tree.

    Args:
      store: Object store to read old trees from and write new ones to
      old_root: id of the current root tree, or None to start empty
      segments: non-empty path segments, as returned by normalize_path()
      blob_sha: id of the blob to place at the path
    Returns: id of the new root tree
    Raises:
      InvalidPath: if ``segments`` is empty, or an intermediate segment
        names an existing file
    """
    if not segments:
        raise InvalidPath(b"", "cannot replace the root directory")
    return _upsert(
        store,
        ObjectID(old_root) if old_root is not None else None,
        segments,
        0,
        ObjectID(blob_sha),
    )


def make_commit(
    store: BaseObjectStore,
    tree: bytes,
    parents: list[bytes],
    author: bytes,
    message: Union[str, bytes],
    committer: Optional[bytes] = None,
    timestamp: Optional[int] = None,
    timezone: Optional[int] = None,
) -> ObjectID:
    """Write a commit object, stamped with the current local time.

    Returns: id of the new commit
    """
    if timestamp is None:
        timestamp = int(time.time())
    if timezone is None:
        timezone = local_timezone(timestamp)
    return store.put_commit(
        tree,
        parents,
        author,
        message,
        timestamp,
        timezone=timezone,
        committer=committer,
    )


def build_commit(
    store: BaseObjectStore,
    tip: Optional[bytes],
    path: Union[str, bytes],
    contents: bytes,
    message: Union[str, bytes],
    author: bytes,
    committer: Optional[bytes] = None,
) -> ObjectID:
    """Write the blob, trees and commit for a change to a single path.

    Args:
      store: Object store to write to
      tip: id of the commit to build on, or None for a root commit
      path: path of the file to add or replace
      contents: new contents of the file
      message: commit message
      author: identity of the author
      committer: identity of the committer; defaults to ``author``
    Returns: id of the new commit, which no ref points at yet
    """
    segments = normalize_path(path)
    if not segments:
        raise InvalidPath(path, "cannot commit to the root directory")
    if tip is None:
        old_root = None
        parents: list[bytes] = []
    else:
        old_root = store.get_commit(tip).tree
        parents = [tip]
    blob_sha = store.put_blob(contents)
    new_root = upsert_tree(store, old_root, segments, blob_sha)
    commit_sha = make_commit(
        store, new_root, parents, author, message, committer=committer
    )
    logger.debug(
        "built commit %s on %s",
        commit_sha.decode("ascii"),
        tip.decode("ascii") if tip else "(root)",
    )
    return commit_sha
