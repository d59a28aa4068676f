# refs.py -- Reading and updating git references
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

"""Ref handling.

References bind names to commit ids. They live either as loose files under
the control directory or as lines of ``packed-refs``; a loose ref shadows a
packed ref of the same name. Updates take git's lock file on the ref, so
they exclude other writers, including other git implementations.
"""

__all__ = [
    "DWIM_PREFIXES",
    "HEADREF",
    "LOCAL_BRANCH_PREFIX",
    "SYMREF",
    "DictRefsContainer",
    "DiskRefsContainer",
    "RefsContainer",
    "SymrefLoop",
    "check_ref_format",
    "format_reflog_line",
    "read_packed_refs",
]

import logging
import os
import threading
from collections.abc import Callable
from typing import IO, Optional, Union

from .errors import PackedRefsException, RefFormatError, RefNotFound, StoreIOError
from .file import GitFile, ensure_dir_exists
from .objects import ZERO_SHA, ObjectID, format_timezone, valid_hexsha

logger = logging.getLogger(__name__)

HEADREF = b"HEAD"
SYMREF = b"ref: "
LOCAL_BRANCH_PREFIX = b"refs/heads/"
BAD_REF_CHARS = set(b"\177 ~^:?*[\\")

# Candidates tried, in order, when expanding a short ref name.
DWIM_PREFIXES = (
    b"%s",
    b"refs/%s",
    b"refs/tags/%s",
    b"refs/heads/%s",
    b"refs/remotes/%s",
    b"refs/remotes/%s/HEAD",
)

# Short names under these directories are completed with just "refs/".
_QUALIFIED_DIRS = (b"heads/", b"tags/", b"remotes/")

MAX_SYMREF_DEPTH = 5

# Called after a ref changed, with (refname, old, new, committer, timestamp,
# timezone, message).
ReflogWriter = Callable[
    [bytes, bytes, bytes, Optional[bytes], Optional[int], Optional[int], bytes],
    None,
]


class SymrefLoop(Exception):
    """There is a loop between one or more symrefs."""

    def __init__(self, ref: bytes, depth: int) -> None:
        self.ref = ref
        self.depth = depth
        super().__init__(
            "symbolic reference {} nested deeper than {}".format(
                ref.decode("utf-8", "replace"), depth - 1
            )
        )


def check_ref_format(refname: bytes) -> bool:
    """Check a ref name against the rules of git-check-ref-format.

    Names need at least two slash-separated components. No component may
    start with a dot or end in ``.lock``. The name may not contain ``..``,
    ``//``, ``@{``, control characters, or any of ``\\ ~^:?*[`` and space.
    It may not start with a slash or end with a slash or dot.

    Returns: True if refname is valid, False otherwise
    """
    if b"/" not in refname or refname.startswith((b"/", b".")):
        return False
    if refname.endswith((b"/", b".", b".lock")):
        return False
    if any(part in refname for part in (b"/.", b"..", b"//", b"@{", b".lock/")):
        return False
    return not any(c < 0o40 or c in BAD_REF_CHARS for c in refname)


def format_reflog_line(
    old_sha: Optional[bytes],
    new_sha: bytes,
    committer: bytes,
    timestamp: Union[int, float],
    timezone: int,
    message: bytes,
) -> bytes:
    """Format one line of a reflog, without the trailing newline.

    A missing ``old_sha`` is written as the zero id. Newlines in ``message``
    become spaces, as git does.
    """
    return b"%s %s %s %d %s\t%s" % (
        old_sha or ZERO_SHA,
        new_sha,
        committer,
        int(timestamp),
        format_timezone(timezone),
        message.replace(b"\n", b" "),
    )


def read_packed_refs(f: IO[bytes]) -> dict[bytes, bytes]:
    """Parse a ``packed-refs`` file.

    Lines are ``<sha> <refname>``. Comment lines, including the
    ``# pack-refs with:`` header, are skipped, and so are the ``^<sha>``
    lines that give the peeled value of the annotated tag before them.

    Returns: dict mapping ref names to ids
    Raises:
      PackedRefsException: on a malformed line
    """
    refs: dict[bytes, bytes] = {}
    after_ref = False
    for line in f:
        line = line.rstrip(b"\r\n")
        if not line or line.startswith(b"#"):
            continue
        if line.startswith(b"^"):
            if not after_ref or not valid_hexsha(line[1:]):
                raise PackedRefsException(f"unexpected peeled line {line!r}")
            after_ref = False
            continue
        sha, _, name = line.partition(b" ")
        if not valid_hexsha(sha) or not check_ref_format(name):
            raise PackedRefsException(f"invalid packed ref line {line!r}")
        refs[name] = sha
        after_ref = True
    return refs


class RefsContainer:
    """A container for refs.

    Subclasses provide storage through ``read_loose_ref``,
    ``get_packed_refs`` and ``_update``; lookups and compare-and-swap are
    built on those.
    """

    def __init__(self, reflog: Optional[ReflogWriter] = None) -> None:
        self._reflog = reflog

    def read_loose_ref(self, name: bytes) -> Optional[bytes]:
        """Return the stored value of ``name``, or None."""
        raise NotImplementedError(self.read_loose_ref)

    def get_packed_refs(self) -> dict[bytes, bytes]:
        """Return the packed refs, empty if there are none."""
        raise NotImplementedError(self.get_packed_refs)

    def _update(
        self,
        realname: bytes,
        accept: Callable[[Optional[bytes]], bool],
        value: bytes,
    ) -> tuple[bool, Optional[bytes]]:
        """Store ``value`` under ``realname`` if ``accept`` allows it.

        ``accept`` is called with the current value while the ref is
        locked against other writers.

        Returns: (whether the value was stored, the value found)
        """
        raise NotImplementedError(self._update)

    def _check_refname(self, name: bytes) -> None:
        # HEAD is not a valid ref name for git-check-ref-format, but it is
        # the one name outside refs/ a container may touch.
        if name == HEADREF:
            return
        if not name.startswith(b"refs/") or not check_ref_format(name[5:]):
            raise RefFormatError(name)

    def read_ref(self, refname: bytes) -> Optional[bytes]:
        """Read a reference without following symbolic references.

        Returns: the contents of the ref, or None if it does not exist
        """
        return self.read_loose_ref(refname) or self.get_packed_refs().get(refname)

    def follow(self, name: bytes) -> tuple[list[bytes], Optional[bytes]]:
        """Follow a chain of symbolic references.

        Returns: (names in the chain, starting with ``name``; the id at its
            end, or None if the last name does not exist)
        Raises:
          SymrefLoop: if symbolic references nest too deeply
        """
        refnames = [name]
        contents = self.read_ref(name)
        while contents is not None and contents.startswith(SYMREF):
            if len(refnames) > MAX_SYMREF_DEPTH:
                raise SymrefLoop(name, len(refnames))
            target = contents[len(SYMREF) :]
            refnames.append(target)
            contents = self.read_ref(target)
        return refnames, contents

    def __contains__(self, refname: bytes) -> bool:
        return self.read_ref(refname) is not None

    def __getitem__(self, name: bytes) -> ObjectID:
        """Return the id ``name`` resolves to, following symbolic refs."""
        _, sha = self.follow(name)
        if sha is None:
            raise KeyError(name)
        return ObjectID(sha)

    def _check_shorthand(self, name: bytes) -> None:
        if name == HEADREF:
            return
        if not check_ref_format(b"refs/x/" + name):
            raise RefFormatError(name)

    def dwim(self, name: bytes) -> bytes:
        """Expand a possibly abbreviated ref name.

        Tries, in order: ``name``, ``refs/<name>``, ``refs/tags/<name>``,
        ``refs/heads/<name>``, ``refs/remotes/<name>`` and
        ``refs/remotes/<name>/HEAD``.

        Returns: the first candidate that exists
        Raises:
          RefNotFound: if no candidate exists
          RefFormatError: if ``name`` is not a valid ref name
        """
        self._check_shorthand(name)
        for prefix in DWIM_PREFIXES:
            candidate = prefix % name
            if candidate in self:
                return candidate
        raise RefNotFound(name)

    def resolve(self, name: bytes) -> ObjectID:
        """Resolve a possibly abbreviated ref name to a commit id.

        Raises:
          RefNotFound: if no candidate exists, or the one that does is a
            symbolic reference to a ref that does not exist
        """
        refname = self.dwim(name)
        try:
            return self[refname]
        except KeyError:
            raise RefNotFound(name) from None

    def canonical_name(self, name: bytes) -> bytes:
        """Return the fully qualified name of the ref that ``name`` updates.

        Symbolic references are followed to their final target. A name with
        no existing candidate is an unborn branch: ``refs/...`` is kept,
        ``heads/x``, ``tags/x`` and ``remotes/x`` get ``refs/`` in front, and
        anything else is taken to be under ``refs/heads/``.

        Raises:
          RefFormatError: if ``name`` or its target is not a valid ref name
          SymrefLoop: if symbolic references nest too deeply
        """
        try:
            found = self.dwim(name)
        except RefNotFound:
            if name.startswith(b"refs/"):
                candidate = name
            elif name.startswith(_QUALIFIED_DIRS):
                candidate = b"refs/" + name
            else:
                candidate = LOCAL_BRANCH_PREFIX + name
            self._check_refname(candidate)
            return candidate
        refnames, _ = self.follow(found)
        self._check_refname(refnames[-1])
        return refnames[-1]

    def _target(self, name: bytes) -> bytes:
        self._check_refname(name)
        refnames, _ = self.follow(name)
        self._check_refname(refnames[-1])
        return refnames[-1]

    def _log(
        self,
        ref: bytes,
        old_sha: Optional[bytes],
        new_sha: bytes,
        committer: Optional[bytes],
        timestamp: Optional[int],
        timezone: Optional[int],
        message: Optional[bytes],
    ) -> None:
        if self._reflog is None or message is None:
            return
        self._reflog(
            ref, old_sha or ZERO_SHA, new_sha, committer, timestamp, timezone, message
        )

    def set_symbolic_ref(self, name: bytes, other: bytes) -> None:
        """Make ``name`` a symbolic reference to ``other``."""
        self._check_refname(name)
        self._check_refname(other)
        self._update(name, lambda current: True, SYMREF + other)

    def set_if_equals(
        self,
        name: bytes,
        old_ref: Optional[bytes],
        new_ref: bytes,
        committer: Optional[bytes] = None,
        timestamp: Optional[int] = None,
        timezone: Optional[int] = None,
        message: Optional[bytes] = None,
    ) -> bool:
        """Point a ref at ``new_ref`` only if it currently holds ``old_ref``.

        Symbolic references are followed and their final target is updated.
        The comparison is made under the ref's lock, so this is an atomic
        compare-and-swap.

        Args:
          name: The refname to set
          old_ref: The id the ref must hold, ZERO_SHA for a ref that must
            not exist, or None to set unconditionally
          new_ref: The new id
          committer: identity recorded in the reflog
          timestamp: time recorded in the reflog
          timezone: timezone recorded in the reflog
          message: reflog message; nothing is logged without one
        Returns: True if the ref was updated, False if it held another value
        Raises:
          FileLocked: if another writer holds the lock on the ref
          RefFormatError: if the name is malformed
        """
        realname = self._target(name)

        def unchanged(current: Optional[bytes]) -> bool:
            return old_ref is None or (current or ZERO_SHA) == old_ref

        updated, current = self._update(realname, unchanged, new_ref)
        if not updated:
            logger.debug("%s moved from %r to %r, not updating", realname, old_ref, current)
            return False
        logger.debug("updated %s to %s", realname, new_ref)
        self._log(realname, current, new_ref, committer, timestamp, timezone, message)
        return True

    def add_if_new(
        self,
        name: bytes,
        ref: bytes,
        committer: Optional[bytes] = None,
        timestamp: Optional[int] = None,
        timezone: Optional[int] = None,
        message: Optional[bytes] = None,
    ) -> bool:
        """Create a ref only if it does not exist yet.

        Symbolic references are followed, so this creates the unborn branch
        a symbolic ref points at.

        Returns: True if the ref was created
        Raises:
          FileLocked: if another writer holds the lock on the ref
        """
        realname = self._target(name)
        created, _ = self._update(realname, lambda current: current is None, ref)
        if not created:
            logger.debug("%s already exists, not creating", realname)
            return False
        logger.debug("created %s at %s", realname, ref)
        self._log(realname, None, ref, committer, timestamp, timezone, message)
        return True

    def advance(self, name: bytes, ref: bytes, message: Optional[bytes] = None) -> None:
        """Point a ref at ``ref`` regardless of its current value.

        This is last-writer-wins; use set_if_equals() to update only if the
        reference has not changed.
        """
        self.set_if_equals(name, None, ref, message=message)

    def __setitem__(self, name: bytes, ref: bytes) -> None:
        self.advance(name, ref)


class DictRefsContainer(RefsContainer):
    """RefsContainer backed by a dict, for repositories held in memory.

    Updates are serialized with a lock, so the container may be shared
    between threads.
    """

    def __init__(
        self, refs: dict[bytes, bytes], reflog: Optional[ReflogWriter] = None
    ) -> None:
        super().__init__(reflog)
        self._refs = refs
        self._lock = threading.Lock()

    def read_loose_ref(self, name: bytes) -> Optional[bytes]:
        return self._refs.get(name)

    def get_packed_refs(self) -> dict[bytes, bytes]:
        return {}

    def _update(self, realname, accept, value):
        with self._lock:
            current = self._refs.get(realname)
            if not accept(current):
                return False, current
            self._refs[realname] = value
        return True, current


class DiskRefsContainer(RefsContainer):
    """Refs stored in a git control directory."""

    def __init__(
        self,
        path: Union[str, bytes, os.PathLike],
        reflog: Optional[ReflogWriter] = None,
    ) -> None:
        super().__init__(reflog)
        self.path = os.fsencode(os.fspath(path))
        self._packed_refs: dict[bytes, bytes] = {}
        self._packed_refs_stat: Optional[tuple[int, int, int]] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r})"

    def refpath(self, name: bytes) -> bytes:
        """Return the disk path of a ref."""
        if os.path.sep != "/":
            name = name.replace(b"/", os.fsencode(os.path.sep))
        return os.path.join(self.path, name)

    def get_packed_refs(self) -> dict[bytes, bytes]:
        """Return the refs in ``packed-refs``.

        The file is parsed again only when its inode, size or mtime changed.
        """
        path = os.path.join(self.path, b"packed-refs")
        try:
            st = os.stat(path)
        except FileNotFoundError:
            self._packed_refs = {}
            self._packed_refs_stat = None
            return self._packed_refs
        except OSError as exc:
            raise StoreIOError(f"unable to stat {path!r}: {exc}") from exc
        key = (st.st_ino, st.st_size, st.st_mtime_ns)
        if self._packed_refs_stat != key:
            try:
                with GitFile(path, "rb") as f:
                    self._packed_refs = read_packed_refs(f)
            except FileNotFoundError:
                return {}
            except OSError as exc:
                raise StoreIOError(f"unable to read {path!r}: {exc}") from exc
            self._packed_refs_stat = key
        return self._packed_refs

    def read_loose_ref(self, name: bytes) -> Optional[bytes]:
        """Read the loose file of a ref.

        Only the first line of a symbolic ref, and the first 40 bytes of any
        other ref, are read.

        Returns: the contents, or None if there is no such file
        Raises:
          StoreIOError: if the file exists but cannot be read
        """
        filename = self.refpath(name)
        try:
            with GitFile(filename, "rb") as f:
                header = f.read(len(SYMREF))
                if header == SYMREF:
                    return header + f.readline().rstrip(b"\r\n")
                return header + f.read(40 - len(SYMREF))
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        except OSError as exc:
            raise StoreIOError(f"unable to read ref {filename!r}: {exc}") from exc

    def _update(self, realname, accept, value):
        packed_refs = self.get_packed_refs()
        parent = os.path.dirname(realname)
        while parent:
            # A packed ref cannot also be a directory of loose refs.
            if parent in packed_refs:
                raise RefFormatError(realname)
            parent = os.path.dirname(parent)
        filename = self.refpath(realname)
        try:
            ensure_dir_exists(os.path.dirname(filename))
            with GitFile(filename, "wb") as f:
                current = self.read_ref(realname)
                if not accept(current):
                    f.abort()
                    return False, current
                f.write(value + b"\n")
        except StoreIOError:
            raise
        except OSError as exc:
            raise StoreIOError(f"unable to update ref {filename!r}: {exc}") from exc
        return True, current
