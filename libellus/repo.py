# repo.py -- For dealing with git repositories.
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

"""Repository access.

A :class:`Repository` ties an object store and a refs container to one
branch, and exposes three operations on it: listing a directory, reading a
file and committing a new version of a file. :class:`MemoryRepository` does
the same without touching the disk.
"""

__all__ = [
    "BASE_DIRECTORIES",
    "CONTROLDIR",
    "DEFAULT_BRANCH",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_REFNAME",
    "OBJECTDIR",
    "REFSDIR",
    "BaseRepository",
    "File",
    "MemoryRepository",
    "Repository",
]

import logging
import os
import time
from collections.abc import Iterator
from types import TracebackType
from typing import Optional, Union

from .commit import build_commit, local_timezone
from .config import (
    ConfigFile,
    StackedConfig,
    check_user_identity,
    get_user_identity,
)
from .errors import Conflict, InvalidPath, NotFound, NotRepository, RefNotFound
from .file import FileLocked, GitFile, ensure_dir_exists
from .object_store import BaseObjectStore, DiskObjectStore, MemoryObjectStore
from .objects import Commit, ObjectID
from .paths import File, list_path, normalize_path, read_path
from .refs import (
    HEADREF,
    LOCAL_BRANCH_PREFIX,
    DictRefsContainer,
    DiskRefsContainer,
    RefsContainer,
    format_reflog_line,
)

logger = logging.getLogger(__name__)

CONTROLDIR = ".git"
OBJECTDIR = "objects"
REFSDIR = "refs"
REFSDIR_TAGS = "tags"
REFSDIR_HEADS = "heads"
LOGSDIR = "logs"

BASE_DIRECTORIES = [
    [REFSDIR],
    [REFSDIR, REFSDIR_TAGS],
    [REFSDIR, REFSDIR_HEADS],
    ["hooks"],
    ["info"],
]

DEFAULT_BRANCH = b"master"
DEFAULT_REFNAME = LOCAL_BRANCH_PREFIX + DEFAULT_BRANCH

DEFAULT_MAX_RETRIES = 5

RefName = Union[str, bytes]


def _to_refname(name: RefName) -> bytes:
    if isinstance(name, str):
        return name.encode("utf-8")
    return name


def _branch_ref(name: RefName) -> bytes:
    """Return the ref a new repository's HEAD should point at."""
    name = _to_refname(name)
    if name == HEADREF:
        return DEFAULT_REFNAME
    if name.startswith(b"refs/"):
        return name
    return LOCAL_BRANCH_PREFIX + name


def _reflog_message(tip: Optional[bytes], message: bytes) -> bytes:
    lines = message.splitlines()
    subject = lines[0] if lines else b""
    if tip is None:
        return b"commit (initial): " + subject
    return b"commit: " + subject


def read_gitfile(f) -> str:
    """Read a ``.git`` file.

    The first line of the file should start with "gitdir: "

    Args:
      f: File-like object to read from
    Returns: A path
    """
    cs = f.read()
    if not cs.startswith(b"gitdir: "):
        raise ValueError("Expected file to start with 'gitdir: '")
    return os.fsdecode(cs[len(b"gitdir: ") :].rstrip(b"\r\n"))


class BaseRepository:
    """Base class for a git repository.

    This base class is meant to be used for Repository implementations that e.g.
    work on top of a different transport than a standard filesystem path.

    Attributes:
      object_store: Dictionary-like object for accessing
        the objects
      refs: Dictionary-like object with the refs in this
        repository
      refname: Fully qualified name of the branch this repository reads
        and commits to
    """

    def __init__(
        self,
        object_store: BaseObjectStore,
        refs: RefsContainer,
        refname: RefName = DEFAULT_REFNAME,
        *,
        max_retries: Optional[int] = None,
        author: Optional[RefName] = None,
    ) -> None:
        """Open a repository.

        Args:
          object_store: Object store to use
          refs: Refs container to use
          refname: Name of the branch to work on; short names are expanded
          max_retries: How often a commit is rebuilt after losing a race on
            the branch; defaults to ``libellus.commitRetries`` or 5
          author: Identity to author and commit with; defaults to the
            configured user identity
        Raises:
          RefFormatError: if ``refname`` is malformed
          SymrefLoop: if ``refname`` is a symbolic reference loop
        """
        self.object_store = object_store
        self.refs = refs
        self.refname = self.refs.canonical_name(_to_refname(refname))
        if max_retries is None:
            max_retries = self.get_config_stack().get_int(
                ("libellus",), "commitRetries", DEFAULT_MAX_RETRIES
            )
        if max_retries < 0:
            raise ValueError(f"max_retries must not be negative, got {max_retries}")
        self.max_retries = max_retries
        self._author = _to_refname(author) if author is not None else None
        if self._author is not None:
            check_user_identity(self._author)

    def get_config(self) -> ConfigFile:
        """Retrieve the config object.

        Returns: `ConfigFile` object for the repository's config.
        """
        raise NotImplementedError(self.get_config)

    def get_config_stack(self) -> StackedConfig:
        """Return a config stack for this repository.

        This stack accesses the configuration for both this repository
        itself (.git/config) and the global configuration, which usually
        lives in ~/.gitconfig.

        Returns: `Config` instance for this repository
        """
        backends = [self.get_config()]
        backends.extend(StackedConfig.default_backends())
        return StackedConfig(backends)

    def _get_user_identity(self, config: StackedConfig, kind: str) -> bytes:
        if self._author is not None:
            return self._author
        return get_user_identity(config, kind)

    def head(self) -> Optional[ObjectID]:
        """Return the id of the commit the branch points at.

        Returns: commit id, or None if the branch has no commits yet
        """
        try:
            return self.refs[self.refname]
        except KeyError:
            return None

    def _root_tree(self) -> ObjectID:
        tip = self.head()
        if tip is None:
            raise RefNotFound(self.refname)
        return self.object_store.get_commit(tip).tree

    def list(self, path: Union[str, bytes]) -> Optional[list[File]]:
        """List the directory at ``path`` on the branch tip.

        Args:
          path: slash-separated path; ``""`` and ``"/"`` name the root
        Returns: entries in tree order, or None if the path, the branch or
            an object along the way does not exist. A path with an empty,
            ``.``, ``..`` or ``.git`` segment names nothing and gives None too.
        """
        try:
            segments = normalize_path(path)
        except InvalidPath as exc:
            logger.debug("list %r: %s", path, exc)
            return None
        try:
            return list_path(self.object_store, self._root_tree(), b"/".join(segments))
        except NotFound as exc:
            logger.debug("list %r: %s", path, exc)
            return None

    def read(self, path: Union[str, bytes]) -> Optional[bytes]:
        """Return the contents of the file at ``path`` on the branch tip.

        Returns: file contents, or None if the path, the branch or an object
            along the way does not exist, or if ``path`` is malformed
        Raises:
          InvalidPath: if ``path`` names the root directory
        """
        try:
            segments = normalize_path(path)
        except InvalidPath as exc:
            logger.debug("read %r: %s", path, exc)
            return None
        if not segments:
            raise InvalidPath(path, "cannot read the root directory")
        try:
            return read_path(self.object_store, self._root_tree(), b"/".join(segments))
        except NotFound as exc:
            logger.debug("read %r: %s", path, exc)
            return None

    def commit(
        self,
        message: Union[str, bytes],
        path: Union[str, bytes],
        contents: bytes,
    ) -> ObjectID:
        """Commit new contents for a single file to the branch.

        The commit is built on the current tip and installed with a
        compare-and-swap. If another writer moved the branch in the
        meantime, the commit is rebuilt on the new tip, up to
        ``max_retries`` times.

        Args:
          message: commit message, stored as given
          path: path of the file to add or replace
          contents: new contents of the file
        Returns: id of the new commit
        Raises:
          InvalidPath: if ``path`` is empty or crosses an existing file
          Conflict: if the branch kept moving
        """
        if isinstance(message, str):
            message = message.encode("utf-8")
        segments = normalize_path(path)
        if not segments:
            raise InvalidPath(path, "cannot commit to the root directory")
        config = self.get_config_stack()
        author = self._get_user_identity(config, "AUTHOR")
        committer = self._get_user_identity(config, "COMMITTER")
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            tip = self.head()
            new_sha = build_commit(
                self.object_store,
                tip,
                b"/".join(segments),
                contents,
                message,
                author,
                committer=committer,
            )
            reflog_message = _reflog_message(tip, message)
            try:
                if tip is None:
                    installed = self.refs.add_if_new(
                        self.refname, new_sha, committer=committer, message=reflog_message
                    )
                else:
                    installed = self.refs.set_if_equals(
                        self.refname,
                        tip,
                        new_sha,
                        committer=committer,
                        message=reflog_message,
                    )
            except FileLocked:
                logger.debug("%s is locked by another writer", self.refname)
                installed = False
            if installed:
                logger.debug(
                    "committed %s to %s", new_sha.decode("ascii"), self.refname
                )
                return new_sha
            logger.debug(
                "%s moved during commit (attempt %d of %d)",
                self.refname,
                attempt,
                attempts,
            )
        raise Conflict(self.refname, attempts)

    def history(self, limit: Optional[int] = None) -> Iterator[Commit]:
        """Walk the first-parent history of the branch, newest first.

        Args:
          limit: Maximum number of commits to yield
        """
        sha = self.head()
        count = 0
        while sha is not None and (limit is None or count < limit):
            commit = self.object_store.get_commit(sha)
            yield commit
            count += 1
            sha = commit.parents[0] if commit.parents else None

    def close(self) -> None:
        """Close any files opened by this repository."""
        self.object_store.close()

    def __enter__(self) -> "BaseRepository":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()


class Repository(BaseRepository):
    """A git repository backed by local disk.

    To open an existing repository, call the constructor with
    the path of the repository.

    To create a new repository, use the Repository.init class method.

    Note that a repository object may hold on to resources such
    as file handles for performance reasons; call .close() to free
    up those resources.

    Attributes:
      path: Path to the working copy (if it exists) or repository control
        directory (if the repository is bare)
      bare: Whether this is a bare repository
    """

    def __init__(
        self,
        root: Union[str, bytes, os.PathLike],
        refname: RefName = DEFAULT_REFNAME,
        *,
        max_retries: Optional[int] = None,
        author: Optional[RefName] = None,
    ) -> None:
        """Open a repository on disk.

        Args:
          root: Path to the repository's root.
          refname: Name of the branch to work on
          max_retries: See :class:`BaseRepository`
          author: See :class:`BaseRepository`
        Raises:
          NotRepository: if no usable repository is found at ``root``
        """
        root = os.fspath(root)
        if isinstance(root, bytes):
            root = os.fsdecode(root)
        hidden_path = os.path.join(root, CONTROLDIR)
        if os.path.isfile(hidden_path) or os.path.isdir(
            os.path.join(hidden_path, OBJECTDIR)
        ):
            self.bare = False
        elif os.path.isdir(os.path.join(root, OBJECTDIR)) and os.path.isdir(
            os.path.join(root, REFSDIR)
        ):
            self.bare = True
        else:
            raise NotRepository(f"No git repository was found at {root}")

        if not self.bare and os.path.isfile(hidden_path):
            try:
                with open(hidden_path, "rb") as f:
                    self._controldir = os.path.join(root, read_gitfile(f))
            except (OSError, ValueError) as exc:
                raise NotRepository(f"unable to read {hidden_path}: {exc}") from exc
        elif self.bare:
            self._controldir = root
        else:
            self._controldir = hidden_path
        self.path = root

        self._config = self._load_config()
        try:
            format_version = self._config.get_int(
                ("core",), "repositoryformatversion", 0
            )
        except ValueError as exc:
            raise NotRepository(f"{root}: {exc}") from exc
        if format_version not in (0, 1):
            raise NotRepository(
                f"{root}: unsupported repository format version {format_version}"
            )

        object_store = DiskObjectStore(os.path.join(self._controldir, OBJECTDIR))
        refs = DiskRefsContainer(self._controldir, reflog=self._write_reflog)
        super().__init__(
            object_store,
            refs,
            refname,
            max_retries=max_retries,
            author=author,
        )
        logger.debug("opened %r on %s", self, self.refname.decode("utf-8", "replace"))

    def __repr__(self) -> str:
        return f"<Repository for {self.path!r}>"

    def controldir(self) -> str:
        """Return the path of the control directory."""
        return self._controldir

    def _load_config(self) -> ConfigFile:
        path = os.path.join(self._controldir, "config")
        try:
            return ConfigFile.from_path(path)
        except FileNotFoundError:
            ret = ConfigFile()
            ret.path = path
            return ret
        except ValueError as exc:
            raise NotRepository(f"malformed config {path}: {exc}") from exc
        except OSError as exc:
            raise NotRepository(f"unable to read {path}: {exc}") from exc

    def get_config(self) -> ConfigFile:
        return self._config

    def _write_reflog(
        self,
        ref: bytes,
        old_sha: bytes,
        new_sha: bytes,
        committer: Optional[bytes],
        timestamp: Optional[int],
        timezone: Optional[int],
        message: bytes,
    ) -> None:
        path = os.path.join(self.controldir(), LOGSDIR, os.fsdecode(ref))
        if committer is None:
            committer = get_user_identity(self.get_config_stack(), "COMMITTER")
        check_user_identity(committer)
        if timestamp is None:
            timestamp = int(time.time())
        if timezone is None:
            timezone = local_timezone(timestamp)
        try:
            ensure_dir_exists(os.path.dirname(path))
            with open(path, "ab") as f:
                f.write(
                    format_reflog_line(
                        old_sha, new_sha, committer, timestamp, timezone, message
                    )
                    + b"\n"
                )
        except OSError as exc:
            # The ref itself has already been updated at this point.
            logger.warning("unable to write reflog %s: %s", path, exc)

    @classmethod
    def _init_maybe_bare(
        cls,
        path: str,
        controldir: str,
        bare: bool,
        refname: RefName,
        max_retries: Optional[int],
        author: Optional[RefName],
    ) -> "Repository":
        for d in BASE_DIRECTORIES:
            os.mkdir(os.path.join(controldir, *d))
        DiskObjectStore.init(os.path.join(controldir, OBJECTDIR))
        branch = _branch_ref(refname)
        DiskRefsContainer(controldir).set_symbolic_ref(HEADREF, branch)
        with GitFile(os.path.join(controldir, "description"), "wb") as f:
            f.write(b"Unnamed repository\n")
        cf = ConfigFile()
        cf.set("core", "repositoryformatversion", "0")
        cf.set("core", "filemode", True)
        cf.set("core", "bare", bare)
        cf.set("core", "logallrefupdates", True)
        cf.write_to_path(os.path.join(controldir, "config"))
        logger.debug("initialized repository at %s", controldir)
        return cls(path, refname=branch, max_retries=max_retries, author=author)

    @classmethod
    def init(
        cls,
        path: Union[str, bytes, os.PathLike],
        refname: RefName = DEFAULT_REFNAME,
        *,
        mkdir: bool = False,
        max_retries: Optional[int] = None,
        author: Optional[RefName] = None,
    ) -> "Repository":
        """Create a new repository.

        Args:
          path: Path in which to create the repository
          refname: Branch HEAD points at, and that the repository works on
          mkdir: Whether to create the directory
        Returns: `Repository` instance
        """
        path = os.fspath(path)
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        if mkdir:
            os.mkdir(path)
        controldir = os.path.join(path, CONTROLDIR)
        os.mkdir(controldir)
        return cls._init_maybe_bare(
            path, controldir, False, refname, max_retries, author
        )

    @classmethod
    def init_bare(
        cls,
        path: Union[str, bytes, os.PathLike],
        refname: RefName = DEFAULT_REFNAME,
        *,
        mkdir: bool = False,
        max_retries: Optional[int] = None,
        author: Optional[RefName] = None,
    ) -> "Repository":
        """Create a new bare repository.

        ``path`` should already exist and be an empty directory.

        Args:
          path: Path to create bare repository in
          refname: Branch HEAD points at, and that the repository works on
          mkdir: Whether to create the directory
        Returns: a `Repository` instance
        """
        path = os.fspath(path)
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        if mkdir:
            os.mkdir(path)
        return cls._init_maybe_bare(path, path, True, refname, max_retries, author)


class MemoryRepository(BaseRepository):
    """Repository that keeps its objects, refs and config in memory.

    Only the repository's own config is consulted; the global git config is
    ignored.
    """

    def __init__(
        self,
        refname: RefName = DEFAULT_REFNAME,
        *,
        max_retries: Optional[int] = None,
        author: Optional[RefName] = None,
    ) -> None:
        self._config = ConfigFile()
        refs = DictRefsContainer({})
        refs.set_symbolic_ref(HEADREF, _branch_ref(refname))
        super().__init__(
            MemoryObjectStore(),
            refs,
            refname,
            max_retries=max_retries,
            author=author,
        )

    def get_config(self) -> ConfigFile:
        return self._config

    def get_config_stack(self) -> StackedConfig:
        return StackedConfig([self._config])
