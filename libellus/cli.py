# cli.py -- Command-line interface for libellus
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

"""Simple command-line interface to libellus.

The commands are deliberately thin wrappers around :mod:`libellus.repo`, so
that they can be used to poke at a repository from a shell.
"""

__all__ = [
    "Command",
    "cmd_cat",
    "cmd_commit",
    "cmd_init",
    "cmd_log",
    "cmd_ls",
    "commands",
    "main",
]

import argparse
import logging
import os
import signal
import sys
import types
from collections.abc import Sequence
from typing import Optional, Union

from .errors import (
    ChecksumMismatch,
    Conflict,
    FileFormatException,
    InvalidPath,
    NotRepository,
    RefFormatError,
    StoreIOError,
    WrongObjectException,
)
from .file import FileLocked
from .log_utils import default_logging_config
from .refs import SymrefLoop
from .repo import DEFAULT_REFNAME, Repository

logger = logging.getLogger(__name__)

LIBRARY_ERRORS = (
    ChecksumMismatch,
    Conflict,
    FileFormatException,
    FileLocked,
    InvalidPath,
    NotRepository,
    RefFormatError,
    StoreIOError,
    SymrefLoop,
    WrongObjectException,
)


class CommandError(Exception):
    """A command could not do what it was asked to."""


def to_display_str(value: Union[bytes, str]) -> str:
    """Convert a bytes or string value to a display string."""
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


def signal_int(signal: int, frame: Optional[types.FrameType]) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _add_repo_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-r", "--repo", default=".", help="Repository path (default: current directory)"
    )
    parser.add_argument(
        "--ref",
        default=DEFAULT_REFNAME.decode("ascii"),
        help="Branch to work on (default: %(default)s)",
    )


def _open_repo(parsed_args: argparse.Namespace) -> Repository:
    return Repository(parsed_args.repo, refname=parsed_args.ref)


class Command:
    """A libellus subcommand."""

    def run(self, args: Sequence[str]) -> Optional[int]:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_init(Command):
    """Create an empty Git repository."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="libellus init")
        parser.add_argument(
            "--bare", action="store_true", help="Create a bare repository"
        )
        parser.add_argument(
            "--ref",
            default=DEFAULT_REFNAME.decode("ascii"),
            help="Branch HEAD points at (default: %(default)s)",
        )
        parser.add_argument(
            "path", nargs="?", default=os.getcwd(), help="Repository path"
        )
        parsed_args = parser.parse_args(args)

        mkdir = not os.path.exists(parsed_args.path)
        if parsed_args.bare:
            repo = Repository.init_bare(
                parsed_args.path, refname=parsed_args.ref, mkdir=mkdir
            )
        else:
            repo = Repository.init(
                parsed_args.path, refname=parsed_args.ref, mkdir=mkdir
            )
        with repo:
            logger.info("Initialized empty repository in %s", repo.controldir())


class cmd_ls(Command):
    """List the contents of a directory on a branch."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="libellus ls")
        _add_repo_arguments(parser)
        parser.add_argument("path", nargs="?", default="", help="Directory to list")
        parsed_args = parser.parse_args(args)

        with _open_repo(parsed_args) as repo:
            entries = repo.list(parsed_args.path)
        if entries is None:
            raise CommandError(f"{parsed_args.path or '/'}: no such directory")
        for entry in entries:
            kind = "blob" if entry.is_blob else "tree"
            sys.stdout.write(
                f"{kind} {entry.oid.decode('ascii')}\t{to_display_str(entry.name)}\n"
            )


class cmd_cat(Command):
    """Write the contents of a file on a branch to stdout."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="libellus cat")
        _add_repo_arguments(parser)
        parser.add_argument("path", help="File to show")
        parsed_args = parser.parse_args(args)

        with _open_repo(parsed_args) as repo:
            contents = repo.read(parsed_args.path)
        if contents is None:
            raise CommandError(f"{parsed_args.path}: no such file")
        sys.stdout.flush()
        sys.stdout.buffer.write(contents)
        sys.stdout.buffer.flush()


class cmd_commit(Command):
    """Record new contents for a single file."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="libellus commit")
        _add_repo_arguments(parser)
        parser.add_argument(
            "-m", "--message", required=True, help="The commit message"
        )
        parser.add_argument("path", help="Path of the file in the repository")
        parser.add_argument(
            "file", nargs="?", help="File to read the contents from (default: stdin)"
        )
        parsed_args = parser.parse_args(args)

        if parsed_args.file is None:
            contents = sys.stdin.buffer.read()
        else:
            with open(parsed_args.file, "rb") as f:
                contents = f.read()

        with _open_repo(parsed_args) as repo:
            sha = repo.commit(parsed_args.message, parsed_args.path, contents)
        sys.stdout.write(sha.decode("ascii") + "\n")


class cmd_log(Command):
    """Show commit logs."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="libellus log")
        _add_repo_arguments(parser)
        parser.add_argument(
            "-n",
            "--max-count",
            type=int,
            default=None,
            help="Limit the number of commits to output",
        )
        parsed_args = parser.parse_args(args)

        with _open_repo(parsed_args) as repo:
            for commit in repo.history(parsed_args.max_count):
                lines = commit.message.splitlines()
                subject = to_display_str(lines[0]) if lines else ""
                sys.stdout.write(f"{commit.id.decode('ascii')} {subject}\n")


commands = {
    "cat": cmd_cat,
    "commit": cmd_commit,
    "init": cmd_init,
    "log": cmd_log,
    "ls": cmd_ls,
}


def main(argv: Optional[Sequence[str]] = None) -> Optional[int]:
    """Main entry point for the libellus CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="libellus", description="Simple command-line interface to libellus"
    )
    parser.add_argument(
        "command",
        help=f"Command to run. Available: {', '.join(sorted(commands.keys()))}",
    )
    if not argv or argv[0] in ("-h", "--help"):
        parser.print_help()
        return 1

    default_logging_config()

    cmd = argv[0]
    cmd_args = argv[1:]

    try:
        cmd_kls = commands[cmd]
    except KeyError:
        sys.stderr.write(f"libellus: no such subcommand: {cmd}\n")
        return 1
    try:
        return cmd_kls().run(cmd_args)
    except CommandError as exc:
        sys.stderr.write(f"libellus {cmd}: {exc}\n")
        return 1
    except LIBRARY_ERRORS as exc:
        logger.debug("%s failed", cmd, exc_info=True)
        sys.stderr.write(f"libellus {cmd}: {exc}\n")
        return 1
    except OSError as exc:
        sys.stderr.write(f"libellus {cmd}: {exc}\n")
        return 1


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
