# utils.py -- Git compatibility utilities
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

"""Utilities for interacting with cgit."""

import os
import subprocess
from typing import Optional

from .. import SkipTest, TestCase

_DEFAULT_GIT = "git"
_VERSION_LEN = 4

# Identity and configuration every git invocation runs with.
GIT_ENVIRONMENT = {
    "GIT_AUTHOR_NAME": "Compat Tester",
    "GIT_AUTHOR_EMAIL": "compat@example.com",
    "GIT_AUTHOR_DATE": "1700000000 +0000",
    "GIT_COMMITTER_NAME": "Compat Tester",
    "GIT_COMMITTER_EMAIL": "compat@example.com",
    "GIT_COMMITTER_DATE": "1700000000 +0000",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git_version(git_path: str = _DEFAULT_GIT) -> Optional[tuple[int, ...]]:
    """Attempt to determine the version of git currently installed.

    Args:
      git_path: Path to the git executable; defaults to the version in
        the system path.
    Returns: A tuple of ints of the form (major, minor, point, sub-point), or
        None if no git installation was found.
    """
    try:
        output = run_git_or_fail(["--version"], git_path=git_path)
    except (OSError, AssertionError):
        return None
    version_prefix = b"git version "
    if not output.startswith(version_prefix):
        return None

    parts = output[len(version_prefix) :].split(b".")
    nums = []
    for part in parts:
        try:
            nums.append(int(part))
        except ValueError:
            break

    while len(nums) < _VERSION_LEN:
        nums.append(0)
    return tuple(nums[:_VERSION_LEN])


def require_git_version(
    required_version: tuple[int, ...], git_path: str = _DEFAULT_GIT
) -> None:
    """Require git version >= version, or skip the calling test.

    Raises:
      SkipTest: if no git is installed, or it is older than required
    """
    found_version = git_version(git_path=git_path)
    if found_version is None:
        raise SkipTest(f"Test requires git >= {required_version}, but c git not found")

    if len(required_version) > _VERSION_LEN:
        raise ValueError(
            "Invalid version tuple %s, expected %i parts"
            % (required_version, _VERSION_LEN)
        )

    required_version = tuple(required_version) + (0,) * (
        _VERSION_LEN - len(required_version)
    )
    if found_version < required_version:
        required_version_str = ".".join(map(str, required_version))
        found_version_str = ".".join(map(str, found_version))
        raise SkipTest(
            f"Test requires git >= {required_version_str}, "
            f"found {found_version_str}"
        )


def run_git(
    args: list[str],
    git_path: str = _DEFAULT_GIT,
    input: Optional[bytes] = None,
    capture_stdout: bool = False,
    capture_stderr: bool = False,
    **popen_kwargs,
) -> tuple[int, Optional[bytes], Optional[bytes]]:
    """Run a git command.

    Input is piped from the input parameter and output is sent to the standard
    streams, unless capture_stdout is set.

    Args:
      args: A list of args to the git command.
      git_path: Path to to the git executable.
      input: Input data to be sent to stdin.
      capture_stdout: Whether to capture and return stdout.
      capture_stderr: Whether to capture and return stderr.
      popen_kwargs: Additional kwargs for subprocess.Popen;
        stdin/stdout args are ignored.
    Returns: A tuple of (returncode, stdout contents, stderr contents).
        If capture_stdout is False, None will be returned as stdout contents.
        If capture_stderr is False, None will be returned as stderr contents.
    Raises:
      OSError: if the git executable was not found.
    """
    env = popen_kwargs.pop("env", {})
    env["LC_ALL"] = env["LANG"] = "C"
    env["PATH"] = os.getenv("PATH", "")
    for name in ("HOME", "XDG_CONFIG_HOME"):
        if name in os.environ:
            env[name] = os.environ[name]
    env.update(GIT_ENVIRONMENT)

    args = [git_path, *args]
    popen_kwargs["stdin"] = subprocess.PIPE
    if capture_stdout:
        popen_kwargs["stdout"] = subprocess.PIPE
    else:
        popen_kwargs.pop("stdout", None)
    if capture_stderr:
        popen_kwargs["stderr"] = subprocess.PIPE
    else:
        popen_kwargs.pop("stderr", None)
    p = subprocess.Popen(args, env=env, **popen_kwargs)
    stdout, stderr = p.communicate(input=input)
    return (p.returncode, stdout, stderr)


def run_git_or_fail(
    args: list[str],
    git_path: str = _DEFAULT_GIT,
    input: Optional[bytes] = None,
    **popen_kwargs,
) -> bytes:
    """Run a git command, capture stdout/stderr, and fail if git fails."""
    if "stderr" not in popen_kwargs:
        popen_kwargs["stderr"] = subprocess.STDOUT
    returncode, stdout, stderr = run_git(
        args, git_path=git_path, input=input, capture_stdout=True, **popen_kwargs
    )
    if returncode != 0:
        raise AssertionError(
            "git with args %r failed with %d: stdout=%r stderr=%r"
            % (args, returncode, stdout, stderr)
        )
    assert stdout is not None
    return stdout


class CompatTestCase(TestCase):
    """Test case that requires git for compatibility checks.

    Subclasses can change the git version required by overriding
    min_git_version.
    """

    min_git_version: tuple[int, ...] = (1, 7, 0)

    def setUp(self) -> None:
        super().setUp()
        require_git_version(self.min_git_version)

    def git(self, repo_path: str, *args: str) -> bytes:
        """Run git in ``repo_path`` and return its output."""
        return run_git_or_fail(list(args), cwd=repo_path)
