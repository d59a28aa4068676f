# test_cli.py -- tests for libellus.cli
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

"""Tests for libellus.cli."""

import io
import os
import sys
from typing import Optional
from unittest import mock

from libellus import Repository, cli

from . import TestCase


class MockStream:
    """Text stream with a binary ``buffer``, like sys.stdout."""

    def __init__(self, data: bytes = b"") -> None:
        self.buffer = io.BytesIO(data)

    def write(self, data: str) -> int:
        return self.buffer.write(data.encode("utf-8"))

    def flush(self) -> None:
        pass

    def getvalue(self) -> str:
        return self.buffer.getvalue().decode("utf-8", "replace")


class LibellusCliTestCase(TestCase):
    """Base class for CLI tests."""

    def setUp(self) -> None:
        super().setUp()
        self.test_dir = self.mkdtemp()
        self.repo_path = os.path.join(self.test_dir, "repo")
        os.mkdir(self.repo_path)
        self.repo = Repository.init(self.repo_path)
        self.addCleanup(self.repo.close)
        # Leave the process-wide logging setup alone.
        patcher = mock.patch.object(cli, "default_logging_config")
        patcher.start()
        self.addCleanup(patcher.stop)

    def _run_cli(self, *args: str, stdin: Optional[bytes] = None):
        """Run a CLI command and capture its exit code and output."""
        old_stdin, old_stdout, old_stderr = sys.stdin, sys.stdout, sys.stderr
        old_cwd = os.getcwd()
        try:
            sys.stdin = MockStream(stdin or b"")
            sys.stdout = MockStream()
            sys.stderr = MockStream()
            os.chdir(self.repo_path)
            result = cli.main(list(args))
            return result, sys.stdout.getvalue(), sys.stderr.getvalue()
        finally:
            sys.stdin, sys.stdout, sys.stderr = old_stdin, old_stdout, old_stderr
            os.chdir(old_cwd)

    def _write(self, name: str, contents: bytes) -> str:
        path = os.path.join(self.test_dir, name)
        with open(path, "wb") as f:
            f.write(contents)
        return path


class MainTests(LibellusCliTestCase):
    def test_no_arguments(self) -> None:
        result, stdout, _stderr = self._run_cli()
        self.assertEqual(1, result)
        self.assertIn("usage: libellus", stdout)

    def test_help(self) -> None:
        result, stdout, _stderr = self._run_cli("--help")
        self.assertEqual(1, result)
        self.assertIn("Available:", stdout)

    def test_unknown_command(self) -> None:
        result, _stdout, stderr = self._run_cli("frobnicate")
        self.assertEqual(1, result)
        self.assertEqual("libellus: no such subcommand: frobnicate\n", stderr)

    def test_not_a_repository(self) -> None:
        result, _stdout, stderr = self._run_cli("ls", "-r", self.test_dir)
        self.assertEqual(1, result)
        self.assertTrue(stderr.startswith("libellus ls: No git repository"), stderr)

    def test_malformed_ref(self) -> None:
        result, _stdout, stderr = self._run_cli("ls", "--ref", "bad..ref")
        self.assertEqual(1, result)
        self.assertTrue(stderr.startswith("libellus ls: "), stderr)


class InitCommandTest(LibellusCliTestCase):
    def test_init_basic(self) -> None:
        new_repo_path = os.path.join(self.test_dir, "new_repo")
        with self.assertLogs("libellus.cli", level="INFO") as cm:
            result, _stdout, _stderr = self._run_cli("init", new_repo_path)
        self.assertIsNone(result)
        self.assertTrue(os.path.isdir(os.path.join(new_repo_path, ".git")))
        self.assertIn("Initialized empty repository", cm.output[0])

    def test_init_bare(self) -> None:
        bare_repo_path = os.path.join(self.test_dir, "bare_repo")
        self._run_cli("init", "--bare", bare_repo_path)
        self.assertTrue(os.path.exists(os.path.join(bare_repo_path, "HEAD")))
        self.assertFalse(os.path.exists(os.path.join(bare_repo_path, ".git")))

    def test_init_existing_directory(self) -> None:
        path = os.path.join(self.test_dir, "existing")
        os.mkdir(path)
        self._run_cli("init", path)
        self.assertTrue(os.path.isdir(os.path.join(path, ".git", "refs")))

    def test_init_ref(self) -> None:
        path = os.path.join(self.test_dir, "main_repo")
        self._run_cli("init", "--bare", "--ref", "main", path)
        with open(os.path.join(path, "HEAD"), "rb") as f:
            self.assertEqual(b"ref: refs/heads/main\n", f.read())

    def test_init_twice(self) -> None:
        result, _stdout, stderr = self._run_cli("init", self.repo_path)
        self.assertEqual(1, result)
        self.assertTrue(stderr.startswith("libellus init: "), stderr)


class CommitCommandTest(LibellusCliTestCase):
    def test_commit_from_file(self) -> None:
        path = self._write("input", b"from a file\n")
        result, stdout, _stderr = self._run_cli("commit", "-m", "add a", "a.txt", path)
        self.assertIsNone(result)
        self.assertEqual(self.repo.head().decode("ascii") + "\n", stdout)
        self.assertEqual(b"from a file\n", self.repo.read("a.txt"))

    def test_commit_from_stdin(self) -> None:
        result, _stdout, _stderr = self._run_cli(
            "commit", "--message", "add b", "dir/b.txt", stdin=b"\x00binary\xff"
        )
        self.assertIsNone(result)
        self.assertEqual(b"\x00binary\xff", self.repo.read("dir/b.txt"))
        commit = self.repo.object_store.get_commit(self.repo.head())
        self.assertEqual(b"add b", commit.message)

    def test_commit_other_branch(self) -> None:
        self._run_cli("commit", "--ref", "feature", "-m", "msg", "a", stdin=b"x")
        self.assertIsNone(self.repo.head())
        with Repository(self.repo_path, "feature") as repo:
            self.assertEqual(b"x", repo.read("a"))

    def test_commit_requires_message(self) -> None:
        self.assertRaises(SystemExit, self._run_cli, "commit", "a.txt")

    def test_commit_invalid_path(self) -> None:
        result, _stdout, stderr = self._run_cli("commit", "-m", "m", "../a", stdin=b"x")
        self.assertEqual(1, result)
        self.assertTrue(stderr.startswith("libellus commit: "), stderr)
        self.assertIsNone(self.repo.head())

    def test_commit_missing_input_file(self) -> None:
        missing = os.path.join(self.test_dir, "missing")
        result, _stdout, stderr = self._run_cli("commit", "-m", "m", "a", missing)
        self.assertEqual(1, result)
        self.assertIn("No such file", stderr)


class ReadCommandTest(LibellusCliTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.first = self.repo.commit(b"first\n\nbody", "README", b"read me\n")
        self.second = self.repo.commit(b"second", "docs/guide.txt", b"guide\n")

    def test_cat(self) -> None:
        result, stdout, _stderr = self._run_cli("cat", "README")
        self.assertIsNone(result)
        self.assertEqual("read me\n", stdout)

    def test_cat_missing(self) -> None:
        result, stdout, stderr = self._run_cli("cat", "missing")
        self.assertEqual(1, result)
        self.assertEqual("", stdout)
        self.assertEqual("libellus cat: missing: no such file\n", stderr)

    def test_cat_directory(self) -> None:
        result, _stdout, stderr = self._run_cli("cat", "docs")
        self.assertEqual(1, result)
        self.assertEqual("libellus cat: docs: no such file\n", stderr)

    def test_ls_root(self) -> None:
        result, stdout, _stderr = self._run_cli("ls")
        self.assertIsNone(result)
        [readme, docs] = self.repo.list("")
        self.assertEqual(
            f"blob {readme.oid.decode('ascii')}\tREADME\n"
            f"tree {docs.oid.decode('ascii')}\tdocs\n",
            stdout,
        )

    def test_ls_subdirectory(self) -> None:
        _result, stdout, _stderr = self._run_cli("ls", "docs")
        self.assertTrue(stdout.startswith("blob "), stdout)
        self.assertTrue(stdout.endswith("\tguide.txt\n"), stdout)

    def test_ls_missing(self) -> None:
        result, _stdout, stderr = self._run_cli("ls", "missing")
        self.assertEqual(1, result)
        self.assertEqual("libellus ls: missing: no such directory\n", stderr)

    def test_ls_unborn_branch(self) -> None:
        result, _stdout, stderr = self._run_cli("ls", "--ref", "feature")
        self.assertEqual(1, result)
        self.assertEqual("libellus ls: /: no such directory\n", stderr)

    def test_log(self) -> None:
        result, stdout, _stderr = self._run_cli("log")
        self.assertIsNone(result)
        self.assertEqual(
            f"{self.second.decode('ascii')} second\n{self.first.decode('ascii')} first\n",
            stdout,
        )

    def test_log_max_count(self) -> None:
        _result, stdout, _stderr = self._run_cli("log", "-n", "1")
        self.assertEqual(f"{self.second.decode('ascii')} second\n", stdout)

    def test_log_with_repo_option(self) -> None:
        other = os.path.join(self.test_dir, "other")
        Repository.init(other, mkdir=True).close()
        _result, stdout, _stderr = self._run_cli("log", "-r", other)
        self.assertEqual("", stdout)
