# __init__.py -- The tests for libellus
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

"""Tests for libellus."""

__all__ = [
    "SkipTest",
    "TestCase",
    "expectedFailure",
    "skipIf",
    "test_suite",
]

import os
import shutil
import tempfile
import unittest
from typing import Optional
from unittest import SkipTest, expectedFailure, skipIf
from unittest import TestCase as _TestCase


class TestCase(_TestCase):
    """Test case that keeps the user's git configuration out of the way.

    ``HOME`` and ``XDG_CONFIG_HOME`` point at an empty temporary directory,
    and the identity environment variables git honours are cleared.
    """

    _ISOLATED_VARIABLES = (
        "GIT_CONFIG_GLOBAL",
        "GIT_AUTHOR_NAME",
        "GIT_AUTHOR_EMAIL",
        "GIT_COMMITTER_NAME",
        "GIT_COMMITTER_EMAIL",
        "LIBELLUS_TRACE",
    )

    def setUp(self) -> None:
        super().setUp()
        self.overrideEnv("HOME", self.mkdtemp())
        self.overrideEnv("XDG_CONFIG_HOME", os.path.join(os.environ["HOME"], ".config"))
        for name in self._ISOLATED_VARIABLES:
            self.overrideEnv(name, None)

    def mkdtemp(self) -> str:
        """Create a temporary directory that is removed after the test."""
        path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, path)
        return path

    def overrideEnv(self, name: str, value: Optional[str]) -> None:
        """Set or unset an environment variable for the duration of the test."""

        def restore() -> None:
            if oldval is not None:
                os.environ[name] = oldval
            else:
                os.environ.pop(name, None)

        oldval = os.environ.get(name)
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)
        self.addCleanup(restore)


def self_test_suite() -> unittest.TestSuite:
    names = [
        "cli",
        "commit",
        "config",
        "file",
        "log_utils",
        "object_store",
        "objects",
        "pack",
        "paths",
        "refs",
        "repository",
    ]
    module_names = ["tests.test_" + name for name in names]
    loader = unittest.TestLoader()
    return loader.loadTestsFromNames(module_names)


def compat_test_suite() -> unittest.TestSuite:
    from .compat import test_suite as _compat_test_suite

    return _compat_test_suite()


def test_suite() -> unittest.TestSuite:
    result = unittest.TestSuite()
    result.addTests(self_test_suite())
    result.addTests(compat_test_suite())
    return result
