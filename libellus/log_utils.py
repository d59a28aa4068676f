# log_utils.py -- Logging configuration for libellus
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

"""Logging utilities for libellus.

Libellus is mostly used as a library, and library users may not want to see
any logging output. A null handler is attached to the ``libellus`` logger at
import time so that nothing is emitted unless the application configures
logging itself, or calls :func:`default_logging_config`.

Setting ``LIBELLUS_TRACE`` to ``1``/``true`` sends debug output to stderr;
setting it to an absolute path appends it to that file instead.
"""

import logging
import os
import sys
from typing import Optional, Union

__all__ = [
    "default_logging_config",
    "getLogger",
    "remove_null_handler",
]

getLogger = logging.getLogger

TRACE_ENV = "LIBELLUS_TRACE"


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_LIBELLUS_LOGGER = getLogger("libellus")
_LIBELLUS_LOGGER.addHandler(_NULL_HANDLER)


def _get_trace_target() -> Optional[Union[str, int]]:
    """Get the trace target from the LIBELLUS_TRACE environment variable.

    Returns:
        - None if tracing is disabled
        - 2 for stderr output (values "1", "2", "true")
        - str for an absolute file path
    """
    trace_value = os.environ.get(TRACE_ENV, "")
    if not trace_value or trace_value.lower() in ("0", "false"):
        return None
    if trace_value.lower() in ("1", "2", "true"):
        return 2
    if os.path.isabs(trace_value):
        return trace_value
    return None


def _configure_logging_from_trace() -> bool:
    """Configure logging based on LIBELLUS_TRACE.

    Returns True if trace configuration was successful, False otherwise.
    """
    trace_target = _get_trace_target()
    if trace_target is None:
        return False

    trace_format = "%(asctime)s %(name)s %(levelname)s: %(message)s"

    if trace_target == 2:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format=trace_format)
        return True

    try:
        logging.basicConfig(
            level=logging.DEBUG,
            filename=trace_target,
            filemode="a",
            format=trace_format,
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Failed to open trace file {trace_target}: {e}\n")
        return False
    return True


def default_logging_config() -> None:
    """Set up the default libellus loggers."""
    remove_null_handler()
    if not _configure_logging_from_trace():
        logging.basicConfig(
            level=logging.INFO,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s: %(message)s",
        )


def remove_null_handler() -> None:
    """Remove the null handler from the libellus loggers.

    If a caller wants to set up logging using something other than
    default_logging_config, calling this function first is a minor optimization
    to avoid the overhead of using the _NullHandler.
    """
    _LIBELLUS_LOGGER.removeHandler(_NULL_HANDLER)
