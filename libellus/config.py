# config.py -- Reading and writing git configuration files
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

"""Reading and writing Git configuration files.

Only what is needed to find the user identity and a few repository
settings is supported. Values are looked up by exact section, subsection
and name; multi-valued variables keep their last value and include
directives are ignored.
"""

__all__ = [
    "DEFAULT_IDENTITY",
    "Config",
    "ConfigFile",
    "InvalidUserIdentity",
    "StackedConfig",
    "check_user_identity",
    "get_user_identity",
    "xdg_config_path",
]

import logging
import os
import re
from typing import IO, Optional, Union

from .file import GitFile

logger = logging.getLogger(__name__)

Section = tuple[bytes, ...]
SectionLike = Union[bytes, str, tuple[Union[bytes, str], ...]]
NameLike = Union[bytes, str]

DEFAULT_IDENTITY = b"libellus <libellus@localhost>"

_INT_SUFFIXES = {b"k": 1024, b"m": 1024**2, b"g": 1024**3}

_ESCAPES = {b"n": b"\n", b"t": b"\t", b"b": b"\b", b"\\": b"\\", b'"': b'"'}

_SECTION_NAME = re.compile(rb"[A-Za-z0-9.-]+")

_BLANK = (b" ", b"\t", b"\r")


def _to_bytes(value: Union[bytes, str]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def _section_key(section: SectionLike) -> Section:
    # Section names are case-insensitive, subsection names are not.
    if not isinstance(section, tuple):
        section = (section,)
    name, *rest = (_to_bytes(part) for part in section)
    return (name.lower(), *rest)


class InvalidUserIdentity(ValueError):
    """User identity is not of the format 'user <email>'."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"invalid user identity: {identity!r}")


class Config:
    """A Git configuration."""

    def get(self, section: SectionLike, name: NameLike) -> bytes:
        """Retrieve the value of a configuration variable.

        Args:
          section: section name, or a (section, subsection) tuple
          name: variable name
        Raises:
          KeyError: if the value is not set
        """
        raise NotImplementedError(self.get)

    def get_int(
        self, section: SectionLike, name: NameLike, default: Optional[int] = None
    ) -> Optional[int]:
        """Retrieve a configuration variable as an integer.

        The ``k``, ``m`` and ``g`` suffixes scale by powers of 1024, as in
        git-config(1).

        Raises:
          ValueError: if the value is set but not an integer
        """
        try:
            value = self.get(section, name).strip()
        except KeyError:
            return default
        factor = _INT_SUFFIXES.get(value[-1:].lower(), 1)
        digits = value[:-1] if factor != 1 else value
        try:
            return int(digits) * factor
        except ValueError as exc:
            raise ValueError(f"not a valid integer: {value!r}") from exc


class _Parser:
    """Cursor over the contents of a config file."""

    def __init__(self, data: bytes) -> None:
        if data.startswith(b"\xef\xbb\xbf"):
            data = data[3:]
        self._data = data
        self._pos = 0
        self._lineno = 1

    def _error(self, message: str) -> ValueError:
        return ValueError(f"line {self._lineno}: {message}")

    def _peek(self) -> bytes:
        return self._data[self._pos : self._pos + 1]

    def _next(self) -> bytes:
        c = self._peek()
        if c:
            self._pos += 1
            if c == b"\n":
                self._lineno += 1
        return c

    def _skip_blanks(self) -> None:
        while self._peek() in _BLANK:
            self._pos += 1

    def _skip_line(self) -> None:
        while self._next() not in (b"", b"\n"):
            pass

    def parse(self) -> dict[Section, dict[bytes, bytes]]:
        sections: dict[Section, dict[bytes, bytes]] = {}
        current: Optional[dict[bytes, bytes]] = None
        while True:
            self._skip_blanks()
            c = self._peek()
            if not c:
                return sections
            if c == b"\n":
                self._next()
            elif c in (b"#", b";"):
                self._skip_line()
            elif c == b"[":
                # A variable may follow on the same line.
                current = sections.setdefault(self._section_header(), {})
            elif current is None:
                raise self._error("variable outside of a section")
            else:
                name, value = self._variable()
                current[name] = value

    def _section_header(self) -> Section:
        self._next()
        start = self._pos
        while self._peek() not in (b"", b"]", b'"', b"\n") + _BLANK:
            self._pos += 1
        name = self._data[start : self._pos]
        if not _SECTION_NAME.fullmatch(name):
            raise self._error(f"invalid section name {name!r}")
        self._skip_blanks()
        if self._peek() == b'"':
            self._next()
            subsection = bytearray()
            while True:
                c = self._next()
                if c == b'"':
                    break
                if c == b"\\":
                    c = self._next()
                if c in (b"", b"\n"):
                    raise self._error("unterminated subsection name")
                subsection += c
            section: Section = (name.lower(), bytes(subsection))
        else:
            # Deprecated [section.subsection] syntax, case-insensitive.
            head, dot, tail = name.lower().partition(b".")
            section = (head, tail) if dot else (head,)
        if self._peek() != b"]":
            raise self._error("expected ']' to end the section header")
        self._next()
        return section

    def _variable(self) -> tuple[bytes, bytes]:
        start = self._pos
        while self._peek().isalnum() or self._peek() == b"-":
            self._pos += 1
        name = self._data[start : self._pos]
        if not name[:1].isalpha():
            raise self._error(f"invalid variable name {name!r}")
        self._skip_blanks()
        c = self._peek()
        if c in (b"", b"\n", b"#", b";"):
            return name.lower(), b"true"
        if c != b"=":
            raise self._error(f"expected '=' after {name!r}")
        self._next()
        self._skip_blanks()
        return name.lower(), self._value()

    def _value(self) -> bytes:
        value = bytearray()
        spaces = 0
        quoted = False
        while True:
            c = self._peek()
            if c in (b"", b"\n") or (not quoted and c in (b"#", b";")):
                if quoted:
                    raise self._error("missing closing quote")
                # Unquoted trailing whitespace is dropped.
                return bytes(value)
            self._next()
            if not quoted and c in _BLANK:
                if value:
                    spaces += 1
                continue
            value += b" " * spaces
            spaces = 0
            if c == b'"':
                quoted = not quoted
            elif c == b"\\":
                escaped = self._next()
                if escaped == b"\r" and self._peek() == b"\n":
                    escaped = self._next()
                if escaped == b"\n":
                    continue
                if escaped not in _ESCAPES:
                    raise self._error(f"invalid escape sequence \\{escaped!r}")
                value += _ESCAPES[escaped]
            else:
                value += c


def _format_value(value: bytes) -> bytes:
    escaped = (
        value.replace(b"\\", b"\\\\")
        .replace(b'"', b'\\"')
        .replace(b"\n", b"\\n")
        .replace(b"\t", b"\\t")
        .replace(b"\b", b"\\b")
    )
    if value != value.strip() or b"#" in value or b";" in value:
        return b'"' + escaped + b'"'
    return escaped


class ConfigFile(Config):
    """The variables of a single config file."""

    def __init__(self) -> None:
        self.path: Optional[str] = None
        self._sections: dict[Section, dict[bytes, bytes]] = {}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.path!r}>"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ConfigFile) and self._sections == other._sections

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Read configuration from a file-like object.

        Raises:
          ValueError: if the contents are not valid git config syntax
        """
        ret = cls()
        ret._sections = _Parser(f.read()).parse()
        return ret

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> "ConfigFile":
        """Read configuration from a file on disk."""
        with GitFile(path, "rb") as f:
            ret = cls.from_file(f)
        ret.path = os.fspath(path)
        return ret

    def get(self, section: SectionLike, name: NameLike) -> bytes:
        try:
            return self._sections[_section_key(section)][_to_bytes(name).lower()]
        except KeyError:
            raise KeyError(name) from None

    def set(
        self, section: SectionLike, name: NameLike, value: Union[bytes, str, bool]
    ) -> None:
        """Set a variable; booleans are stored as ``true`` or ``false``."""
        if isinstance(value, bool):
            value = b"true" if value else b"false"
        variables = self._sections.setdefault(_section_key(section), {})
        variables[_to_bytes(name).lower()] = _to_bytes(value)

    def write_to_path(self, path: Union[str, os.PathLike, None] = None) -> None:
        """Write configuration to a file on disk, replacing it atomically."""
        if path is None:
            if self.path is None:
                raise ValueError("No path specified and no default path available")
            path = self.path
        with GitFile(path, "wb") as f:
            self.write_to_file(f)

    def write_to_file(self, f: IO[bytes]) -> None:
        """Write configuration to a file-like object."""
        for section, variables in self._sections.items():
            if len(section) > 1:
                subsection = section[1].replace(b"\\", b"\\\\").replace(b'"', b'\\"')
                f.write(b'[%s "%s"]\n' % (section[0], subsection))
            else:
                f.write(b"[%s]\n" % section[0])
            for name, value in variables.items():
                f.write(b"\t%s = %s\n" % (name, _format_value(value)))


def xdg_config_path(*path_segments: str) -> str:
    """Return a path below ``$XDG_CONFIG_HOME``, by default ``~/.config``."""
    home = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config/")
    return os.path.join(home, *path_segments)


class StackedConfig(Config):
    """Configuration read from several files; earlier files win."""

    def __init__(self, backends: list[ConfigFile]) -> None:
        self.backends = backends

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self.backends!r}>"

    @classmethod
    def default_backends(cls) -> list[ConfigFile]:
        """Load the user's global configuration.

        ``$GIT_CONFIG_GLOBAL`` replaces both ``~/.gitconfig`` and
        ``$XDG_CONFIG_HOME/git/config`` when set. Missing files are skipped,
        and so are malformed ones, with a warning.
        """
        try:
            paths = [os.environ["GIT_CONFIG_GLOBAL"]]
        except KeyError:
            paths = [os.path.expanduser("~/.gitconfig"), xdg_config_path("git", "config")]
        logger.debug("Loading gitconfig from paths: %s", paths)
        backends = []
        for path in paths:
            try:
                backends.append(ConfigFile.from_path(path))
            except FileNotFoundError:
                continue
            except ValueError as exc:
                logger.warning("Ignoring malformed gitconfig %s: %s", path, exc)
        return backends

    def get(self, section: SectionLike, name: NameLike) -> bytes:
        for backend in self.backends:
            try:
                return backend.get(section, name)
            except KeyError:
                pass
        raise KeyError(name)


def get_user_identity(config: Config, kind: Optional[str] = None) -> bytes:
    """Determine the identity to use for new commits.

    ``GIT_<KIND>_NAME`` and ``GIT_<KIND>_EMAIL`` win when ``kind`` is given
    (usually "AUTHOR" or "COMMITTER"). Otherwise ``user.name`` and
    ``user.email`` are read from ``config``, and whatever is still missing
    comes from DEFAULT_IDENTITY.
    """
    defaults = DEFAULT_IDENTITY[:-1].split(b" <", 1)
    parts = []
    for field, default in zip(("name", "email"), defaults):
        from_env = os.environ.get(f"GIT_{kind}_{field.upper()}") if kind else None
        if from_env is not None:
            parts.append(from_env.encode("utf-8"))
            continue
        try:
            parts.append(config.get(("user",), field))
        except KeyError:
            parts.append(default)
    return parts[0] + b" <" + parts[1] + b">"


def check_user_identity(identity: bytes) -> None:
    """Verify that an identity has the form ``Name <email>``.

    Raises:
      InvalidUserIdentity: if it does not, or contains a NUL or newline
    """
    _name, sep, email = identity.partition(b" <")
    if not sep or b">" not in email or b"\0" in identity or b"\n" in identity:
        raise InvalidUserIdentity(identity.decode("utf-8", "replace"))
