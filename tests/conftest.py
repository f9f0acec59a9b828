# Copyright (c) 2026 kiloview contributors
# SPDX-License-Identifier: ISC
#
# Shared fixtures and helpers for the kiloview pytest suite.

import fcntl
import os
import struct
import sys
import termios

import pytest

# Ensure kiloterm and kilo are importable from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from kiloterm import Geometry  # noqa: E402

# Short enough to keep timeout-driven tests fast, long enough that bytes
# already written to a pipe are always seen
TEST_TIMEOUT = 0.05


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _close(*fds):
    for fd in fds:
        try:
            os.close(fd)
        except OSError:
            pass


@pytest.fixture
def pipe():
    """A (read_fd, write_fd) pipe, for feeding bytes to code under test."""
    r, w = os.pipe()
    yield r, w
    _close(r, w)


@pytest.fixture
def out_pipe():
    """A (read_fd, write_fd) pipe, for capturing what code under test writes."""
    r, w = os.pipe()
    yield r, w
    _close(r, w)


@pytest.fixture
def pty_pair():
    """A pseudo-terminal as (master_fd, slave_fd). The slave end is a real
    terminal device with termios attributes."""
    master, slave = os.openpty()
    yield master, slave
    _close(master, slave)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def set_winsize(fd, rows, cols):
    """Set the size the OS reports for the terminal on 'fd'."""
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


class RecordingSession:
    """Stands in for kiloterm.TerminalSession, keeping every write."""

    def __init__(self):
        self.writes = []

    def write(self, data):
        self.writes.append(data)

    def clear_screen(self):
        self.write(b"\x1b[2J\x1b[H")


def geometry(rows, cols):
    return Geometry(rows, cols)
