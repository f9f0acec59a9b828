#!/usr/bin/env python3

# Copyright (c) 2026 kiloview contributors
# SPDX-License-Identifier: ISC

"""
kiloterm -- raw terminal I/O for the kilo viewer

NOT a curses emulation layer. Covers exactly what a full-screen viewer needs:
taking the terminal into raw mode and giving it back, finding out how big the
screen is, turning input bytes into key events, and assembling output frames
that are written in one go.

Zero external dependencies. Uses only Python stdlib: termios, select, atexit,
collections, os, re, sys.

Platform support:
  - Unix (Linux, macOS, BSD): termios raw mode, poll(2)-based input

Minimum: Python 3.6+, any VT100-capable terminal.
"""

import atexit
import collections
import os
import re
import select
import sys
import termios


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TerminalError(RuntimeError):
    """Base class for all terminal failures. These are fatal to the viewer."""


class AttributeQueryError(TerminalError):
    """The current terminal attributes could not be read."""


class AttributeApplyError(TerminalError):
    """The terminal refused a set of attributes."""


class AttributeParseError(TerminalError):
    """A cursor position report could not be parsed."""


class GeometryUnavailable(TerminalError):
    """Neither the OS nor the terminal would tell us the screen size."""


class TerminalReadError(TerminalError):
    """Reading from the input device failed for a reason other than a timeout."""


class TerminalWriteError(TerminalError):
    """Writing to the output device failed."""


class FrameBufferError(TerminalError):
    """A frame could not grow to hold more output."""


# ---------------------------------------------------------------------------
# Control sequences
# ---------------------------------------------------------------------------

ESCAPE = "\x1b"

CLEAR_SCREEN = b"\x1b[2J"
CURSOR_HOME = b"\x1b[H"
CLEAR_LINE = b"\x1b[K"
HIDE_CURSOR = b"\x1b[?25l"
SHOW_CURSOR = b"\x1b[?25h"
REQUEST_CURSOR_POSITION = b"\x1b[6n"
# Cursor movement stops at the screen edge, so this lands bottom-right
PROBE_BOTTOM_RIGHT = b"\x1b[999C\x1b[999B"


def cursor_to(row, col):
    """Return the sequence that moves the cursor to 1-based (row, col)."""
    return f"\x1b[{row};{col}H".encode("ascii")


def ctrl_key(ch):
    """Return the character sent when 'ch' is typed with Ctrl held down."""
    return chr(ord(ch) & 0x1F)


# Seconds a read waits for input before reporting that nothing came. Matches
# the VTIME of 1 (tenths of a second) set in raw mode.
READ_TIMEOUT = 0.1


# ---------------------------------------------------------------------------
# Input constants
# ---------------------------------------------------------------------------


class Key:
    """Named constants for special keys."""

    UP = "key_up"
    DOWN = "key_down"
    LEFT = "key_left"
    RIGHT = "key_right"
    PAGE_UP = "key_page_up"
    PAGE_DOWN = "key_page_down"
    HOME = "key_home"
    END = "key_end"
    DELETE = "key_delete"


# ESC [ <digit> ~  (vt220-style editing keys; 1/4 from linux/tmux, 7/8 from rxvt)
_TILDE_KEYS = {
    "1": Key.HOME,
    "3": Key.DELETE,
    "4": Key.END,
    "5": Key.PAGE_UP,
    "6": Key.PAGE_DOWN,
    "7": Key.HOME,
    "8": Key.END,
}

# ESC [ <letter>  (xterm)
_CSI_KEYS = {
    "A": Key.UP,
    "B": Key.DOWN,
    "C": Key.RIGHT,
    "D": Key.LEFT,
    "H": Key.HOME,
    "F": Key.END,
}

# ESC O <letter>  (application mode)
_SS3_KEYS = {
    "H": Key.HOME,
    "F": Key.END,
}


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------


def read_byte(fd, timeout=READ_TIMEOUT, poller=None):
    """Read one byte from 'fd', waiting at most 'timeout' seconds.

    Returns the byte as an int, or None if nothing arrived in time. Running
    out of time is the normal "no key pressed" case and not an error.

    Raises TerminalReadError if the read fails, or if the fd reports that it
    is readable but has nothing to give (the other end hung up).

    'poller' is a select.poll() object with 'fd' registered for POLLIN. One
    is made for the call if it isn't given.
    """
    if poller is None:
        poller = fd_poller(fd)
    if not poller.poll(int(timeout * 1000)):
        return None

    try:
        data = os.read(fd, 1)
    except OSError as e:
        raise TerminalReadError(f"read from input failed: {e}") from e

    if not data:
        raise TerminalReadError("input closed")

    return data[0]


def fd_poller(fd):
    """Return a select.poll() object watching 'fd' for input."""
    poller = select.poll()
    poller.register(fd, select.POLLIN)
    return poller


def write_all(fd, data):
    """Write all of 'data' to 'fd'.

    A single os.write() call normally takes everything. The loop only comes
    into play if the kernel reports a short write.
    """
    view = memoryview(data)
    try:
        while view:
            n = os.write(fd, view)
            view = view[n:]
    except OSError as e:
        raise TerminalWriteError(f"write to terminal failed: {e}") from e


# ---------------------------------------------------------------------------
# FrameBuffer -- output assembled for one refresh
# ---------------------------------------------------------------------------


class FrameBuffer:
    """Growable byte container that one screen refresh is assembled in.

    append() either stores all of the data or raises FrameBufferError. Data
    is never dropped.

    max_size:
      Upper bound on the total size in bytes, or None for no bound other than
      available memory.
    """

    __slots__ = ("_buf", "_max_size")

    def __init__(self, max_size=None):
        self._buf = bytearray()
        self._max_size = max_size

    def append(self, data):
        if self._max_size is not None and len(self._buf) + len(data) > self._max_size:
            raise FrameBufferError(
                f"frame would grow to {len(self._buf) + len(data)} bytes "
                f"(limit {self._max_size})"
            )
        try:
            self._buf += data
        except MemoryError as e:
            raise FrameBufferError(
                f"out of memory growing frame past {len(self._buf)} bytes"
            ) from e

    def getvalue(self):
        return bytes(self._buf)

    def __len__(self):
        return len(self._buf)


# ---------------------------------------------------------------------------
# TerminalSession -- raw mode
# ---------------------------------------------------------------------------


def raw_attributes(attrs):
    """Return a raw-mode copy of a termios attribute list.

    'attrs' is what termios.tcgetattr() returns and is not modified.
    """
    iflag, oflag, cflag, lflag, ispeed, ospeed, cc = attrs

    # No break-to-SIGINT, no CR->NL, no parity checking, no 8th-bit
    # stripping, no Ctrl-S/Ctrl-Q flow control
    iflag &= ~(
        termios.BRKINT | termios.ICRNL | termios.INPCK | termios.ISTRIP | termios.IXON
    )
    # "\n" is not turned into "\r\n" on output
    oflag &= ~termios.OPOST
    cflag = (cflag & ~termios.CSIZE) | termios.CS8
    # No echo, no line editing, no Ctrl-V, no Ctrl-C/Ctrl-Z signals
    lflag &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)

    cc = list(cc)
    # read() returns as soon as there's a byte, or after 1/10 s with none
    cc[termios.VMIN] = 0
    cc[termios.VTIME] = 1

    return [iflag, oflag, cflag, lflag, ispeed, ospeed, cc]


class TerminalSession:
    """Exclusive raw-mode control of a terminal.

    fd_in:
      File descriptor that keys are read from and whose attributes are
      changed. Defaults to stdin.

    fd_out:
      File descriptor that frames are written to. Defaults to stdout.

    The original attributes are put back by exit_raw(). If the process exits
    while the session is still active, an atexit handler does it instead.
    Either way it happens once.
    """

    def __init__(self, fd_in=None, fd_out=None):
        self.fd_in = sys.stdin.fileno() if fd_in is None else fd_in
        self.fd_out = sys.stdout.fileno() if fd_out is None else fd_out
        self.active = False
        self._saved_attrs = None
        self._raw_attrs = None

    @property
    def saved_attrs(self):
        return self._saved_attrs

    @property
    def raw_attrs(self):
        return self._raw_attrs

    def enter_raw(self):
        """Save the current terminal attributes and switch to raw mode."""
        if self.active:
            return self

        try:
            saved = termios.tcgetattr(self.fd_in)
        except termios.error as e:
            raise AttributeQueryError(f"tcgetattr: {e.args[-1]}") from e

        raw = raw_attributes(saved)
        try:
            termios.tcsetattr(self.fd_in, termios.TCSAFLUSH, raw)
        except termios.error as e:
            raise AttributeApplyError(f"tcsetattr: {e.args[-1]}") from e

        self._saved_attrs = saved
        self._raw_attrs = raw
        self.active = True

        # Safety net for exit paths that skip exit_raw()
        atexit.register(self.exit_raw)
        return self

    def exit_raw(self):
        """Put back the attributes saved by enter_raw(). No-op if not active."""
        if not self.active:
            return

        self.active = False
        atexit.unregister(self.exit_raw)

        try:
            termios.tcsetattr(self.fd_in, termios.TCSAFLUSH, self._saved_attrs)
        except termios.error as e:
            raise AttributeApplyError(f"tcsetattr: {e.args[-1]}") from e

    def __enter__(self):
        return self.enter_raw()

    def __exit__(self, *exc_info):
        self.exit_raw()

    def write(self, data):
        """Write 'data' to the terminal in one go."""
        write_all(self.fd_out, data)

    def clear_screen(self):
        self.write(CLEAR_SCREEN + CURSOR_HOME)


# ---------------------------------------------------------------------------
# Window geometry
# ---------------------------------------------------------------------------

Geometry = collections.namedtuple("Geometry", "rows cols")

# Longest cursor position report we'll read. "\x1b[9999;9999R" is 12 bytes.
_MAX_REPORT_LEN = 31

_POSITION_RE = re.compile(rb"(\d+);(\d+)")


def direct_geometry(fd):
    """Ask the OS for the size of the terminal on 'fd'.

    Returns a Geometry, or None if the size is unknown (not a terminal, or
    the terminal reports zero rows or columns).
    """
    try:
        size = os.get_terminal_size(fd)
    except OSError:
        return None

    if size.columns == 0 or size.lines == 0:
        return None

    return Geometry(size.lines, size.columns)


def parse_position_report(data):
    """Parse a cursor position report, "\\x1b[<row>;<col>" with the
    terminating "R" already stripped, into (row, col)."""
    if not data.startswith(b"\x1b["):
        raise AttributeParseError(f"cursor position report {data!r} lacks ESC [")

    match = _POSITION_RE.match(data, 2)
    if not match:
        raise AttributeParseError(f"no <row>;<col> in cursor position report {data!r}")

    return int(match.group(1)), int(match.group(2))


def probe_geometry(fd_in, fd_out, timeout=READ_TIMEOUT):
    """Find the screen size by moving the cursor as far down and right as it
    will go and asking the terminal where it ended up.

    Needs fd_in in raw mode (on a real terminal) so that the report can be
    read without a trailing newline and without being echoed.
    """
    write_all(fd_out, PROBE_BOTTOM_RIGHT)
    write_all(fd_out, REQUEST_CURSOR_POSITION)

    poller = fd_poller(fd_in)
    buf = bytearray()
    while len(buf) < _MAX_REPORT_LEN:
        b = read_byte(fd_in, timeout, poller)
        if b is None:
            break
        if b == ord("R"):
            rows, cols = parse_position_report(bytes(buf))
            break
        buf.append(b)
    else:
        raise AttributeParseError(
            f"no end to cursor position report after {_MAX_REPORT_LEN} bytes"
        )

    if b is None:
        # A report cut short by a timeout might be missing digits
        raise AttributeParseError(f"incomplete cursor position report {bytes(buf)!r}")

    if rows == 0 or cols == 0:
        raise AttributeParseError(f"terminal reported a {rows}x{cols} screen")

    return Geometry(rows, cols)


def query_geometry(fd_in, fd_out, timeout=READ_TIMEOUT):
    """Return the screen size as a Geometry.

    Asks the OS first and falls back on probe_geometry(). Raises
    GeometryUnavailable if both fail.
    """
    geometry = direct_geometry(fd_out)
    if geometry:
        return geometry

    try:
        return probe_geometry(fd_in, fd_out, timeout)
    except TerminalError as e:
        raise GeometryUnavailable(f"could not determine the terminal size: {e}") from e


# ---------------------------------------------------------------------------
# KeyDecoder
# ---------------------------------------------------------------------------


class KeyDecoder:
    """Turns the bytes arriving on an fd into key events.

    next_event() returns a Key constant for a recognized escape sequence, and
    a one-character str for anything else, with ESCAPE standing in for a lone
    Esc press as well as for sequences that aren't recognized.
    """

    def __init__(self, fd, timeout=READ_TIMEOUT):
        self.fd = fd
        self.timeout = timeout
        self._poller = fd_poller(fd)

    def _read(self):
        return read_byte(self.fd, self.timeout, self._poller)

    def next_event(self):
        """Block until a key arrives and return it."""
        while True:
            b = self._read()
            if b is not None:
                break

        if chr(b) != ESCAPE:
            return chr(b)

        # Esc on its own and the start of an escape sequence look the same.
        # If nothing follows quickly, it was Esc.
        seq0 = self._read()
        if seq0 is None:
            return ESCAPE
        seq1 = self._read()
        if seq1 is None:
            return ESCAPE

        seq0 = chr(seq0)
        seq1 = chr(seq1)

        if seq0 == "[":
            if "0" <= seq1 <= "9":
                seq2 = self._read()
                if seq2 is not None and chr(seq2) == "~":
                    return _TILDE_KEYS.get(seq1, ESCAPE)
                return ESCAPE

            return _CSI_KEYS.get(seq1, ESCAPE)

        if seq0 == "O":
            return _SS3_KEYS.get(seq1, ESCAPE)

        return ESCAPE


# ---------------------------------------------------------------------------
# Safe entry point
# ---------------------------------------------------------------------------


def run(fn, fd_in=None, fd_out=None):
    """Safe wrapper: enter raw mode, call fn(session), restore on exit.

    The terminal is restored however fn() exits. KeyboardInterrupt (SIGINT
    sent from outside, as Ctrl-C itself is just a byte in raw mode) ends the
    session quietly and returns None.
    """
    session = TerminalSession(fd_in, fd_out)
    session.enter_raw()
    try:
        return fn(session)
    except KeyboardInterrupt:
        pass
    finally:
        session.exit_raw()
