#!/usr/bin/env python3

# Copyright (c) 2026 kiloview contributors
# SPDX-License-Identifier: ISC

"""
Overview
========

A full-screen terminal text viewer built on kiloterm (pure-Python terminal
I/O). The file given on the command line is shown from its first line, one
screen's worth, with anything wider than the screen cut off at the right
edge. Without a file, a version banner is shown instead.

Keys:

  Arrow keys         : Move the cursor
  Home/End           : Move the cursor to the left/right edge of the screen
  Page Up/Page Down  : Move the cursor to the top/bottom of the screen
  Ctrl-Q             : Quit

Nothing can be edited, and the view doesn't scroll.


Running
=======

kilo.py can be run either as a standalone executable or by calling the kilo()
function.

  $ kilo [FILE]

The exit status on errors is 1. The terminal is always put back into the
mode it was in before the error message is printed.
"""

import argparse
import sys

import kiloterm
from kiloterm import (
    CLEAR_LINE,
    CURSOR_HOME,
    HIDE_CURSOR,
    SHOW_CURSOR,
    FrameBuffer,
    Key,
    KeyDecoder,
    TerminalError,
    cursor_to,
    ctrl_key,
    query_geometry,
)

#
# Configuration variables
#

_VERSION = "0.0.1"

# Shown in the middle of the screen when no file is loaded
_BANNER = f"Kilo editor -- version {_VERSION}".encode("ascii")

# Marks screen lines past the end of the text
_FILLER = b"~"

_QUIT_KEY = ctrl_key("q")


#
# Text
#


class Row:
    """One line of text, without its line terminator. Immutable."""

    __slots__ = ("_content",)

    def __init__(self, content):
        self._content = bytes(content)

    @property
    def content(self):
        return self._content

    @property
    def length(self):
        return len(self._content)

    def __eq__(self, other):
        if not isinstance(other, Row):
            return NotImplemented
        return self._content == other._content

    def __hash__(self):
        return hash(self._content)

    def __repr__(self):
        return f"Row({self._content!r})"


class TextBuffer:
    """The loaded text, as Rows in file order. Rows can only be appended."""

    def __init__(self):
        self._rows = []

    def append_row(self, content):
        self._rows.append(Row(content))

    def load(self, lines):
        """Append each of 'lines' (bytes) as a Row, minus any trailing "\\r"
        and "\\n" bytes, so both "\\n" and "\\r\\n" files load the same."""
        for line in lines:
            self.append_row(line.rstrip(b"\r\n"))

    def load_file(self, filename):
        """Load the lines of 'filename'. OSError is passed on to the caller."""
        with open(filename, "rb") as f:
            self.load(f)

    def __len__(self):
        return len(self._rows)

    def __getitem__(self, i):
        return self._rows[i]

    def __iter__(self):
        return iter(self._rows)


#
# Cursor
#


class Cursor:
    """Cursor position on a screen with the given Geometry.

    x is the column and y the row, both 0-based. Movement stops at the
    screen edges, so 0 <= x < cols and 0 <= y < rows always hold.
    """

    def __init__(self, geometry, x=0, y=0):
        if not (0 <= x < geometry.cols and 0 <= y < geometry.rows):
            raise ValueError(
                f"cursor position ({x}, {y}) is outside a "
                f"{geometry.cols}x{geometry.rows} screen"
            )

        self._geometry = geometry
        self._x = x
        self._y = y

    @property
    def x(self):
        return self._x

    @property
    def y(self):
        return self._y

    def move(self, key):
        # Moves the cursor according to 'key'. Returns True if 'key' is a
        # cursor movement key, and False (doing nothing) otherwise.

        rows, cols = self._geometry

        if key == Key.LEFT:
            self._x = max(self._x - 1, 0)

        elif key == Key.RIGHT:
            self._x = min(self._x + 1, cols - 1)

        elif key == Key.UP:
            self._y = max(self._y - 1, 0)

        elif key == Key.DOWN:
            self._y = min(self._y + 1, rows - 1)

        elif key == Key.HOME:
            self._x = 0

        elif key == Key.END:
            self._x = cols - 1

        elif key in (Key.PAGE_UP, Key.PAGE_DOWN):
            step = Key.UP if key == Key.PAGE_UP else Key.DOWN
            for _ in range(rows):
                self.move(step)

        else:
            return False

        return True


#
# Screen output
#


class ScreenCompositor:
    """Draws the text and cursor onto a screen with the given Geometry.

    Each refresh is assembled in full and sent with a single write, so the
    terminal never shows a half-drawn frame.
    """

    def __init__(self, geometry):
        self.geometry = geometry

    def render(self, buffer, cursor):
        """Return the bytes that draw one frame for 'buffer' and 'cursor'."""
        frame = FrameBuffer()

        # Keep the cursor from flickering around while the frame is drawn
        frame.append(HIDE_CURSOR)
        frame.append(CURSOR_HOME)
        self._draw_rows(frame, buffer)
        frame.append(cursor_to(cursor.y + 1, cursor.x + 1))
        frame.append(SHOW_CURSOR)

        return frame.getvalue()

    def refresh(self, buffer, cursor, session):
        session.write(self.render(buffer, cursor))

    def _draw_rows(self, frame, buffer):
        rows, cols = self.geometry

        for y in range(rows):
            if y < len(buffer):
                frame.append(buffer[y].content[:cols])
            elif not buffer and y == rows // 3:
                self._draw_banner(frame)
            else:
                frame.append(_FILLER)

            # Erase whatever the previous frame left to the right
            frame.append(CLEAR_LINE)

            if y < rows - 1:
                frame.append(b"\r\n")

    def _draw_banner(self, frame):
        cols = self.geometry.cols

        banner = _BANNER[:cols]
        padding = (cols - len(banner)) // 2
        if padding:
            frame.append(_FILLER)
            padding -= 1

        frame.append(b" " * padding)
        frame.append(banner)


#
# Main application
#


class Editor:
    """The refresh/key loop, with all of its state.

    session:
      Active kiloterm.TerminalSession that frames are written to

    decoder:
      kiloterm.KeyDecoder that keys are read from

    geometry:
      Screen size, as a kiloterm.Geometry

    buffer:
      TextBuffer to show. A new, empty one is used if None.
    """

    def __init__(self, session, decoder, geometry, buffer=None):
        self.session = session
        self.decoder = decoder
        self.geometry = geometry
        self.buffer = TextBuffer() if buffer is None else buffer
        self.cursor = Cursor(geometry)
        self.compositor = ScreenCompositor(geometry)

    def refresh(self):
        self.compositor.refresh(self.buffer, self.cursor, self.session)

    def process_key(self):
        # Reads and handles one key. Returns False when it's time to quit.

        c = self.decoder.next_event()

        if c == _QUIT_KEY:
            self.session.clear_screen()
            return False

        # Everything that isn't a movement key is ignored
        self.cursor.move(c)
        return True

    def run(self):
        while True:
            self.refresh()
            if not self.process_key():
                return


def _main():
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter, description=__doc__
    )

    parser.add_argument(
        "filename", metavar="FILE", nargs="?", help="File to view (optional)"
    )

    args = parser.parse_args()

    try:
        kilo(args.filename)
    except OSError as e:
        sys.exit(f"kilo: error: {args.filename}: {e.strerror}")
    except TerminalError as e:
        sys.exit(f"kilo: error: {e}")


def kilo(filename=None, fd_in=None, fd_out=None):
    """
    Shows the viewer, returning after the user quits.

    filename:
      File to load, or None to start out empty. OSError is raised if it
      can't be read. This happens before the terminal is touched.

    fd_in/fd_out:
      Terminal file descriptors. Default to stdin/stdout.

    kiloterm.TerminalError is raised for terminal failures, after the
    terminal has been restored.
    """
    buffer = TextBuffer()
    if filename is not None:
        buffer.load_file(filename)

    geometry = kiloterm.run(lambda session: _kilo(session, buffer), fd_in, fd_out)

    # Printed now that the terminal is back in its normal mode. It would get
    # mangled in raw mode.
    if geometry and len(buffer) > geometry.rows:
        _warn(
            f"'{filename}' has {len(buffer)} lines, but only the first "
            f"{geometry.rows} fit on the screen"
        )


def _kilo(session, buffer):
    # Runs the viewer in an active session. Returns the screen geometry.

    try:
        geometry = query_geometry(session.fd_in, session.fd_out)
        Editor(session, KeyDecoder(session.fd_in), geometry, buffer).run()
    except (TerminalError, KeyboardInterrupt):
        # Don't leave a half-drawn frame behind the error message or the
        # shell prompt. This might fail too if the terminal is what broke.
        try:
            session.clear_screen()
        except TerminalError:
            pass
        raise

    return geometry


def _warn(*args):
    # Prints a warning to stderr. Only call this outside of raw mode.

    print("kilo warning: ", end="", file=sys.stderr)
    print(*args, file=sys.stderr)


if __name__ == "__main__":
    _main()
