#!/usr/bin/env python3
"""Validate kiloterm and kilo outside of pytest.

Exercises kiloterm key decoding, frame assembly and the geometry probe over
pipes, the full raw-mode round trip on a pseudo-terminal, and the same on
the real terminal when there is one.

Run from the project root: python .ci/validate-kiloterm.py
"""

import os
import sys
import termios

# Ensure the project root (CWD) is on the import path, since Python
# adds the script's directory (.ci/) rather than CWD by default.
sys.path.insert(0, os.getcwd())


def check_kiloterm_units():
    """Key, FrameBuffer, KeyDecoder, probe -- no terminal required."""
    from kiloterm import (
        ESCAPE,
        FrameBuffer,
        FrameBufferError,
        Geometry,
        Key,
        KeyDecoder,
        query_geometry,
    )

    # Key constants exist and are distinct
    names = ("UP", "DOWN", "LEFT", "RIGHT", "HOME", "END", "PAGE_UP", "PAGE_DOWN")
    values = [getattr(Key, name) for name in names + ("DELETE",)]
    assert len(set(values)) == len(values), "Key constants collide"

    # FrameBuffer grows or refuses, never drops
    frame = FrameBuffer(max_size=3)
    frame.append(b"ab")
    try:
        frame.append(b"cd")
    except FrameBufferError:
        pass
    else:
        raise AssertionError("FrameBuffer went past max_size")
    assert frame.getvalue() == b"ab", "FrameBuffer lost data"

    # Decoding over a pipe
    r, w = os.pipe()
    try:
        os.write(w, b"q\x1b[A\x1b[5~\x1bOF\x1b")
        decoder = KeyDecoder(r, 0.05)
        got = [decoder.next_event() for _ in range(5)]
        assert got == ["q", Key.UP, Key.PAGE_UP, Key.END, ESCAPE], got
    finally:
        os.close(r)
        os.close(w)

    # Geometry probe over pipes
    r, w = os.pipe()
    out_r, out_w = os.pipe()
    try:
        os.write(w, b"\x1b[40;100R")
        assert query_geometry(r, out_w, 0.05) == Geometry(40, 100), "probe"
        assert os.read(out_r, 100) == b"\x1b[999C\x1b[999B\x1b[6n", "probe bytes"
    finally:
        for fd in (r, w, out_r, out_w):
            os.close(fd)

    print("kiloterm unit checks passed")


def check_pty_session():
    """Raw mode round trip on a pseudo-terminal."""
    from kiloterm import TerminalSession

    master, slave = os.openpty()
    try:
        before = termios.tcgetattr(slave)
        with TerminalSession(slave, slave):
            lflag = termios.tcgetattr(slave)[3]
            assert not lflag & (termios.ECHO | termios.ICANON), "not raw"
        assert termios.tcgetattr(slave) == before, "attributes not restored"
    finally:
        os.close(master)
        os.close(slave)

    print("Pseudo-terminal session passed")


def check_terminal_session():
    """TerminalSession and geometry on the real terminal, if there is one."""
    if not (os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())):
        print("Terminal session skipped (no TTY)")
        return

    from kiloterm import TerminalSession, query_geometry

    fd = sys.stdin.fileno()
    before = termios.tcgetattr(fd)
    with TerminalSession() as session:
        geometry = query_geometry(session.fd_in, session.fd_out)
        assert geometry.rows > 0 and geometry.cols > 0, "terminal geometry"
    assert termios.tcgetattr(fd) == before, "terminal attributes not restored"

    print("Terminal session passed ({}x{})".format(geometry.cols, geometry.rows))


def check_kilo_render():
    """kilo rendering of an empty buffer."""
    from kilo import Cursor, ScreenCompositor, TextBuffer
    from kiloterm import Geometry

    geometry = Geometry(24, 80)
    frame = ScreenCompositor(geometry).render(TextBuffer(), Cursor(geometry))
    lines = frame.split(b"\r\n")
    assert len(lines) == 24, "line count"
    assert b"Kilo editor -- version" in lines[8], "banner"
    assert frame.endswith(b"\x1b[1;1H\x1b[?25h"), "cursor"

    print("kilo render validation passed")


if __name__ == "__main__":
    check_kiloterm_units()
    check_pty_session()
    check_terminal_session()
    check_kilo_render()
    print("All checks passed")
