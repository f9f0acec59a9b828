# Copyright (c) 2026 kiloview contributors
# SPDX-License-Identifier: ISC
#
# Window geometry tests: the OS size query, the cursor position probe that
# replaces it when it fails, and parsing of position reports.

import os

import pytest

from kiloterm import (
    PROBE_BOTTOM_RIGHT,
    REQUEST_CURSOR_POSITION,
    AttributeParseError,
    Geometry,
    GeometryUnavailable,
    direct_geometry,
    parse_position_report,
    probe_geometry,
    query_geometry,
)
from conftest import TEST_TIMEOUT, set_winsize

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _probe(pipe, out_pipe, response):
    """Run query_geometry() with 'response' waiting on the input side, which
    is a pipe, so the OS query always fails. Returns the Geometry and
    everything written to the output side."""
    r, w = pipe
    out_r, out_w = out_pipe
    os.write(w, response)

    geometry = query_geometry(r, out_w, TEST_TIMEOUT)
    return geometry, os.read(out_r, 100)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_direct_query(pty_pair, out_pipe):
    """A terminal that knows its size is believed without probing."""
    _, slave = pty_pair
    set_winsize(slave, 24, 80)

    assert direct_geometry(slave) == Geometry(24, 80)

    # Nothing is written when the OS query works
    out_r, _ = out_pipe
    assert query_geometry(out_r, slave, TEST_TIMEOUT) == (24, 80)


def test_direct_query_zero_size(pty_pair):
    """A terminal reporting zero columns has an unknown size."""
    _, slave = pty_pair
    set_winsize(slave, 24, 0)
    assert direct_geometry(slave) is None


def test_direct_query_not_a_terminal(pipe):
    _, w = pipe
    assert direct_geometry(w) is None


def test_probe_fallback(pipe, out_pipe):
    """When the OS query fails, the cursor is sent to the bottom-right corner
    and its position asked for."""
    geometry, written = _probe(pipe, out_pipe, b"\x1b[24;80R")
    assert geometry == Geometry(24, 80)
    assert written == PROBE_BOTTOM_RIGHT + REQUEST_CURSOR_POSITION


def test_probe_fallback_zero_columns(pty_pair, pipe):
    """A terminal reporting zero columns gets probed."""
    _, slave = pty_pair
    set_winsize(slave, 24, 0)

    r, w = pipe
    os.write(w, b"\x1b[50;132R")
    assert query_geometry(r, slave, TEST_TIMEOUT) == Geometry(50, 132)


def test_probe_stops_at_terminator(pipe, out_pipe):
    """Bytes after the R of the report are left for the key decoder."""
    r, _ = pipe
    _probe(pipe, out_pipe, b"\x1b[24;80Rx")
    assert os.read(r, 10) == b"x"


@pytest.mark.parametrize(
    "response",
    [
        b"",  # no answer
        b"\x1b[24;80",  # no terminator, ends on timeout
        b"\x1b[24;8",
        b"24;80R",  # no ESC [
        b"\x1b]24;80R",
        b"\x1b[24R",  # one number
        b"\x1b[;80R",
        b"\x1b[0;80R",  # zero-sized
        b"\x1b[" + b"1" * 100,  # never terminated, cut off at the size cap
    ],
)
def test_probe_failure(pipe, out_pipe, response):
    """A response that can't be parsed makes the geometry unavailable, with
    the parse error as the cause."""
    with pytest.raises(GeometryUnavailable) as excinfo:
        _probe(pipe, out_pipe, response)
    assert isinstance(excinfo.value.__cause__, AttributeParseError)


def test_probe_reads_bounded_amount(pipe, out_pipe):
    """A runaway response is not read past the size cap."""
    r, w = pipe
    out_r, out_w = out_pipe
    os.write(w, b"\x1b[" + b"1" * 100)

    with pytest.raises(AttributeParseError):
        probe_geometry(r, out_w, TEST_TIMEOUT)

    assert len(os.read(r, 200)) == 102 - 31


def test_parse_position_report():
    assert parse_position_report(b"\x1b[24;80") == (24, 80)
    assert parse_position_report(b"\x1b[1;1") == (1, 1)
    assert parse_position_report(b"\x1b[9999;9999") == (9999, 9999)

    for bad in (b"", b"\x1b", b"\x1b[", b"[24;80", b"\x1b[a;b", b"\x1b[24:80"):
        with pytest.raises(AttributeParseError):
            parse_position_report(bad)
