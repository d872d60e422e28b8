"""
Scoped suppression of engine diagnostic output.

Numerical backends write progress and warnings straight to the process's
stdout/stderr, sometimes from compiled code that bypasses ``sys.stdout``.
``silence_stream`` therefore redirects the underlying file descriptor to
``os.devnull`` and puts the original back on every exit path.

Entry is serialized by a process-wide re-entrant lock: redirecting a stream
while another thread restores it would leave the process's output pointing
at the wrong place. Output written by other threads while a scope is active
is discarded too.

Usage:
    with silence_output():
        engine.fit_transform(X)

    result = maybe_silence(lambda: engine.fit_transform(X))
"""

import os
import sys
import threading
from contextlib import ExitStack, contextmanager, redirect_stderr, redirect_stdout
from typing import Callable, Iterable, Iterator, TextIO, TypeVar

from .config import get_settings
from .utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_scope_lock = threading.RLock()


def _fileno(stream: TextIO):
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        # io.UnsupportedOperation is an OSError/ValueError subclass
        return None


def _flush(stream: TextIO) -> None:
    flush = getattr(stream, "flush", None)
    if flush is None:
        return
    try:
        flush()
    except (OSError, ValueError):
        logger.debug("Could not flush %r", stream)


@contextmanager
def _redirect_descriptor(stream: TextIO, fd: int) -> Iterator[None]:
    _flush(stream)
    saved_fd = os.dup(fd)
    try:
        with open(os.devnull, "w") as devnull:
            os.dup2(devnull.fileno(), fd)
        yield
    finally:
        # anything still buffered belongs to the silenced scope
        _flush(stream)
        os.dup2(saved_fd, fd)
        os.close(saved_fd)


@contextmanager
def _redirect_object(stream: TextIO) -> Iterator[None]:
    if stream is sys.stdout:
        redirect = redirect_stdout
    elif stream is sys.stderr:
        redirect = redirect_stderr
    else:
        logger.debug("Stream %r has no file descriptor; leaving it untouched", stream)
        yield
        return
    with open(os.devnull, "w") as devnull, redirect(devnull):
        yield


@contextmanager
def silence_stream(stream: TextIO) -> Iterator[None]:
    """
    Temporarily send everything written to ``stream`` to ``os.devnull``.

    The stream's descriptor is duplicated, replaced by a devnull handle for
    the body, and restored afterwards, including when the body raises. In-memory
    replacements of ``sys.stdout``/``sys.stderr`` (no descriptor) are swapped
    at the Python level instead.

    Args:
        stream: A text stream such as ``sys.stdout`` or ``sys.stderr``
    """
    with _scope_lock:
        fd = _fileno(stream)
        if fd is None:
            with _redirect_object(stream):
                yield
        else:
            with _redirect_descriptor(stream, fd):
                yield


@contextmanager
def silence_streams(streams: Iterable[TextIO]) -> Iterator[None]:
    """Silence several streams; they are restored in reverse order."""
    with ExitStack() as stack:
        for stream in streams:
            stack.enter_context(silence_stream(stream))
        yield


@contextmanager
def silence_output() -> Iterator[None]:
    """Silence both stdout and stderr."""
    with silence_stream(sys.stdout):
        with silence_stream(sys.stderr):
            yield


def with_silenced(streams: Iterable[TextIO], body: Callable[[], T]) -> T:
    """
    Call ``body`` with ``streams`` silenced and return its result.

    Streams are restored before this function returns or raises.
    """
    with silence_streams(list(streams)):
        return body()


@contextmanager
def maybe_silenced() -> Iterator[None]:
    """
    Silence stdout/stderr unless the process-wide verbose flag is set.

    The flag is read on every entry, so toggling it between calls takes
    effect on the next call.
    """
    if get_settings().verbose:
        yield
    else:
        with silence_output():
            yield


def maybe_silence(body: Callable[[], T]) -> T:
    """Call ``body`` inside ``maybe_silenced`` and return its result."""
    with maybe_silenced():
        return body()
