"""
Redirected I/O context.

Commands never touch sys.stdin / sys.stdout directly; they read and write
through an IOContext whose input and output can each point at the
console, a named file or an in-memory buffer. Console streams are looked
up on every access, so a forked pipeline stage that rebinds sys.stdin or
sys.stdout after dup2() is picked up without rebuilding the context.
"""
import io
import os
import shutil
import sys

from PipeShell.status import InputStreamFailure, OutputStreamFailure, StreamCloseFailure


class _Console:
    """The process's standard streams."""

    def __repr__(self):
        return "Console"


Console = _Console()


class NamedFile:
    def __init__(self, path, append=False):
        self.path = path
        self.append = append

    def key(self):
        return os.path.abspath(os.path.expanduser(self.path.strip()))

    def __eq__(self, other):
        return (isinstance(other, NamedFile)
                and self.key() == other.key()
                and self.append == other.append)

    def __hash__(self):
        return hash((self.key(), self.append))

    def __repr__(self):
        return f"NamedFile({self.path!r}{', append=True' if self.append else ''})"


class InMemoryBuffer:
    """A string buffer usable as either end of a command's I/O."""

    def __init__(self, data=""):
        self.stream = io.StringIO(data)

    def getvalue(self):
        return self.stream.getvalue()

    def __repr__(self):
        return f"InMemoryBuffer({self.getvalue()!r})"


class IOContext:
    def __init__(self, input=Console, output=Console):
        self.input = Console
        self.output = Console
        self.at_end = False
        # Owned file handles; None means the console (or a caller-owned buffer)
        self._in = None
        self._out = None
        self._in_stream = None
        self._out_stream = None
        if input is not Console:
            self.set_input(input)
        if output is not Console:
            self.set_output(output)

    # ---------- selection ----------
    def set_input(self, target):
        """Select the input source. Raises InputStreamFailure and keeps the
        previous source when a named file cannot be opened."""
        if target is Console:
            self._close_input()
            self.input = Console
            self.at_end = False
            return
        if isinstance(target, InMemoryBuffer):
            self._close_input()
            target.stream.seek(0)
            self._in_stream = target.stream
            self.input = target
            self.at_end = False
            return
        if target == self.input and self._in is not None:
            return
        try:
            handle = open(os.path.expanduser(target.path.strip()), "r")
        except OSError as e:
            raise InputStreamFailure(f"Failed to open input file '{target.path}': {e.strerror}")
        self._close_input()
        self._in = self._in_stream = handle
        self.input = target
        self.at_end = False

    def set_output(self, target):
        """Select the output sink, truncating (or appending to) named files.
        Raises OutputStreamFailure and keeps the previous sink on failure."""
        if target is Console:
            self._close_output()
            self.output = Console
            return
        if isinstance(target, InMemoryBuffer):
            self._close_output()
            target.stream.seek(0, io.SEEK_END)
            self._out_stream = target.stream
            self.output = target
            return
        if target == self.output and self._out is not None:
            return
        try:
            handle = open(os.path.expanduser(target.path.strip()), "a" if target.append else "w")
        except OSError as e:
            raise OutputStreamFailure(f"Failed to open output file '{target.path}': {e.strerror}")
        self._close_output()
        self._out = self._out_stream = handle
        self.output = target

    def reset(self):
        """Point both ends back at the console."""
        self.set_input(Console)
        self.set_output(Console)

    def is_console_input(self):
        return self.input is Console

    def is_interactive(self):
        if not self.is_console_input():
            return False
        try:
            return sys.stdin.isatty()
        except (AttributeError, ValueError):
            return False

    # ---------- reading ----------
    def input_stream(self):
        return self._in_stream if self._in_stream is not None else sys.stdin

    def read_line(self):
        """Next line without its newline; "" once the input is exhausted."""
        if self.at_end:
            return ""
        line = self.input_stream().readline()
        if line == "":
            self.at_end = True
            return ""
        if line.endswith("\n"):
            line = line[:-1]
        return line

    def read_all(self):
        """Drain the input; lines are joined with newlines, so a single
        trailing newline of the source is not part of the result."""
        lines = []
        while True:
            line = self.read_line()
            if self.at_end:
                break
            lines.append(line)
        return "\n".join(lines)

    # ---------- writing ----------
    def output_stream(self):
        return self._out_stream if self._out_stream is not None else sys.stdout

    def write(self, text):
        stream = self.output_stream()
        stream.write(text)
        stream.flush()

    def write_line(self, text=""):
        self.write(text + "\n")

    def write_bytes(self, data):
        """Write raw bytes; in-memory sinks get them decoded."""
        stream = self.output_stream()
        raw = getattr(stream, "buffer", None)
        if raw is None:
            stream.write(data.decode(errors="replace"))
            stream.flush()
            return
        stream.flush()
        raw.write(data)
        raw.flush()

    def copy_input_to_output(self):
        """Copy the rest of the input to the output byte for byte."""
        if self.at_end:
            return
        reader = self.input_stream()
        raw = getattr(reader, "buffer", None)
        if raw is None:
            self.write(reader.read())
        else:
            sink = self.output_stream()
            if getattr(sink, "buffer", None) is None:
                self.write_bytes(raw.read())
            else:
                sink.flush()
                shutil.copyfileobj(raw, sink.buffer)
                sink.buffer.flush()
        self.at_end = True

    def write_error(self, text):
        sys.stderr.write(text + "\n")
        sys.stderr.flush()

    # ---------- lifetime ----------
    def _close_input(self):
        handle, self._in, self._in_stream = self._in, None, None
        if handle is not None:
            try:
                handle.close()
            except OSError as e:
                raise StreamCloseFailure(f"Failed to close input file: {e}")

    def _close_output(self):
        handle, self._out, self._out_stream = self._out, None, None
        if handle is not None:
            try:
                handle.close()
            except OSError as e:
                raise StreamCloseFailure(f"Failed to close output file: {e}")

    def close(self):
        try:
            self._close_input()
        finally:
            self._close_output()
        self.input = Console
        self.output = Console

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
