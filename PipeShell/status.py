"""
Status codes and exceptions.

Every category of operation has its own status enum so that a file
utility and the pipeline orchestrator never share a code by accident.
The enum value doubles as the exit status of the process that ran the
command.
"""
from enum import IntEnum


class FileStatus(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    OPEN_FAILURE = 2
    CLOSE_FAILURE = 3
    READ_FAILURE = 4
    NOT_FOUND = 5
    SAME_SOURCE_AND_TARGET = 6
    ALLOCATION_FAILURE = 7

    @property
    def message(self):
        return _FILE_MESSAGES[self]


class StreamStatus(IntEnum):
    SUCCESS = 0
    INPUT_STREAM_FAILURE = 2
    OUTPUT_STREAM_FAILURE = 3

    @property
    def message(self):
        return _STREAM_MESSAGES[self]


class ProcessStatus(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    NOT_FOUND = 5
    FORK_FAILURE = 70
    PIPE_CREATION_FAILURE = 71
    NOT_EXECUTABLE = 126
    UNKNOWN_COMMAND = 127

    @property
    def message(self):
        return _PROCESS_MESSAGES[self]


_FILE_MESSAGES = {
    FileStatus.SUCCESS: "Success.",
    FileStatus.FAILURE: "Operation failed.",
    FileStatus.OPEN_FAILURE: "Failed to open file.",
    FileStatus.CLOSE_FAILURE: "Failed to close file.",
    FileStatus.READ_FAILURE: "Failed to read file.",
    FileStatus.NOT_FOUND: "No such file or directory.",
    FileStatus.SAME_SOURCE_AND_TARGET: "Source and target are the same.",
    FileStatus.ALLOCATION_FAILURE: "Out of memory.",
}

_STREAM_MESSAGES = {
    StreamStatus.SUCCESS: "Success.",
    StreamStatus.INPUT_STREAM_FAILURE: "Failed to open input file!",
    StreamStatus.OUTPUT_STREAM_FAILURE: "Failed to open output file!",
}

_PROCESS_MESSAGES = {
    ProcessStatus.SUCCESS: "Success.",
    ProcessStatus.FAILURE: "Operation failed.",
    ProcessStatus.NOT_FOUND: "No such process.",
    ProcessStatus.FORK_FAILURE: "Failed to create process.",
    ProcessStatus.PIPE_CREATION_FAILURE: "Failed to create pipe.",
    ProcessStatus.NOT_EXECUTABLE: "Permission denied.",
    ProcessStatus.UNKNOWN_COMMAND: "command not found.",
}


def status_message(status):
    """Message for any status enum member, or a generic one for bare ints."""
    message = getattr(status, "message", None)
    if message is not None:
        return message
    return f"exited with code {int(status)}"


class ShellError(Exception):
    """Base class for every error raised by the shell core."""

    status = ProcessStatus.FAILURE

    def __init__(self, message=None):
        super().__init__(message or status_message(self.status))


class StreamOpenFailure(ShellError):
    status = FileStatus.OPEN_FAILURE


class InputStreamFailure(StreamOpenFailure):
    status = StreamStatus.INPUT_STREAM_FAILURE


class OutputStreamFailure(StreamOpenFailure):
    status = StreamStatus.OUTPUT_STREAM_FAILURE


class StreamCloseFailure(ShellError):
    status = FileStatus.CLOSE_FAILURE


class ReadFailure(ShellError):
    status = FileStatus.READ_FAILURE


class AllocationFailure(ShellError):
    status = FileStatus.ALLOCATION_FAILURE


class NotFound(ShellError):
    status = FileStatus.NOT_FOUND


class SameSourceAndTarget(ShellError):
    status = FileStatus.SAME_SOURCE_AND_TARGET


class ForkFailure(ShellError):
    status = ProcessStatus.FORK_FAILURE


class PipeCreationFailure(ShellError):
    status = ProcessStatus.PIPE_CREATION_FAILURE


class UnknownCommand(ShellError):
    status = ProcessStatus.UNKNOWN_COMMAND

    def __init__(self, name):
        self.name = name
        super().__init__(f"command '{name}' not found.")


class ParseError(ShellError):
    status = ProcessStatus.FAILURE
