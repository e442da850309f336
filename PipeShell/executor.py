import os
import shutil
import signal
import subprocess
import sys
import traceback

from config import SHELL_NAME
from PipeShell.log import get_logger
from PipeShell.parser import parse_stage
from PipeShell.status import (
    FileStatus,
    ForkFailure,
    PipeCreationFailure,
    ProcessStatus,
    ShellError,
    StreamOpenFailure,
    status_message,
)

log = get_logger("executor")


def report(io, text):
    io.write_error(f"{SHELL_NAME}: {text}")


def report_status(io, name, status):
    if status != 0:
        report(io, f"{name}: {status_message(status)}")


def run_external(args, io):
    """
    Run a command that is not registered, through the OS.
    The child inherits io's redirected streams; returns the exit status.
    """
    if shutil.which(args[0]) is None:
        report(io, f"command '{args[0]}' not found.")
        return ProcessStatus.UNKNOWN_COMMAND

    reader, writer = io.input_stream(), io.output_stream()
    kwargs = {}
    try:
        kwargs["stdin"] = reader.fileno()
    except (AttributeError, OSError, ValueError):
        # in-memory input
        kwargs["input"] = io.read_all() + "\n"
    try:
        kwargs["stdout"] = writer.fileno()
        capture = False
    except (AttributeError, OSError, ValueError):
        kwargs["stdout"] = subprocess.PIPE
        capture = True

    writer.flush()
    try:
        res = subprocess.run(args, text=True, **kwargs)
    except PermissionError:
        report(io, f"permission denied: {args[0]}")
        return ProcessStatus.NOT_EXECUTABLE
    except OSError as e:
        report(io, f"failed to execute '{args[0]}': {e}")
        return ProcessStatus.NOT_EXECUTABLE
    if capture and res.stdout:
        io.write(res.stdout)
    return res.returncode


def execute_stage(stage_str, registry, io):
    """
    Parse one stage, apply its redirections to io and run it.
    Returns the command's exit status; failures are reported, never raised.
    """
    try:
        stage = parse_stage(stage_str)
    except ShellError as e:
        report(io, str(e))
        return ProcessStatus.FAILURE
    if not stage.name:
        report(io, "syntax error: empty command")
        return ProcessStatus.FAILURE

    try:
        try:
            if stage.stdin is not None:
                io.set_input(stage.stdin)
            if stage.stdout is not None:
                io.set_output(stage.stdout)
        except StreamOpenFailure as e:
            report(io, f"{stage.name}: {e}")
            return FileStatus.OPEN_FAILURE

        command = registry.get(stage.name)
        if command is None:
            return run_external(stage.argv, io)
        status = command.execute(io, stage.args)
        report_status(io, stage.name, status)
        return status
    finally:
        io.reset()


def _flush_std():
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (AttributeError, OSError, ValueError):
            pass


def _rebind_std_streams(stdin_fd, stdout_fd):
    """In a child, move fds onto 0/1 and give Python fresh stream objects."""
    if stdin_fd is not None:
        os.dup2(stdin_fd, 0)
        os.close(stdin_fd)
        sys.stdin = open(0, "r", closefd=False)
    if stdout_fd is not None:
        os.dup2(stdout_fd, 1)
        os.close(stdout_fd)
        sys.stdout = open(1, "w", closefd=False)


def fork_stage(stage_str, registry, io, stdin_fd=None, stdout_fd=None, close_fds=()):
    """
    Fork a child that runs one stage with stdin/stdout moved onto the
    given fds. Returns the child's pid in the parent; never returns in
    the child. Raises ForkFailure.
    """
    _flush_std()
    try:
        pid = os.fork()
    except OSError as e:
        raise ForkFailure(f"fork failed: {e}")

    if pid == 0:
        status = ProcessStatus.FAILURE
        try:
            for fd in close_fds:
                if fd is not None:
                    os.close(fd)
            _rebind_std_streams(stdin_fd, stdout_fd)
            io.reset()
            status = execute_stage(stage_str, registry, io)
        except KeyboardInterrupt:
            status = 130
        except BrokenPipeError:
            status = ProcessStatus.FAILURE
        except SystemExit as e:
            status = e.code if isinstance(e.code, int) else int(e.code is not None)
        except BaseException:
            traceback.print_exc()
            status = ProcessStatus.FAILURE
        finally:
            _flush_std()
            os._exit(int(status) & 0xFF)

    log.debug("forked pid %d: %s", pid, stage_str)
    return pid


def execute_command(line, registry, supervisor, io, background=False):
    """
    Run a single (non-piped) command line.
    In-process commands run here; everything else runs in a child that
    is either waited for or handed to the supervisor.
    """
    try:
        stage = parse_stage(line)
    except ShellError as e:
        report(io, str(e))
        return ProcessStatus.FAILURE

    command = registry.get(stage.name)
    if command is not None and command.in_process and not background:
        return execute_stage(line, registry, io)

    try:
        pid = fork_stage(line, registry, io)
    except ForkFailure as e:
        report(io, str(e))
        return ProcessStatus.FORK_FAILURE

    if background:
        supervisor.track(pid, line)
        print(f"[{pid}] started in background: {line}")
        return ProcessStatus.SUCCESS
    return supervisor.foreground_wait(pid)


def _close_fds(*fds):
    for fd in fds:
        if fd is not None:
            os.close(fd)


def execute_pipeline(cmds, registry, supervisor, io, background=False):
    """
    Execute pipeline of commands.
    One pipe per adjacent pair, one child per stage. An empty stage is
    reported and behaves like a stage that writes nothing. Returns the
    exit code of the last stage (0 for a background pipeline).
    """
    n = len(cmds)
    pids = []
    last_empty = False
    prev_read = pipe_read = pipe_write = None
    failure = None

    try:
        for idx, cmd_str in enumerate(cmds):
            if idx < n - 1:
                try:
                    pipe_read, pipe_write = os.pipe()
                except OSError as e:
                    raise PipeCreationFailure(f"pipe failed: {e}")

            if not cmd_str.strip():
                report(io, f"syntax error: empty command at stage {idx + 1} of {n}")
                last_empty = idx == n - 1
            else:
                pids.append(fork_stage(
                    cmd_str, registry, io,
                    stdin_fd=prev_read,
                    stdout_fd=pipe_write,
                    close_fds=(pipe_read,),
                ))

            # The parent keeps only the read end that feeds the next stage
            _close_fds(prev_read, pipe_write)
            prev_read, pipe_read, pipe_write = pipe_read, None, None
    except (PipeCreationFailure, ForkFailure) as e:
        report(io, f"{e} (stage {idx + 1} of {n})")
        failure = e.status
    except KeyboardInterrupt:
        print()
        failure = 128 + signal.SIGINT
    finally:
        _close_fds(prev_read, pipe_read, pipe_write)

    if background:
        if pids:
            cmdline = " | ".join(cmds)
            supervisor.track(pids[-1], cmdline, pids=pids)
            print(f"[{pids[-1]}] started in background: {cmdline}")
        return failure if failure is not None else ProcessStatus.SUCCESS

    statuses = [supervisor.foreground_wait(pid) for pid in pids]
    if failure is not None:
        return failure
    if last_empty or not statuses:
        return ProcessStatus.FAILURE
    return statuses[-1]
