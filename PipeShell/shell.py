import os

from config import EXIT_ON_FAILURE, PROMPT, SHELL_NAME
from PipeShell.builtin import register_builtins
from PipeShell.executor import execute_command, execute_pipeline, report
from PipeShell.io_context import Console, IOContext
from PipeShell.job_control import JobSupervisor
from PipeShell.log import get_logger
from PipeShell.parser import parse_command
from PipeShell.registry import CommandRegistry
from PipeShell.status import ParseError, ProcessStatus

log = get_logger("shell")


def prompt():
    """Generate shell prompt"""
    user = os.getenv("USER") or os.getenv("USERNAME") or "user"
    base = os.path.basename(os.getcwd()) or "/"
    return PROMPT.format(user=user, base=base)


class Shell:
    """
    The interactive interpreter.

    `source` is where command lines come from (the console, or a script
    file); `io` is the context commands read and write through. Every
    command runs in a forked child except the in-process ones (cd, exit,
    quit, kill, jobs) when they are issued on their own.
    """

    def __init__(self, registry=None, supervisor=None, source=Console,
                 exit_on_failure=EXIT_ON_FAILURE):
        self.registry = registry if registry is not None else register_builtins(CommandRegistry())
        self.supervisor = supervisor if supervisor is not None else JobSupervisor()
        self.source = IOContext(input=source)
        self.io = IOContext()
        self.exit_on_failure = exit_on_failure
        self.running = False
        self.last_status = 0
        self._register_shell_commands()

    # ---------- shell-level commands ----------
    def _register_shell_commands(self):
        reg = self.registry.register
        reg("exit", "Leaves the shell: exit [code]", self.builtin_exit, in_process=True)
        reg("quit", "Leaves the shell", self.builtin_exit, in_process=True)
        reg("kill", "Terminates a process: kill <pid>", self.builtin_kill, in_process=True)
        reg("jobs", "Lists background jobs", self.builtin_jobs, in_process=True)
        reg("help", "Lists the available commands", self.builtin_help)

    def builtin_exit(self, io, args):
        code = 0
        if args:
            try:
                code = int(args[0])
            except ValueError:
                io.write_error(f"exit: {args[0]}: numeric argument required")
                code = ProcessStatus.FAILURE
        self.running = False
        self.last_status = code
        return ProcessStatus.SUCCESS

    def builtin_kill(self, io, args):
        if len(args) != 1:
            io.write_error("usage: kill <pid>")
            return ProcessStatus.FAILURE
        try:
            pid = int(args[0])
        except ValueError:
            io.write_error(f"kill: invalid pid '{args[0]}'")
            return ProcessStatus.FAILURE
        try:
            self.supervisor.kill(pid)
        except ProcessLookupError:
            self.supervisor.forget(pid)
            return ProcessStatus.NOT_FOUND
        except OSError as e:
            io.write_error(f"kill: ({pid}) - {e.strerror}")
            return ProcessStatus.FAILURE
        return ProcessStatus.SUCCESS

    def builtin_jobs(self, io, args):
        self.supervisor.show_jobs(io)
        return ProcessStatus.SUCCESS

    def builtin_help(self, io, args):
        io.write_line(f"{SHELL_NAME} commands:")
        for command in self.registry.commands():
            io.write_line(f"  {command.name:<10} {command.description}")
        io.write_line("Pipes with |, redirection with < > >>, background with a trailing &")
        return ProcessStatus.SUCCESS

    # ---------- dispatch ----------
    def execute_line(self, line):
        """Run one command line; returns its exit status."""
        try:
            cmds, background = parse_command(line)
        except ParseError as e:
            report(self.io, str(e))
            return ProcessStatus.FAILURE
        if not cmds:
            return ProcessStatus.SUCCESS

        if len(cmds) == 1:
            status = execute_command(cmds[0], self.registry, self.supervisor, self.io, background)
        else:
            status = execute_pipeline(cmds, self.registry, self.supervisor, self.io, background)
        log.debug("%r -> %d", line, int(status))
        return status

    def notify_finished(self):
        for job, _ in self.supervisor.reap_finished():
            print(f"[{job.pid}] finished: {job.command}")

    def read_line(self):
        """Next command line, or None at end of input."""
        if self.source.is_interactive():
            try:
                return input(prompt())
            except EOFError:
                print()
                return None
        line = self.source.read_line()
        if self.source.at_end:
            return None
        return line

    def run(self):
        """Main shell loop; returns the session's exit status."""
        self.running = True
        try:
            while self.running:
                self.notify_finished()
                try:
                    line = self.read_line()
                    if line is None:
                        break
                    if not line.strip():
                        continue
                    status = self.execute_line(line)
                except KeyboardInterrupt:
                    print()
                    continue

                if self.running:
                    self.last_status = int(status)
                if status != 0 and self.exit_on_failure and self.running:
                    report(self.io, f"exiting: command failed with status {int(status)}")
                    break
        finally:
            self.shutdown()
        return self.last_status

    def shutdown(self):
        self.running = False
        self.supervisor.reap_all()
        self.source.close()
        self.io.close()
