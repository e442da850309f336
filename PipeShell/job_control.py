import os
from dataclasses import dataclass, field

import psutil

from config import TERMINATION_SIGNAL
from PipeShell.log import get_logger

log = get_logger("jobs")


@dataclass
class Job:
    """A background command line; pid is the last stage, the one announced."""
    pid: int
    command: str = ""
    background: bool = True
    pids: list = field(default_factory=list)
    statuses: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.pid not in self.pids:
            self.pids.append(self.pid)

    @property
    def pending(self):
        return [p for p in self.pids if p not in self.statuses]

    @property
    def done(self):
        return not self.pending

    @property
    def status(self):
        return self.statuses.get(self.pid, 0)


def exit_status(wait_status):
    """waitpid() status -> shell exit status (128+N for signal N)."""
    code = os.waitstatus_to_exitcode(wait_status)
    return 128 - code if code < 0 else code


class JobSupervisor:
    """Bookkeeping of background pids; foreground waits go through here too."""

    def __init__(self, term_signal=TERMINATION_SIGNAL):
        self.term_signal = term_signal
        self.jobs = {}

    def track(self, pid, command="", background=True, pids=None):
        """Register a background job under pid; pids lists every process
        of the job (pid included). A pid already tracked is kept as is."""
        job = self.jobs.get(pid)
        if job is None:
            job = self.jobs[pid] = Job(pid, command, background, list(pids or [pid]))
            log.debug("tracking job %d %s: %s", pid, job.pids, command)
        return job

    def find(self, pid):
        """The job pid belongs to, by its announced pid or any member pid."""
        job = self.jobs.get(pid)
        if job is not None:
            return job
        for job in self.jobs.values():
            if pid in job.pids:
                return job
        return None

    def forget(self, pid):
        job = self.find(pid)
        if job is not None:
            del self.jobs[job.pid]
        return job

    @property
    def pids(self):
        return list(self.jobs)

    def __contains__(self, pid):
        return self.find(pid) is not None

    def __len__(self):
        return len(self.jobs)

    def foreground_wait(self, pid):
        """Block until pid exits; returns its exit status.
        An interrupt while waiting does not abandon the child."""
        while True:
            try:
                _, status = os.waitpid(pid, 0)
                break
            except KeyboardInterrupt:
                log.debug("interrupted while waiting for pid %d", pid)
            except ChildProcessError:
                log.debug("pid %d already reaped", pid)
                return 0
        code = exit_status(status)
        log.debug("pid %d exited with %d", pid, code)
        job = self.find(pid)
        if job is not None:
            job.statuses[pid] = code
            if job.done:
                del self.jobs[job.pid]
        return code

    def reap_finished(self):
        """Collect background jobs whose processes have all exited, without
        blocking. Returns [(job, exit_status)] and stops tracking them."""
        finished = []
        for job in list(self.jobs.values()):
            for pid in job.pending:
                try:
                    done, status = os.waitpid(pid, os.WNOHANG)
                except ChildProcessError:
                    job.statuses[pid] = 0
                    continue
                if done:
                    job.statuses[pid] = exit_status(status)
            if job.done:
                del self.jobs[job.pid]
                finished.append((job, job.status))
        return finished

    def _signal_job(self, job, sig):
        """Send sig to each process of job not yet reaped; returns the pids reached."""
        reached = []
        for pid in job.pending:
            try:
                os.kill(pid, sig)
                reached.append(pid)
            except ProcessLookupError:
                pass
        return reached

    def reap_all(self):
        """Signal every tracked job once, then clear the registry.
        Delivery is best effort; the processes may still be exiting."""
        signalled = []
        for job in list(self.jobs.values()):
            try:
                reached = self._signal_job(job, self.term_signal)
            except OSError as e:
                print(f"Could not terminate job {job.pid}: {e}")
                continue
            if reached:
                signalled.extend(reached)
                print(f"Terminated background job [{job.pid}]")
        self.jobs.clear()
        return signalled

    def kill(self, pid, sig=None):
        """Send sig (default: the termination signal) to pid's job and stop
        tracking it. An untracked pid is signalled directly."""
        sig = sig if sig is not None else self.term_signal
        job = self.find(pid)
        if job is None:
            os.kill(pid, sig)
            return
        reached = self._signal_job(job, sig)
        self.forget(pid)
        if not reached:
            raise ProcessLookupError(f"no such process: {pid}")

    def show_jobs(self, io):
        """Write the tracked jobs and their live state."""
        if not self.jobs:
            io.write_line("No background jobs.")
            return

        io.write_line(f"{'PID':<8} {'Command'}")
        io.write_line("-" * 40)
        for pid, job in self.jobs.items():
            try:
                if psutil.pid_exists(pid):
                    state = psutil.Process(pid).status()
                else:
                    state = "terminated"
            except psutil.Error:
                state = "unknown"
            io.write_line(f"{pid:<8} {job.command}  [{state}]")

