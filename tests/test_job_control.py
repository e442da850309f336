import os
import signal
import time
import unittest

from PipeShell.io_context import InMemoryBuffer, IOContext
from PipeShell.job_control import JobSupervisor, exit_status


def spawn(code=0, sleep=0.0):
    """Fork a child that optionally sleeps and exits with code."""
    pid = os.fork()
    if pid == 0:
        try:
            if sleep:
                time.sleep(sleep)
        finally:
            os._exit(code)
    return pid


def wait_until_reaped(supervisor, timeout=5.0):
    deadline = time.monotonic() + timeout
    finished = []
    while time.monotonic() < deadline:
        finished += supervisor.reap_finished()
        if not len(supervisor):
            break
        time.sleep(0.02)
    return finished


class TestJobSupervisor(unittest.TestCase):
    def setUp(self):
        self.supervisor = JobSupervisor()

    def tearDown(self):
        self.supervisor.reap_all()

    def test_pid_is_tracked_once(self):
        pid = spawn(sleep=5)
        first = self.supervisor.track(pid, "sleeper")
        second = self.supervisor.track(pid, "again")
        self.assertIs(first, second)
        self.assertEqual(self.supervisor.pids, [pid])
        self.assertEqual(first.command, "sleeper")

    def test_foreground_wait_returns_exit_status(self):
        pid = spawn(code=3)
        self.assertEqual(self.supervisor.foreground_wait(pid), 3)

    def test_foreground_wait_on_reaped_pid(self):
        pid = spawn()
        os.waitpid(pid, 0)
        self.assertEqual(self.supervisor.foreground_wait(pid), 0)

    def test_reap_all_signals_and_clears(self):
        pid = spawn(sleep=30)
        self.supervisor.track(pid, "sleeper")
        self.assertEqual(self.supervisor.reap_all(), [pid])
        self.assertEqual(len(self.supervisor), 0)
        _, status = os.waitpid(pid, 0)
        self.assertTrue(os.WIFSIGNALED(status))
        self.assertEqual(os.WTERMSIG(status), signal.SIGTERM)

    def test_reap_all_skips_processes_already_gone(self):
        pid = spawn()
        os.waitpid(pid, 0)
        self.supervisor.track(pid, "gone")
        self.supervisor.reap_all()
        self.assertEqual(len(self.supervisor), 0)

    def test_reap_all_on_empty_registry(self):
        self.assertEqual(self.supervisor.reap_all(), [])

    def test_reap_finished_collects_exited_jobs(self):
        pid = spawn(code=4)
        self.supervisor.track(pid, "quick")
        finished = wait_until_reaped(self.supervisor)
        self.assertEqual([(job.pid, status) for job, status in finished], [(pid, 4)])
        self.assertNotIn(pid, self.supervisor)

    def test_kill_forgets_job(self):
        pid = spawn(sleep=30)
        self.supervisor.track(pid, "sleeper")
        self.supervisor.kill(pid)
        self.assertNotIn(pid, self.supervisor)
        _, status = os.waitpid(pid, 0)
        self.assertEqual(exit_status(status), 128 + signal.SIGTERM)

    def test_interrupted_foreground_wait_keeps_waiting(self):
        def interrupt(signum, frame):
            raise KeyboardInterrupt

        previous = signal.signal(signal.SIGALRM, interrupt)
        try:
            pid = spawn(code=5, sleep=0.3)
            signal.setitimer(signal.ITIMER_REAL, 0.05)
            self.assertEqual(self.supervisor.foreground_wait(pid), 5)
        finally:
            signal.setitimer(signal.ITIMER_REAL, 0)
            signal.signal(signal.SIGALRM, previous)
        with self.assertRaises(ChildProcessError):
            os.waitpid(pid, os.WNOHANG)

    def test_pipeline_is_one_job(self):
        first, last = spawn(sleep=30), spawn(sleep=30)
        job = self.supervisor.track(last, "a | b", pids=[first, last])
        self.assertEqual(self.supervisor.pids, [last])
        self.assertEqual(job.pids, [first, last])
        self.assertIn(first, self.supervisor)
        self.assertIs(self.supervisor.find(first), job)

    def test_waiting_on_one_stage_keeps_the_job(self):
        first, last = spawn(code=1), spawn(sleep=30)
        self.supervisor.track(last, "a | b", pids=[first, last])
        self.assertEqual(self.supervisor.foreground_wait(first), 1)
        self.assertEqual(self.supervisor.pids, [last])
        self.supervisor.kill(last)
        self.assertEqual(self.supervisor.foreground_wait(last), 128 + signal.SIGTERM)
        self.assertEqual(len(self.supervisor), 0)

    def test_pipeline_job_finishes_once_with_last_status(self):
        first, last = spawn(code=1), spawn(code=2, sleep=0.1)
        self.supervisor.track(last, "a | b", pids=[first, last])
        finished = wait_until_reaped(self.supervisor)
        self.assertEqual([(job.pid, status) for job, status in finished], [(last, 2)])
        for pid in (first, last):
            with self.assertRaises(ChildProcessError):
                os.waitpid(pid, os.WNOHANG)

    def test_kill_signals_every_stage_of_the_job(self):
        first, last = spawn(sleep=30), spawn(sleep=30)
        self.supervisor.track(last, "a | b", pids=[first, last])
        self.supervisor.kill(last)
        self.assertEqual(len(self.supervisor), 0)
        for pid in (first, last):
            _, status = os.waitpid(pid, 0)
            self.assertEqual(exit_status(status), 128 + signal.SIGTERM)

    def test_reap_all_signals_every_stage(self):
        first, last = spawn(sleep=30), spawn(sleep=30)
        self.supervisor.track(last, "a | b", pids=[first, last])
        self.assertEqual(sorted(self.supervisor.reap_all()), sorted([first, last]))
        for pid in (first, last):
            _, status = os.waitpid(pid, 0)
            self.assertTrue(os.WIFSIGNALED(status))

    def test_show_jobs(self):
        out = InMemoryBuffer()
        io = IOContext(output=out)
        self.supervisor.show_jobs(io)
        self.assertEqual(out.getvalue(), "No background jobs.\n")

        pid = spawn(sleep=30)
        self.supervisor.track(pid, "sleeper")
        self.supervisor.show_jobs(io)
        self.assertIn(f"{pid:<8} sleeper", out.getvalue())


if __name__ == "__main__":
    unittest.main(verbosity=2)
