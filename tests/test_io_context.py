import os
import tempfile
import unittest

from PipeShell.io_context import Console, InMemoryBuffer, IOContext, NamedFile
from PipeShell.status import InputStreamFailure, OutputStreamFailure


class TestIOContext(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name

    def tearDown(self):
        self.tmp.cleanup()

    def path(self, name):
        return os.path.join(self.dir, name)

    def write_file(self, name, data):
        with open(self.path(name), "w") as f:
            f.write(data)
        return self.path(name)

    def test_read_all_strips_single_trailing_newline(self):
        path = self.write_file("in.txt", "one\ntwo\n")
        with IOContext(input=NamedFile(path)) as io:
            self.assertEqual(io.read_all(), "one\ntwo")
            self.assertTrue(io.at_end)

    def test_read_all_keeps_inner_blank_lines(self):
        path = self.write_file("in.txt", "a\n\nb\n\n")
        with IOContext(input=NamedFile(path)) as io:
            self.assertEqual(io.read_all(), "a\n\nb\n")

    def test_read_all_without_trailing_newline(self):
        path = self.write_file("in.txt", "a\nb")
        with IOContext(input=NamedFile(path)) as io:
            self.assertEqual(io.read_all(), "a\nb")

    def test_write_lines_then_read_back(self):
        lines = ["first", "", "third line", "  padded  "]
        path = self.path("out.txt")
        with IOContext(output=NamedFile(path)) as io:
            for line in lines:
                io.write_line(line)
        with IOContext(input=NamedFile(path)) as io:
            self.assertEqual(io.read_all().split("\n"), lines)

    def test_reads_after_end_return_empty(self):
        path = self.write_file("in.txt", "only\n")
        with IOContext(input=NamedFile(path)) as io:
            self.assertEqual(io.read_line(), "only")
            self.assertFalse(io.at_end)
            self.assertEqual(io.read_line(), "")
            self.assertTrue(io.at_end)
            self.assertEqual(io.read_line(), "")
            self.assertEqual(io.read_all(), "")

    def test_failed_input_keeps_previous_source(self):
        path = self.write_file("in.txt", "kept\n")
        with IOContext(input=NamedFile(path)) as io:
            with self.assertRaises(InputStreamFailure):
                io.set_input(NamedFile(self.path("missing.txt")))
            self.assertEqual(io.input, NamedFile(path))
            self.assertEqual(io.read_line(), "kept")

    def test_failed_output_keeps_previous_sink(self):
        buf = InMemoryBuffer()
        with IOContext(output=buf) as io:
            with self.assertRaises(OutputStreamFailure):
                io.set_output(NamedFile(self.path("no/such/dir/out.txt")))
            io.write("still here")
        self.assertEqual(buf.getvalue(), "still here")

    def test_reselecting_same_file_is_noop(self):
        path = self.write_file("in.txt", "one\ntwo\n")
        with IOContext(input=NamedFile(path)) as io:
            handle = io.input_stream()
            self.assertEqual(io.read_line(), "one")
            io.set_input(NamedFile(" " + path + " "))
            self.assertIs(io.input_stream(), handle)
            self.assertEqual(io.read_line(), "two")

    def test_switching_back_to_console_closes_file(self):
        path = self.write_file("in.txt", "x\n")
        io = IOContext(input=NamedFile(path))
        handle = io.input_stream()
        io.set_input(Console)
        self.assertTrue(handle.closed)
        self.assertTrue(io.is_console_input())
        self.assertFalse(io.at_end)
        io.close()
        io.close()

    def test_output_truncates_and_appends(self):
        path = self.write_file("out.txt", "old contents\n")
        with IOContext(output=NamedFile(path)) as io:
            io.write_line("new")
        with IOContext(output=NamedFile(path, append=True)) as io:
            io.write_line("more")
        with open(path) as f:
            self.assertEqual(f.read(), "new\nmore\n")

    def test_writes_are_visible_before_close(self):
        path = self.path("out.txt")
        io = IOContext(output=NamedFile(path))
        io.write("partial")
        with open(path) as f:
            self.assertEqual(f.read(), "partial")
        io.close()

    def test_in_memory_buffers(self):
        out = InMemoryBuffer()
        with IOContext(input=InMemoryBuffer("a\nb\n"), output=out) as io:
            io.write_line(io.read_all().upper())
        self.assertEqual(out.getvalue(), "A\nB\n")

    def test_copy_between_files_keeps_bytes(self):
        data = b"crlf\r\n\xff\xfe no newline"
        with open(self.path("in.bin"), "wb") as f:
            f.write(data)
        out = self.path("out.bin")
        with IOContext(input=NamedFile(self.path("in.bin")), output=NamedFile(out)) as io:
            io.write("head:")
            io.copy_input_to_output()
            self.assertTrue(io.at_end)
            io.write_bytes(b"\x00tail")
        with open(out, "rb") as f:
            self.assertEqual(f.read(), b"head:" + data + b"\x00tail")

    def test_copy_into_memory_buffer(self):
        out = InMemoryBuffer()
        with IOContext(input=InMemoryBuffer("a\r\nb"), output=out) as io:
            io.copy_input_to_output()
            io.copy_input_to_output()
            io.write_bytes(b"!")
        self.assertEqual(out.getvalue(), "a\r\nb!")

    def test_close_leaves_caller_buffer_usable(self):
        out = InMemoryBuffer()
        io = IOContext(output=out)
        io.write("kept")
        io.close()
        self.assertEqual(out.getvalue(), "kept")
        self.assertIs(io.output, Console)


if __name__ == "__main__":
    unittest.main(verbosity=2)
