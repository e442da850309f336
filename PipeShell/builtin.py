"""
File-utility commands.

Every handler takes (io, args), does its I/O through the IOContext and
returns a FileStatus. Reporting a non-success status is left to the
dispatch layer, so handlers only write usage hints themselves.
"""
import getpass
import os
import re
import shutil
import socket

from PipeShell.status import FileStatus


def builtin_echo(io, args):
    io.write_line(" ".join(args))
    return FileStatus.SUCCESS


def builtin_pwd(io, args):
    io.write_line(os.getcwd())
    return FileStatus.SUCCESS


def builtin_hostname(io, args):
    io.write_line(socket.gethostname())
    return FileStatus.SUCCESS


def builtin_username(io, args):
    io.write_line(getpass.getuser())
    return FileStatus.SUCCESS


def builtin_cd(io, args):
    """Change directory"""
    path = args[0] if args else os.path.expanduser("~")
    try:
        os.chdir(os.path.expanduser(path))
    except FileNotFoundError:
        return FileStatus.NOT_FOUND
    except OSError as e:
        io.write_error(f"cd: {e.strerror}: {path}")
        return FileStatus.FAILURE
    return FileStatus.SUCCESS


def builtin_touch(io, args):
    """Create each file, or update its timestamps if it exists."""
    if not args:
        io.write_error("usage: touch <name>...")
        return FileStatus.FAILURE
    for name in args:
        try:
            handle = open(name, "a")
        except OSError:
            return FileStatus.OPEN_FAILURE
        try:
            handle.close()
        except OSError:
            return FileStatus.CLOSE_FAILURE
        os.utime(name)
    return FileStatus.SUCCESS


def builtin_mkdir(io, args):
    if not args:
        io.write_error("usage: mkdir <name>...")
        return FileStatus.FAILURE
    status = FileStatus.SUCCESS
    for name in args:
        try:
            os.mkdir(name)
        except FileExistsError:
            io.write_error(f"mkdir: cannot create directory '{name}': File exists")
            status = FileStatus.FAILURE
        except FileNotFoundError:
            status = FileStatus.NOT_FOUND
        except OSError as e:
            io.write_error(f"mkdir: cannot create directory '{name}': {e.strerror}")
            status = FileStatus.FAILURE
    return status


def builtin_rmfile(io, args):
    if not args:
        io.write_error("usage: rmfile <name>...")
        return FileStatus.FAILURE
    status = FileStatus.SUCCESS
    for name in args:
        try:
            os.remove(name)
        except FileNotFoundError:
            status = FileStatus.NOT_FOUND
        except IsADirectoryError:
            io.write_error(f"rmfile: cannot remove '{name}': Is a directory")
            status = FileStatus.FAILURE
        except OSError as e:
            io.write_error(f"rmfile: cannot remove '{name}': {e.strerror}")
            status = FileStatus.FAILURE
    return status


def list_entries(path, show_all=False):
    """Sorted entry names of a directory; "." and ".." are added with show_all."""
    names = os.listdir(path)
    if show_all:
        names += [".", ".."]
    else:
        names = [n for n in names if not n.startswith(".")]
    return sorted(names)


def builtin_ls(io, args):
    """ls [-a|-l|-la|-x] [path]; -x lists without printing."""
    flags, paths = set(), []
    for arg in args:
        if arg.startswith("-") and len(arg) > 1:
            unknown = set(arg[1:]) - set("alx")
            if unknown:
                io.write_error(f"ls: invalid option -- '{''.join(sorted(unknown))}'")
                return FileStatus.FAILURE
            flags.update(arg[1:])
        else:
            paths.append(arg)
    if len(paths) > 1:
        io.write_error("usage: ls [-a|-l|-la] [path]")
        return FileStatus.FAILURE
    path = paths[0] if paths else "."

    try:
        names = list_entries(path, show_all="a" in flags)
    except FileNotFoundError:
        return FileStatus.NOT_FOUND
    except NotADirectoryError:
        names = [path]
    except MemoryError:
        return FileStatus.ALLOCATION_FAILURE
    except OSError:
        return FileStatus.OPEN_FAILURE

    if "x" in flags or not names:
        return FileStatus.SUCCESS
    if "l" in flags:
        for name in names:
            io.write_line(name)
    else:
        io.write_line(" ".join(names))
    return FileStatus.SUCCESS


def builtin_rmdir(io, args):
    """Remove an empty directory."""
    if len(args) != 1:
        io.write_error("usage: rmdir <name>")
        return FileStatus.FAILURE
    path = args[0]
    if not os.path.exists(path):
        return FileStatus.NOT_FOUND
    if not os.path.isdir(path):
        io.write_error(f"rmdir: failed to remove '{path}': Not a directory")
        return FileStatus.FAILURE
    try:
        count = len(list_entries(path, show_all=True)) - 2
    except OSError:
        return FileStatus.OPEN_FAILURE
    if count > 0:
        io.write_error(f"rmdir: failed to remove '{path}': Directory not empty ({count} entries)")
        return FileStatus.FAILURE
    try:
        os.rmdir(path)
    except OSError as e:
        io.write_error(f"rmdir: failed to remove '{path}': {e.strerror}")
        return FileStatus.FAILURE
    return FileStatus.SUCCESS


def builtin_mv(io, args):
    if len(args) != 2:
        io.write_error("usage: mv <source> <target>")
        return FileStatus.FAILURE
    source, target = args
    if not os.path.lexists(source):
        return FileStatus.NOT_FOUND
    if os.path.abspath(source) == os.path.abspath(target) or (
            os.path.exists(target) and os.path.samefile(source, target)):
        return FileStatus.SAME_SOURCE_AND_TARGET
    try:
        shutil.move(source, target)
    except OSError as e:
        io.write_error(f"mv: cannot move '{source}' to '{target}': {e.strerror or e}")
        return FileStatus.FAILURE
    return FileStatus.SUCCESS


def _read_file(path, mode="r"):
    try:
        handle = open(path, mode)
    except OSError:
        return FileStatus.OPEN_FAILURE, None
    try:
        with handle:
            return FileStatus.SUCCESS, handle.read()
    except MemoryError:
        return FileStatus.ALLOCATION_FAILURE, None
    except (OSError, UnicodeDecodeError):
        return FileStatus.READ_FAILURE, None


def builtin_cat(io, args):
    """Print each file; with no file, copy the current input."""
    if not args:
        try:
            io.copy_input_to_output()
        except MemoryError:
            return FileStatus.ALLOCATION_FAILURE
        except BrokenPipeError:
            raise
        except OSError:
            return FileStatus.READ_FAILURE
        return FileStatus.SUCCESS
    for path in args:
        status, data = _read_file(path, "rb")
        if status != FileStatus.SUCCESS:
            return status
        io.write_bytes(data)
    return FileStatus.SUCCESS


def builtin_grep(io, args):
    """grep <pattern> [file]: print the lines matching a regular expression."""
    if not args or len(args) > 2:
        io.write_error("usage: grep <pattern> [file]")
        return FileStatus.FAILURE
    try:
        pattern = re.compile(args[0])
    except re.error as e:
        io.write_error(f"grep: invalid pattern '{args[0]}': {e}")
        return FileStatus.FAILURE

    if len(args) == 2:
        status, data = _read_file(args[1])
        if status != FileStatus.SUCCESS:
            return status
        lines = data.splitlines()
    else:
        lines = io.read_all().splitlines()

    for line in lines:
        if pattern.search(line):
            io.write_line(line)
    return FileStatus.SUCCESS


FILE_COMMANDS = [
    ("echo", "Prints a message", builtin_echo, False),
    ("pwd", "Prints the working directory", builtin_pwd, False),
    ("hostname", "Prints the host name", builtin_hostname, False),
    ("username", "Prints the current user name", builtin_username, False),
    ("touch", "Creates files or updates their timestamps", builtin_touch, False),
    ("mkdir", "Creates directories", builtin_mkdir, False),
    ("rmfile", "Removes files", builtin_rmfile, False),
    ("rmdir", "Removes an empty directory", builtin_rmdir, False),
    ("ls", "Lists directory entries: ls [-a|-l|-la] [path]", builtin_ls, False),
    ("mv", "Moves or renames a file: mv <source> <target>", builtin_mv, False),
    ("cat", "Prints files, or the current input", builtin_cat, False),
    ("grep", "Prints lines matching a pattern: grep <pattern> [file]", builtin_grep, False),
    ("cd", "Changes the working directory", builtin_cd, True),
]


def register_builtins(registry):
    for name, description, handler, in_process in FILE_COMMANDS:
        registry.register(name, description, handler, in_process=in_process)
    return registry
