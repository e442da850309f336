import argparse
import sys

from config import SHELL_NAME
from PipeShell.io_context import Console, NamedFile
from PipeShell.shell import Shell
from PipeShell.status import InputStreamFailure


def main(argv=None):
    parser = argparse.ArgumentParser(prog="minishell", description="MiniShell command interpreter")
    parser.add_argument("script", nargs="?", help="read commands from this file instead of the console")
    parser.add_argument("--exit-on-failure", action="store_true", default=None,
                        help="leave the shell when a foreground command fails")
    opts = parser.parse_args(argv)

    kwargs = {}
    if opts.exit_on_failure is not None:
        kwargs["exit_on_failure"] = True

    try:
        shell = Shell(source=NamedFile(opts.script) if opts.script else Console, **kwargs)
    except InputStreamFailure as e:
        print(f"{SHELL_NAME}: {e}", file=sys.stderr)
        return 1

    interactive = shell.source.is_interactive()
    status = shell.run()
    if interactive:
        print("Goodbye!")
    return status


if __name__ == "__main__":
    sys.exit(main())
