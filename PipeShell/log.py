import logging
import sys

from config import DEBUG, SHELL_NAME


def get_logger(name=None):
    """Return the shell logger, or a child of it; tracing goes to stderr."""
    root = logging.getLogger(SHELL_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s - %(message)s"))
        root.addHandler(handler)
        root.setLevel(logging.DEBUG if DEBUG else logging.WARNING)
        root.propagate = False
    return root.getChild(name) if name else root
