import os
import signal


def _env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_signal(name, default):
    value = os.getenv(name)
    if not value:
        return default
    value = value.strip().upper()
    if value.isdigit():
        return signal.Signals(int(value))
    if not value.startswith("SIG"):
        value = "SIG" + value
    return getattr(signal.Signals, value, default)


# Prefix of every diagnostic line
SHELL_NAME = os.getenv("MINISHELL_NAME", "minishell")

# Leave the session when a foreground command exits non-zero
EXIT_ON_FAILURE = _env_flag("MINISHELL_EXIT_ON_FAILURE")

# Sent by `kill` and to every background job at shutdown
TERMINATION_SIGNAL = _env_signal("MINISHELL_TERM_SIGNAL", signal.SIGTERM)

DEBUG = _env_flag("MINISHELL_DEBUG")

PROMPT = "{user}@" + SHELL_NAME + ":{base}$ "
