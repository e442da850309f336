import shlex
from dataclasses import dataclass, field

from PipeShell.io_context import NamedFile
from PipeShell.status import ParseError

PIPE = "|"
BACKGROUND = "&"
QUOTES = "'\""


@dataclass
class Stage:
    """One command of a pipeline, after tokenizing and redirection parsing."""
    name: str
    args: list = field(default_factory=list)
    stdin: object = None
    stdout: object = None

    @property
    def argv(self):
        return [self.name] + self.args


def _split_unquoted(line, separator):
    """Split on separator characters that sit outside single/double quotes."""
    parts, cur, quote, escaped = [], [], None, False
    for ch in line:
        if escaped:
            cur.append(ch)
            escaped = False
        elif quote:
            cur.append(ch)
            if ch == quote:
                quote = None
            elif ch == "\\" and quote == '"':
                escaped = True
        elif ch == "\\":
            escaped = True
            cur.append(ch)
        elif ch in QUOTES:
            quote = ch
            cur.append(ch)
        elif ch == separator:
            parts.append("".join(cur))
            cur = []
        else:
            cur.append(ch)
    if quote:
        raise ParseError("syntax error: unterminated quote")
    parts.append("".join(cur))
    return parts


def parse_command(line):
    """
    Parse command line into pipeline segments and background flag.
    Returns: (segments: list, background: bool)

    Segments keep their quoting and are stripped of surrounding
    whitespace; an empty segment (e.g. from "a | | b") is kept as ""
    so the caller can report it at its position.
    """
    line = line.strip()
    if not line:
        return [], False

    background = line.endswith(BACKGROUND)
    if background:
        line = line[:-1].strip()
        if not line:
            raise ParseError("syntax error near unexpected token `&'")

    segments = [seg.strip() for seg in _split_unquoted(line, PIPE)]
    return segments, background


def _scan(cmd_str):
    """
    Yield (raw, is_operator) chunks of a stage.

    Only an unquoted, unescaped "<", ">" or ">>" is an operator; words
    come out with their quoting intact.
    """
    cur, quote, i = [], None, 0
    while i < len(cmd_str):
        ch = cmd_str[i]
        if quote:
            cur.append(ch)
            if ch == quote:
                quote = None
            elif ch == "\\" and quote == '"' and i + 1 < len(cmd_str):
                cur.append(cmd_str[i + 1])
                i += 1
        elif ch == "\\":
            cur.append(cmd_str[i:i + 2])
            i += 1
        elif ch in QUOTES:
            quote = ch
            cur.append(ch)
        elif ch.isspace() or ch in "<>":
            if cur:
                yield "".join(cur), False
                cur = []
            if cmd_str.startswith(">>", i):
                yield ">>", True
                i += 1
            elif ch in "<>":
                yield ch, True
        else:
            cur.append(ch)
        i += 1
    if quote:
        raise ParseError("syntax error: unterminated quote")
    if cur:
        yield "".join(cur), False


def tokenize(cmd_str):
    """Quote-aware split into (token, is_operator) pairs."""
    tokens = []
    for raw, is_operator in _scan(cmd_str):
        if is_operator:
            tokens.append((raw, True))
            continue
        try:
            tokens.append((shlex.split(raw)[0], False))
        except ValueError as e:
            raise ParseError(f"syntax error: {e}")
    return tokens


def parse_stage(cmd_str):
    """
    Parse redirections from a single stage.
    Returns a Stage; its name is "" for an empty stage.
    """
    tokens = tokenize(cmd_str)
    words, stdin, stdout = [], None, None
    i = 0

    while i < len(tokens):
        tok, is_operator = tokens[i]
        if is_operator:
            if i + 1 >= len(tokens) or tokens[i + 1][1]:
                raise ParseError(f"syntax error: missing file name after '{tok}'")
            target = tokens[i + 1][0]
            if tok == "<":
                stdin = NamedFile(target)
            else:
                stdout = NamedFile(target, append=(tok == ">>"))
            i += 2
        else:
            words.append(tok)
            i += 1

    if not words:
        return Stage("", [], stdin, stdout)
    return Stage(words[0], words[1:], stdin, stdout)
