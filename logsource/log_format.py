"""
User supplied log formats and embedded exception traces.

A log format is a regular expression whose named groups pick the fields of
a log message apart.  Only the names in RECOGNIZED_CAPTURES are accepted and
``body`` is required.
"""

import re
from typing import Dict, Optional, Pattern, Tuple

from .errors import InvalidLogFormatError, MissingCaptureError, UnknownCaptureError
from .models import LogDetails, LogRef, SourceLanguage, StackTrace

RECOGNIZED_CAPTURES = ("timestamp", "thread", "level", "file", "line", "method", "body")

# (?<name>...) as written for PCRE and Rust; lookbehinds are left alone.
_ANGLE_NAMED_GROUP = re.compile(r"(?<!\\)\(\?<(?=[A-Za-z_])")

PYTHON_TRACE = re.compile(
    r'^Traceback \(most recent call last\):\n'
    r'(?:[ \t]+File "[^"\n]+", line \d+, in [^\n]+\n(?:[ \t]{4,}[^\n]*\n)*)+'
    r'[^ \t\n][^\n]*',
    re.MULTILINE,
)

JAVA_TRACE = re.compile(
    r'^(?:Exception in thread "[^"\n]*" )?[\w$]+(?:\.[\w$]+)+(?::[^\n]*)?\n'
    r'(?:(?![ \t]*at )[^\n]*\n)*?'
    r'(?:[ \t]*(?:at [^\n]+|\.\.\. \d+ (?:more|common frames omitted)'
    r'|(?:Caused by|Suppressed): [^\n]*)(?:\n|\Z))+',
    re.MULTILINE,
)

TRACE_PATTERNS: Dict[SourceLanguage, Pattern] = {
    SourceLanguage.PYTHON: PYTHON_TRACE,
    SourceLanguage.JAVA: JAVA_TRACE,
}

# One match per stack frame inside a detected trace.
FRAME_PATTERNS: Dict[SourceLanguage, Pattern] = {
    SourceLanguage.PYTHON: re.compile(
        r'^[ \t]+File "(?P<path>[^"\n]+)", line (?P<line>\d+), in (?P<name>[^\n]+)$',
        re.MULTILINE,
    ),
    SourceLanguage.JAVA: re.compile(
        r'^[ \t]*at (?:[\w$.@-]*/)*(?P<qualified>[\w$.<>]+)'
        r'\((?P<file>[^:()\n]+\.\w+):(?P<line>\d+)\)',
        re.MULTILINE,
    ),
}


def detect_trace(body: str) -> Tuple[str, Optional[StackTrace]]:
    """
    Split an embedded exception trace from a message body.

    Returns:
        The text before the earliest trace (without the newline joining it
        to the trace) and the trace, or the unchanged body and None.
    """
    earliest = None
    for language, pattern in TRACE_PATTERNS.items():
        match = pattern.search(body)
        if match and (earliest is None or match.start() < earliest[1].start()):
            earliest = (language, match)
    if earliest is None:
        return body, None

    language, match = earliest
    plain = body[:match.start()]
    if plain.endswith("\n"):
        plain = plain[:-1]
    return plain, StackTrace(language=language, content=match.group(0).rstrip("\n"))


class LogFormat:
    """
    A compiled log format.

    Raises:
        InvalidLogFormatError: the pattern does not compile
        UnknownCaptureError: a named group is not one of RECOGNIZED_CAPTURES
        MissingCaptureError: there is no ``body`` group
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        try:
            self.regex = re.compile(_ANGLE_NAMED_GROUP.sub("(?P<", pattern), re.DOTALL)
        except re.error as e:
            raise InvalidLogFormatError(pattern, str(e)) from e

        for name in self.regex.groupindex:
            if name not in RECOGNIZED_CAPTURES:
                raise UnknownCaptureError(name, RECOGNIZED_CAPTURES)
        if "body" not in self.regex.groupindex:
            raise MissingCaptureError("body")

    def __repr__(self) -> str:
        return f"LogFormat({self.pattern!r})"

    def has_src_hint(self) -> bool:
        """True when the format captures both the file and the line of the caller."""
        return "file" in self.regex.groupindex and "line" in self.regex.groupindex

    def is_match(self, line: str) -> bool:
        return self.regex.search(line) is not None

    def captures(self, text: str) -> Optional[re.Match]:
        return self.regex.search(text)

    def build_log_ref(self, text: str) -> Optional[LogRef]:
        """Decompose a (possibly multi-line) message; None when the format does not match."""
        match = self.captures(text)
        if match is None:
            return None
        fields = match.groupdict()

        body, trace = detect_trace(fields.get("body") or "")
        lineno = None
        if fields.get("line") and fields["line"].strip().isdigit():
            lineno = int(fields["line"].strip())
        details = LogDetails(
            body=body,
            thread=fields.get("thread"),
            file=fields.get("file"),
            lineno=lineno,
            trace=trace,
        )
        return LogRef(line=text, details=details)
