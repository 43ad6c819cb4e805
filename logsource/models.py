"""
Core data models for log-to-source correlation.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from dataclasses_json import LetterCase, config, dataclass_json


class SourceLanguage(Enum):
    """Languages whose logging statements can be extracted."""
    RUST = "Rust"
    JAVA = "Java"
    PYTHON = "Python"

    def __str__(self) -> str:
        return self.value

    @property
    def profile(self):
        """The language profile used to query and synthesize matchers."""
        from .languages import LANGUAGE_PROFILES
        return LANGUAGE_PROFILES[self]

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> Optional["SourceLanguage"]:
        """Select a language by file extension, None when unsupported."""
        from .languages import LANGUAGE_PROFILES
        suffix = Path(path).suffix.lower()
        for language, profile in LANGUAGE_PROFILES.items():
            if suffix in profile.extensions:
                return language
        return None


_LANGUAGE_FIELD = config(encoder=lambda x: x.value, decoder=lambda x: SourceLanguage(x))
_EXCLUDED = config(exclude=lambda _: True)


@dataclass(frozen=True)
class SourceFileID:
    """Process-local identifier for a source file, unique within one tree."""
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class SourceFileInfo:
    """The minimal identity of a parseable file."""
    language: SourceLanguage
    id: SourceFileID


@dataclass(frozen=True)
class Named:
    """A placeholder labelled by its own identifier, e.g. ``{name}``."""
    name: str

    def __str__(self) -> str:
        return f"Named({self.name})"


@dataclass(frozen=True)
class Positional:
    """A placeholder referring to a call-site argument by index, e.g. ``{0}``."""
    index: int

    def __str__(self) -> str:
        return f"Positional({self.index})"


@dataclass(frozen=True)
class Placeholder:
    """An anonymous placeholder, e.g. ``{}`` or ``%s``."""

    def __str__(self) -> str:
        return "Placeholder"


FormatArgument = Union[Named, Positional, Placeholder]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(eq=False)
class SourceRef:
    """A logging statement recognized in source code."""
    source_path: str
    language: SourceLanguage = field(metadata=_LANGUAGE_FIELD)
    line_no: int
    end_line_no: int
    column: int
    name: str
    text: str
    quality: int
    pattern: str
    matcher: re.Pattern = field(repr=False, metadata=_EXCLUDED)
    args: List[FormatArgument] = field(default_factory=list, metadata=_EXCLUDED)
    vars: List[str] = field(default_factory=list)

    def captures(self, body: str) -> Optional[re.Match]:
        """Run this statement's matcher against a log body."""
        return self.matcher.match(body)

    def _key(self):
        return (self.line_no, self.column, self.name, self.text, tuple(self.vars))

    def __eq__(self, other) -> bool:
        if not isinstance(other, SourceRef):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return (f"[Line: {self.line_no}, Col: {self.column}] source `{self.text}` "
                f"name `{self.name}` vars={self.vars}")


@dataclass
class StatementsInFile:
    """All statements found in one file plus the combined matcher over them."""
    path: str
    id: SourceFileID
    log_statements: List[SourceRef]
    matcher: Optional[re.Pattern] = field(default=None, repr=False)


@dataclass_json
@dataclass
class StackTrace:
    """An exception backtrace embedded in a log message body."""
    language: SourceLanguage = field(metadata=_LANGUAGE_FIELD)
    content: str


@dataclass
class LogDetails:
    """Structured view of a log message produced by a log format."""
    body: str
    thread: Optional[str] = None
    file: Optional[str] = None
    lineno: Optional[int] = None
    trace: Optional[StackTrace] = None


@dataclass
class LogRef:
    """A log message and its optional structured decomposition."""
    line: str
    details: Optional[LogDetails] = None

    @property
    def body(self) -> str:
        if self.details is not None:
            return self.details.body
        return self.line

    @classmethod
    def from_line(cls, line: str) -> "LogRef":
        """Build a LogRef for a message that has no log format applied."""
        from .log_format import detect_trace
        body, trace = detect_trace(line)
        return cls(line=line, details=LogDetails(body=body, trace=trace))


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class CallSite:
    """A stack frame resolved to a source location."""
    name: str
    source_path: str
    language: SourceLanguage = field(metadata=_LANGUAGE_FIELD)
    line_no: int


@dataclass_json
@dataclass
class VariablePair:
    """A placeholder value recovered from a log message."""
    expr: str
    value: str


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class LogMapping:
    """The result of correlating one log message with the source."""
    log_ref: LogRef = field(metadata=_EXCLUDED)
    src_ref: Optional[SourceRef] = None
    variables: List[VariablePair] = field(default_factory=list)
    exception_trace: List[CallSite] = field(default_factory=list)
