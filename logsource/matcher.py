"""
Matcher synthesis for format-string literals.

Turns the literal text of a logging call into an anchored regular expression
with one capture group per placeholder, a quality score and the ordered list
of placeholder descriptors.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import MatcherCapacityError
from .models import FormatArgument, Named, Placeholder, Positional, SourceLanguage

# Upper bound on the total pattern text folded into one combined matcher.
COMBINED_PATTERN_SIZE_LIMIT = 4 * 1024 * 1024

PATTERN_PREFIX = r"(?s)\A"
PATTERN_SUFFIX = r"\Z"
CAPTURE = "(.+?)"
NAMED_ESCAPE_WILDCARD = r"\w+"

_ESCAPE_SEQUENCE = re.compile(
    r"\\(?:N\{[^}]*\}|[0-7]{1,3}|x[0-9a-fA-F]{2}|u\{[0-9a-fA-F]{1,6}\}|u[0-9a-fA-F]{4}"
    r"|U[0-9a-fA-F]{8}|\r?\n|.)",
    re.DOTALL,
)
_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "0": "\0", "a": "\a",
                   "b": "\b", "f": "\f", "v": "\v", "e": "\x1b", "s": " "}
_WHITESPACE_FORMS = {"\n": r"\n", "\r": r"\r", "\t": r"\t"}


@dataclass
class Matcher:
    """A synthesized matcher for one format literal."""
    regex: re.Pattern
    pattern: str
    quality: int
    args: List[FormatArgument]


class _PatternBuilder:
    """Accumulates escaped literal text, capture groups and the quality score."""

    def __init__(self):
        self.parts: List[str] = []
        self.quality = 0

    def add_char(self, char: str) -> None:
        if char in _WHITESPACE_FORMS:
            self.parts.append(_WHITESPACE_FORMS[char])
        elif char == " ":
            self.parts.append(" ")
        elif char.isprintable():
            self.parts.append(re.escape(char))
        else:
            self.parts.append(f"\\x{ord(char):02x}" if ord(char) < 0x100
                              else f"\\u{ord(char):04x}" if ord(char) < 0x10000
                              else f"\\U{ord(char):08x}")
        if not char.isspace():
            self.quality += 1

    def add_raw(self, regex_text: str) -> None:
        self.parts.append(regex_text)

    def add_literal(self, text: str, is_raw: bool, strip_indent: bool) -> None:
        if is_raw:
            for char in text:
                self.add_char(char)
            return
        position = 0
        skip_indent = False
        for match in _ESCAPE_SEQUENCE.finditer(text):
            for char in text[position:match.start()]:
                if skip_indent and char.isspace():
                    continue
                skip_indent = False
                self.add_char(char)
            skip_indent = self._add_escape(match.group(0)[1:], strip_indent)
            position = match.end()
        for char in text[position:]:
            if skip_indent and char.isspace():
                continue
            skip_indent = False
            self.add_char(char)

    def _add_escape(self, escape: str, strip_indent: bool) -> bool:
        """Add one backslash escape; True when following indentation is dropped."""
        if escape in ("\n", "\r\n"):
            return strip_indent
        head = escape[0]
        if head == "N" and escape.startswith("N{"):
            self.add_raw(NAMED_ESCAPE_WILDCARD)
        elif head in "01234567" and (head != "0" or len(escape) > 1):
            value = int(escape, 8) & 0xff
            self.add_raw(f"\\x{value:02x}")
            if not chr(value).isspace():
                self.quality += 1
        elif head == "x" and len(escape) == 3:
            self.add_char(chr(int(escape[1:], 16)))
        elif head == "u" and escape.startswith("u{"):
            self.add_char(chr(int(escape[2:-1], 16)))
        elif head in "uU" and len(escape) > 1:
            self.add_char(chr(int(escape[1:], 16)))
        elif head in _SIMPLE_ESCAPES:
            self.add_char(_SIMPLE_ESCAPES[head])
        else:
            self.add_char(head)
        return False

    def pattern(self) -> str:
        return PATTERN_PREFIX + "".join(self.parts) + PATTERN_SUFFIX


def classify_placeholder(match: re.Match) -> Optional[FormatArgument]:
    """
    Classify a placeholder match.

    Returns None when the match is an escape for literal text rather than a
    substitution.
    """
    if match.group("brace") is not None:
        arg = match.group("brace_arg").split(",")[0].strip()
        if not arg:
            return Placeholder()
        if arg.isdigit():
            return Positional(int(arg))
        return Named(arg)
    groups = match.groupdict()
    if groups.get("printf") is not None:
        if groups.get("printf_conv") == "n":
            return None
        if groups.get("printf_name"):
            return Named(groups["printf_name"])
        if groups.get("printf_pos"):
            return Positional(int(groups["printf_pos"]) - 1)
        return Placeholder()
    return None


def _escape_literal(match: re.Match) -> str:
    groups = match.groupdict()
    if groups.get("brace_escape"):
        return groups["brace_escape"][0]
    if groups.get("percent_escape"):
        return "%"
    if groups.get("printf_conv") == "n":
        return "\n"
    return match.group(0)


def build_matcher(text: str, language: SourceLanguage, is_raw: bool = False) -> Optional[Matcher]:
    """
    Build the matcher for one format literal.

    Args:
        text: literal contents without quotes, as written in the source
        language: language of the literal, selects the placeholder syntax
        is_raw: the literal is a raw string, backslashes are not escapes

    Returns:
        A Matcher, or None when the literal holds no literal characters
        besides whitespace and placeholders.
    """
    profile = language.profile
    builder = _PatternBuilder()
    args: List[FormatArgument] = []
    position = 0

    for match in profile.placeholder_regex.finditer(text):
        if not is_raw and match.group(0).startswith("{") \
                and text.endswith(("\\N", "\\u"), 0, match.start()):
            # the braces of a \N{...} or \u{...} escape
            continue
        builder.add_literal(text[position:match.start()], is_raw,
                            profile.strip_continuation_indent)
        argument = classify_placeholder(match)
        if argument is None:
            for char in _escape_literal(match):
                builder.add_char(char)
        else:
            builder.add_raw(CAPTURE)
            args.append(argument)
        position = match.end()
    builder.add_literal(text[position:], is_raw, profile.strip_continuation_indent)

    if builder.quality == 0:
        return None

    pattern = builder.pattern()
    return Matcher(regex=re.compile(pattern), pattern=pattern,
                   quality=builder.quality, args=args)


def build_combined_matcher(patterns: Sequence[str], path: str = "") -> re.Pattern:
    """
    Fold statement patterns into one alternation.

    Each alternative ends with an empty group named ``s<index>`` so that
    ``match.lastgroup`` tells which statement matched first.

    Raises:
        MatcherCapacityError: the patterns are too large to combine
    """
    bodies = []
    size = 0
    for index, pattern in enumerate(patterns):
        body = pattern[len(PATTERN_PREFIX):] if pattern.startswith(PATTERN_PREFIX) else pattern
        size += len(body)
        bodies.append(f"(?:\\A{body}(?P<s{index}>))")
    if size > COMBINED_PATTERN_SIZE_LIMIT:
        raise MatcherCapacityError(
            path, f"{len(bodies)} patterns totalling {size} characters exceed the "
                  f"limit of {COMBINED_PATTERN_SIZE_LIMIT}")
    try:
        return re.compile("|".join(bodies), re.DOTALL)
    except (re.error, OverflowError, RecursionError) as e:
        raise MatcherCapacityError(path, str(e)) from e


def statement_index(match: re.Match) -> int:
    """Index of the statement whose alternative produced a combined match."""
    return int(match.lastgroup[1:])
