"""
Per-language rules for recognizing logging calls and their format strings.

Each supported language is described by one LanguageProfile.  Adding a
language means registering one more entry in LANGUAGE_PROFILES.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Pattern, Tuple

from .models import SourceLanguage


# Placeholder syntaxes.  Every alternative uses the same group names so that
# matcher synthesis can classify a match without knowing the language.
_BRACE_ESCAPE = r"(?P<brace_escape>\{\{|\}\})"
_BRACE = r"(?P<brace>\{(?P<brace_arg>[^{}:!]*)(?:[!:][^{}]*)?\})"
_PERCENT_ESCAPE = r"(?P<percent_escape>%%)"
_PRINTF = (
    r"(?P<printf>%(?:(?P<printf_pos>[1-9]\d*)\$|\((?P<printf_name>[^)]+)\))?"
    r"[-#+ 0,(<]*\d*(?:\.\d+)?(?:hh|h|ll|l|L|z|j|t)?(?P<printf_conv>[diouxXeEfFgGaAcsSrbBhHn]))"
)

_QUOTED = re.compile(
    r'^(?P<prefix>[A-Za-z]*)(?P<hashes>#*)(?P<quote>"""|\'\'\'|"|\')(?P<content>.*)'
    r'(?P=quote)(?P=hashes)$',
    re.DOTALL,
)


def _text(node) -> str:
    return node.text.decode("utf-8", errors="replace") if node is not None else ""


@dataclass(frozen=True)
class LanguageProfile:
    """
    Everything the extractor needs to know about one language.

    Attributes:
        grammar: tree_sitter_languages grammar name
        extensions: file suffixes handled by this profile
        query: structural query capturing candidate format literals as @log
        call_types: node types of call expressions
        argument_list_types: node types holding a call's arguments
        receiver_pattern: receiver (object/macro path) of a logging call
        method_pattern: method name of a logging call, None for macros
        format_calls: calls whose literal counts when nested in a logging call
        identifiers: lowercased argument texts that are never variables
        placeholder_regex: combined placeholder syntax of the language
        function_types: node type -> field holding the enclosing construct name
        top_level_name: name used when a statement is outside any construct
        strip_continuation_indent: drop indentation after a backslash-newline
        ignored_argument: argument texts dropped from a statement's vars
    """
    grammar: str
    extensions: FrozenSet[str]
    query: str
    call_types: FrozenSet[str]
    argument_list_types: FrozenSet[str]
    receiver_pattern: Pattern
    method_pattern: Optional[Pattern]
    format_calls: FrozenSet[str]
    identifiers: FrozenSet[str]
    placeholder_regex: Pattern
    function_types: Dict[str, str] = field(default_factory=dict)
    top_level_name: str = ""
    strip_continuation_indent: bool = False
    ignored_argument: Optional[Pattern] = None

    def unquote(self, text: str) -> Tuple[str, bool]:
        """Strip prefix and quotes from a literal, returning (content, is_raw)."""
        match = _QUOTED.match(text)
        if not match:
            return text, False
        return match.group("content"), "r" in match.group("prefix").lower()

    def is_logging_call(self, node: Any) -> bool:
        """Check if a call node invokes one of the language's loggers."""
        if node is None or node.type not in self.call_types:
            return False
        receiver, method = self._call_names(node)
        if not self.receiver_pattern.search(receiver):
            return False
        if self.method_pattern is None:
            return True
        return bool(self.method_pattern.fullmatch(method))

    def owning_logging_call(self, literal: Any) -> Optional[Any]:
        """
        Find the logging call a literal is a direct argument of.

        A literal passed to a formatting call (``String.format``) that is
        itself the argument of a logging call belongs to the outer call.
        """
        call = self._call_of_argument(literal)
        if call is None:
            return None
        if self.is_logging_call(call):
            return call
        receiver, method = self._call_names(call)
        if f"{receiver}.{method}" in self.format_calls:
            outer = self._call_of_argument(call)
            if self.is_logging_call(outer):
                return call
        return None

    def is_ignored_argument(self, text: str) -> bool:
        if text.lower() in self.identifiers:
            return True
        return bool(self.ignored_argument and self.ignored_argument.match(text))

    def enclosing_name(self, node: Any) -> str:
        """Name of the nearest enclosing function, method or class."""
        current = node.parent
        while current is not None:
            field_name = self.function_types.get(current.type)
            if field_name:
                name_node = current.child_by_field_name(field_name)
                if name_node is not None:
                    return _text(name_node)
            current = current.parent
        return self.top_level_name

    def _call_of_argument(self, node: Any) -> Optional[Any]:
        parent = node.parent
        if parent is None or parent.type not in self.argument_list_types:
            return None
        call = parent.parent
        if call is None or call.type not in self.call_types:
            return None
        return call

    def _call_names(self, node: Any) -> Tuple[str, str]:
        if node.type == "macro_invocation":
            return _text(node.child_by_field_name("macro")), ""
        if node.type == "method_invocation":
            return (_text(node.child_by_field_name("object")),
                    _text(node.child_by_field_name("name")))
        function = node.child_by_field_name("function")
        if function is not None and function.type == "attribute":
            return (_text(function.child_by_field_name("object")),
                    _text(function.child_by_field_name("attribute")))
        return "", _text(function)


RUST_PROFILE = LanguageProfile(
    grammar="rust",
    extensions=frozenset({".rs"}),
    query="""
        (macro_invocation
            macro: (_)
            (token_tree [(string_literal) (raw_string_literal)] @log))
    """,
    call_types=frozenset({"macro_invocation"}),
    argument_list_types=frozenset({"token_tree"}),
    receiver_pattern=re.compile(
        r"^(?:(?:log|tracing)::)?(?:trace|debug|info|warn|error|log"
        r"|println|eprintln|print|eprint|panic)$"
    ),
    method_pattern=None,
    format_calls=frozenset(),
    identifiers=frozenset({"debug", "info", "warn"}),
    placeholder_regex=re.compile("|".join([_BRACE_ESCAPE, _BRACE])),
    function_types={"function_item": "name"},
    strip_continuation_indent=True,
)

JAVA_PROFILE = LanguageProfile(
    grammar="java",
    extensions=frozenset({".java"}),
    query="""
        (method_invocation
            arguments: (argument_list (string_literal) @log))
    """,
    call_types=frozenset({"method_invocation"}),
    argument_list_types=frozenset({"argument_list"}),
    receiver_pattern=re.compile(r"^(?:this\.)?(?:log|logger|LOG|LOGGER|Log|Logger)$"),
    method_pattern=re.compile(
        r"trace|debug|info|warn|warning|error|fine|finer|finest|config|severe|log"
    ),
    format_calls=frozenset({"String.format"}),
    identifiers=frozenset({"logger", "log", "fine", "debug", "info", "warn", "trace"}),
    placeholder_regex=re.compile("|".join([_BRACE, _PERCENT_ESCAPE, _PRINTF])),
    function_types={
        "method_declaration": "name",
        "constructor_declaration": "name",
        "class_declaration": "name",
    },
)

PYTHON_PROFILE = LanguageProfile(
    grammar="python",
    extensions=frozenset({".py"}),
    query="""
        (call
            function: (attribute)
            arguments: (argument_list (string) @log))
    """,
    call_types=frozenset({"call"}),
    argument_list_types=frozenset({"argument_list"}),
    receiver_pattern=re.compile(r"(?:^|\.)_*(?:log|logger|logging|LOG|LOGGER)$"),
    method_pattern=re.compile(r"debug|info|warning|warn|error|critical|exception|fatal|log"),
    format_calls=frozenset(),
    identifiers=frozenset({"logger", "log", "logging"}),
    placeholder_regex=re.compile(
        "|".join([_BRACE_ESCAPE, _BRACE, _PERCENT_ESCAPE, _PRINTF])
    ),
    function_types={"function_definition": "name", "class_definition": "name"},
    top_level_name="<module>",
    ignored_argument=re.compile(r"^(?:exc_info|stack_info|stacklevel|extra)\s*="),
)


LANGUAGE_PROFILES: Dict[SourceLanguage, LanguageProfile] = {
    SourceLanguage.RUST: RUST_PROFILE,
    SourceLanguage.JAVA: JAVA_PROFILE,
    SourceLanguage.PYTHON: PYTHON_PROFILE,
}
