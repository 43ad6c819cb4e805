"""
Structural queries over parsed source code.

Wraps tree_sitter_languages so the rest of the package only sees plain
QueryResult records: the format literal of each logging call followed by
the argument expressions passed after it.
"""

from dataclasses import dataclass
from typing import List, Set, Tuple

import tree_sitter_languages

from .models import SourceLanguage

LITERAL = "literal"
ARGUMENT = "argument"

_SEPARATORS = frozenset({",", ")", "]", "}"})
_SKIPPED_NODES = frozenset({"comment", "line_comment", "block_comment"})


@dataclass
class QueryResult:
    """One capture: a format literal or an argument expression."""
    kind: str
    start_byte: int
    end_byte: int
    start_point: Tuple[int, int]
    end_point: Tuple[int, int]
    text: str
    name: str


class SourceQuery:
    """
    A parsed source buffer together with its language profile.

    Args:
        source: file contents as bytes or text
        language: language of the file, selects grammar and query
    """

    def __init__(self, source, language: SourceLanguage):
        if isinstance(source, str):
            source = source.encode("utf-8")
        self.source: bytes = source
        self.language = language
        self.profile = language.profile
        self.parser = tree_sitter_languages.get_parser(self.profile.grammar)
        self.tree = self.parser.parse(self.source)

    def text(self, start_byte: int, end_byte: int) -> str:
        return self.source[start_byte:end_byte].decode("utf-8", errors="replace")

    def logging_captures(self) -> List[QueryResult]:
        """
        Run the language's logging-call query.

        Returns:
            QueryResults in document order.  Each ``literal`` result is
            followed by the ``argument`` results of the same call.
        """
        ts_language = tree_sitter_languages.get_language(self.profile.grammar)
        query = ts_language.query(self.profile.query)
        captures = query.captures(self.tree.root_node)

        literals = {}
        for node, capture_name in captures:
            if capture_name == "log":
                literals.setdefault((node.start_byte, node.end_byte), node)

        results: List[QueryResult] = []
        seen_calls: Set[Tuple[int, int]] = set()
        for key in sorted(literals):
            literal = literals[key]
            call = self.profile.owning_logging_call(literal)
            if call is None:
                continue
            call_key = (call.start_byte, call.end_byte)
            if call_key in seen_calls:
                continue
            seen_calls.add(call_key)

            name = self.profile.enclosing_name(literal)
            results.append(QueryResult(
                kind=LITERAL,
                start_byte=literal.start_byte,
                end_byte=literal.end_byte,
                start_point=tuple(literal.start_point),
                end_point=tuple(literal.end_point),
                text=self.text(literal.start_byte, literal.end_byte),
                name=name,
            ))
            results.extend(self._arguments_after(literal, name))
        return results

    def _arguments_after(self, literal, name: str) -> List[QueryResult]:
        """Split the siblings following a literal on commas."""
        arguments = []
        group = []
        sibling = literal.next_sibling
        while sibling is not None:
            if sibling.type in _SEPARATORS:
                if group:
                    arguments.append(self._argument(group, name))
                group = []
                if sibling.type != ",":
                    break
            elif sibling.type not in _SKIPPED_NODES:
                group.append(sibling)
            sibling = sibling.next_sibling
        if group:
            arguments.append(self._argument(group, name))
        return arguments

    def _argument(self, nodes, name: str) -> QueryResult:
        first, last = nodes[0], nodes[-1]
        return QueryResult(
            kind=ARGUMENT,
            start_byte=first.start_byte,
            end_byte=last.end_byte,
            start_point=tuple(first.start_point),
            end_point=tuple(last.end_point),
            text=self.text(first.start_byte, last.end_byte).strip(),
            name=name,
        )
