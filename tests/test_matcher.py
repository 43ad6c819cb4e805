"""
Unit tests for format literal matcher synthesis.
"""

import unittest

from logsource.errors import MatcherCapacityError
from logsource.matcher import (
    CAPTURE, COMBINED_PATTERN_SIZE_LIMIT, build_combined_matcher, build_matcher,
    statement_index,
)
from logsource.models import Named, Placeholder, Positional, SourceLanguage

RUST = SourceLanguage.RUST
JAVA = SourceLanguage.JAVA
PYTHON = SourceLanguage.PYTHON


class TestBuildMatcher(unittest.TestCase):
    """Test cases for build_matcher."""

    def test_placeholders_only_is_rejected(self):
        """Literals without literal characters cannot discriminate log lines."""
        self.assertIsNone(build_matcher("{} {}", RUST))
        self.assertIsNone(build_matcher("  {}\t", RUST))
        self.assertIsNone(build_matcher("%s %d", JAVA))
        self.assertIsNone(build_matcher("", PYTHON))

    def test_capture_groups_follow_placeholders(self):
        matcher = build_matcher("this won't match i={}; j={}", RUST)

        self.assertIsNotNone(matcher)
        self.assertEqual(matcher.regex.groups, 2)
        self.assertEqual(matcher.args, [Placeholder(), Placeholder()])
        match = matcher.regex.match("this won't match i=1; j=2")
        self.assertEqual(match.groups(), ("1", "2"))

    def test_argument_classification(self):
        matcher = build_matcher("{name} moved {0} to {} ({:>8})", RUST)

        self.assertEqual(matcher.args,
                         [Named("name"), Positional(0), Placeholder(), Placeholder()])

    def test_format_specs(self):
        matcher = build_matcher("value={x:?} index={1:#x}", RUST)
        self.assertEqual(matcher.args, [Named("x"), Positional(1)])

    def test_quality_counts_literal_characters(self):
        matcher = build_matcher("Hello, {name}!", RUST)

        self.assertEqual(matcher.quality, len("Hello,") + len("!"))
        self.assertEqual(matcher.args, [Named("name")])

    def test_pattern_is_anchored(self):
        matcher = build_matcher("Hello from main", RUST)

        self.assertTrue(matcher.pattern.startswith("(?s)\\A"))
        self.assertTrue(matcher.pattern.endswith("\\Z"))
        self.assertIsNotNone(matcher.regex.match("Hello from main"))
        self.assertIsNone(matcher.regex.match("Hello from main!"))
        self.assertIsNone(matcher.regex.match("Oh, Hello from main"))

    def test_trailing_newline_is_not_ignored(self):
        matcher = build_matcher("Failed to load payload", PYTHON)

        self.assertIsNone(matcher.regex.match("Failed to load payload\n"))
        self.assertIsNotNone(build_matcher("Failed to load payload\\n", PYTHON)
                             .regex.match("Failed to load payload\n"))

    def test_regex_metacharacters_are_escaped(self):
        matcher = build_matcher("cost: $5.00 (+tax) [{}]", RUST)

        self.assertIsNotNone(matcher.regex.match("cost: $5.00 (+tax) [x]"))
        self.assertIsNone(matcher.regex.match("cost: $5X00 (+tax) [x]"))

    def test_brace_escapes_are_literal(self):
        matcher = build_matcher("{{literal}} {}", RUST)

        self.assertEqual(matcher.args, [Placeholder()])
        self.assertIsNotNone(matcher.regex.match("{literal} 5"))

    def test_newline_escape_matches_multiline_body(self):
        matcher = build_matcher("line one\\nline two {}", RUST)

        self.assertIn("\\n", matcher.pattern)
        match = matcher.regex.match("line one\nline two 3")
        self.assertEqual(match.group(1), "3")

    def test_placeholder_spans_newlines(self):
        matcher = build_matcher("payload: {}", RUST)
        self.assertEqual(matcher.regex.match("payload: a\nb").group(1), "a\nb")

    def test_rust_continuation_drops_indentation(self):
        matcher = build_matcher("first \\\n            second", RUST)
        self.assertIsNotNone(matcher.regex.match("first second"))

    def test_raw_string_keeps_backslashes(self):
        matcher = build_matcher(r"C:\temp\{}", RUST, is_raw=True)
        self.assertIsNotNone(matcher.regex.match(r"C:\temp\x"))

    def test_octal_escape(self):
        matcher = build_matcher("\\101BC", JAVA)

        self.assertIn("\\x41", matcher.pattern)
        self.assertIsNotNone(matcher.regex.match("ABC"))
        self.assertEqual(matcher.quality, 3)

    def test_unicode_escapes(self):
        self.assertIsNotNone(build_matcher("caf\\u00e9", JAVA).regex.match("café"))
        self.assertIsNotNone(build_matcher("caf\\u{e9}", RUST).regex.match("café"))
        self.assertIsNotNone(build_matcher("caf\\xe9", PYTHON).regex.match("café"))

    def test_named_unicode_escape_is_wildcard(self):
        matcher = build_matcher("caf\\N{LATIN SMALL LETTER E WITH ACUTE} {}", PYTHON)

        self.assertEqual(matcher.args, [Placeholder()])
        self.assertIsNotNone(matcher.regex.match("café open"))

    def test_java_printf(self):
        matcher = build_matcher("Took %d ms (%.1f%%)", JAVA)

        self.assertEqual(matcher.args, [Placeholder(), Placeholder()])
        self.assertEqual(matcher.regex.match("Took 15 ms (12.5%)").groups(), ("15", "12.5"))

    def test_java_printf_positional_and_newline(self):
        matcher = build_matcher("%2$s then %1$s%n", JAVA)

        self.assertEqual(matcher.args, [Positional(1), Positional(0)])
        self.assertIsNotNone(matcher.regex.match("b then a\n"))

    def test_java_message_format(self):
        matcher = build_matcher("Processing {0} items for user {1}", JAVA)
        self.assertEqual(matcher.args, [Positional(0), Positional(1)])

    def test_python_percent_named(self):
        matcher = build_matcher("Upload of %(name)s failed", PYTHON)

        self.assertEqual(matcher.args, [Named("name")])
        self.assertEqual(matcher.regex.match("Upload of a.csv failed").group(1), "a.csv")

    def test_python_format_fields(self):
        matcher = build_matcher("Skipping record in {path!r}", PYTHON)
        self.assertEqual(matcher.args, [Named("path")])

    def test_deterministic(self):
        first = build_matcher("{} saw {name} at %s", PYTHON)
        second = build_matcher("{} saw {name} at %s", PYTHON)

        self.assertEqual(first.pattern, second.pattern)
        self.assertEqual(first.args, second.args)
        self.assertEqual(first.pattern.count(CAPTURE), 3)


class TestCombinedMatcher(unittest.TestCase):
    """Test cases for the per-file combined matcher."""

    def test_identifies_first_matching_statement(self):
        patterns = [build_matcher(text, RUST).pattern
                    for text in ("Hello {}", "Goodbye {}", "Goodbye world")]
        combined = build_combined_matcher(patterns)

        self.assertEqual(statement_index(combined.match("Hello there")), 0)
        self.assertEqual(statement_index(combined.match("Goodbye world")), 1)
        self.assertIsNone(combined.match("Nothing here"))

    def test_combined_alternatives_are_strictly_anchored(self):
        patterns = [build_matcher(text, RUST).pattern for text in ("ready", "shutting down")]
        combined = build_combined_matcher(patterns)

        self.assertEqual(statement_index(combined.match("shutting down")), 1)
        self.assertIsNone(combined.match("ready\n"))
        self.assertIsNone(combined.match("shutting down now"))

    def test_capacity_error(self):
        pattern = build_matcher("x" * 1024, RUST).pattern
        count = COMBINED_PATTERN_SIZE_LIMIT // 1024 + 1

        with self.assertRaises(MatcherCapacityError) as ctx:
            build_combined_matcher([pattern] * count, "big.rs")
        self.assertEqual(ctx.exception.path, "big.rs")


if __name__ == '__main__':
    unittest.main()
