"""
Log-to-source correlation.

LogMatcher owns the source roots, keeps the statement index of every root
up to date and matches log messages against it.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger

from .errors import (CacheLoadError, CacheMissError, CacheSaveError, RootOverlapError,
                     SourceAccessError, SourceReadError)
from .extractor import StatementExtractor
from .io_utils import Cache
from .log_format import FRAME_PATTERNS
from .matcher import statement_index
from .models import (CallSite, LogMapping, LogRef, Named, Positional, SourceFileID,
                     SourceLanguage, SourceRef, StackTrace, StatementsInFile, VariablePair)
from .progress import ProgressTracker
from .source_hier import DeletedFile, NewFile, SourceHierTree

UNKNOWN_VARIABLE = "<unknown>"


@dataclass
class SourceTree:
    """A source root: its hierarchy snapshot and the statements of its files."""
    tree: SourceHierTree
    files_with_statements: Dict[SourceFileID, StatementsInFile] = field(default_factory=dict)

    def statement_count(self) -> int:
        return sum(len(s.log_statements) for s in self.files_with_statements.values())


@dataclass
class ExtractSummary:
    deleted: int = 0
    added: int = 0
    failed: int = 0
    errors: List[SourceReadError] = field(default_factory=list, repr=False)

    def changed(self) -> bool:
        return bool(self.deleted or self.added)


def extract_variables(body: str, src_ref: SourceRef) -> List[VariablePair]:
    """
    Pair each value captured from ``body`` with the expression that produced it.

    Named placeholders use their own name, positional ones the call-site
    argument at their index and anonymous ones the next unused argument.
    """
    match = src_ref.captures(body)
    if match is None:
        return []

    pairs = []
    next_placeholder = 0
    for value, arg in zip(match.groups(), src_ref.args):
        if isinstance(arg, Named):
            expr = arg.name
        elif isinstance(arg, Positional):
            expr = src_ref.vars[arg.index] if arg.index < len(src_ref.vars) else UNKNOWN_VARIABLE
        else:
            if next_placeholder < len(src_ref.vars):
                expr = src_ref.vars[next_placeholder]
            else:
                expr = UNKNOWN_VARIABLE
            next_placeholder += 1
        pairs.append(VariablePair(expr=expr, value=value))
    return pairs


def matching_statements(statements: StatementsInFile, body: str) -> List[SourceRef]:
    """
    Statements of one file whose matcher accepts ``body``, in file order.

    The combined matcher rejects most files with a single search and tells
    which statement matched first; only the statements after it are tried
    one by one.
    """
    if statements.matcher is None:
        return []
    match = statements.matcher.match(body)
    if match is None:
        return []
    first = statement_index(match)
    hits = [statements.log_statements[first]]
    hits.extend(s for s in statements.log_statements[first + 1:] if s.captures(body))
    return hits


def _best_in_file(statements: StatementsInFile, body: str) -> Optional[SourceRef]:
    hits = matching_statements(statements, body)
    if not hits:
        return None
    return max(hits, key=lambda s: s.quality)


def _overlaps(path: Path, other: Path) -> bool:
    try:
        path.relative_to(other)
        return True
    except ValueError:
        pass
    try:
        other.relative_to(path)
        return True
    except ValueError:
        return False


class LogMatcher:
    """
    Correlates log messages with the logging statements of one or more
    source roots.

    Args:
        workers: size of the extraction and matching pools
    """

    def __init__(self, workers: Optional[int] = None):
        self.roots: Dict[Path, SourceTree] = {}
        self.workers = workers or min(32, (os.cpu_count() or 1) + 4)
        self.extractor = StatementExtractor(self.workers)
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "LogMatcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def add_root(self, path: Union[str, Path]) -> Path:
        """
        Register a source root.

        Raises:
            RootOverlapError: the path is inside, or contains, a known root
        """
        root = Path(os.path.abspath(path))
        for existing in self.roots:
            if _overlaps(root, existing):
                raise RootOverlapError(root, existing)
        self.roots[root] = SourceTree(SourceHierTree(root))
        return root

    def load_from_cache(self, cache: Cache, tracker: Optional[ProgressTracker] = None
                        ) -> List[CacheLoadError]:
        """Restore the trees and statements of every root found in the cache."""
        tracker = tracker or ProgressTracker()
        errors = []
        tracker.begin_step("Loading cache")
        for root in list(self.roots):
            try:
                cached = cache.load(root)
            except CacheMissError as e:
                logger.debug("{}", e)
                continue
            except CacheLoadError as e:
                errors.append(e)
                continue
            if not isinstance(cached, SourceTree):
                errors.append(CacheLoadError(root, "unexpected cache entry type"))
                continue
            self.roots[root] = cached
        tracker.end_step("Loading cache")
        return errors

    def cache_to(self, cache: Cache, tracker: Optional[ProgressTracker] = None
                 ) -> List[CacheSaveError]:
        tracker = tracker or ProgressTracker()
        errors = []
        tracker.begin_step("Saving cache")
        for root, source_tree in self.roots.items():
            try:
                cache.save(root, source_tree)
            except CacheSaveError as e:
                errors.append(e)
        tracker.end_step("Saving cache")
        return errors

    def discover_sources(self, tracker: Optional[ProgressTracker] = None
                         ) -> List[SourceAccessError]:
        """Sync every root with the file system; access errors are returned."""
        tracker = tracker or ProgressTracker()
        if not self.roots:
            return []
        tracker.begin_step("Finding source code")
        trees = [source_tree.tree for source_tree in self.roots.values()]
        with ThreadPoolExecutor(max_workers=min(self.workers, len(trees))) as executor:
            results = list(executor.map(lambda tree: tree.sync(), trees))
        tracker.end_step("Finding source code")
        return [error for errors in results for error in errors]

    def extract_log_statements(self, tracker: Optional[ProgressTracker] = None
                               ) -> ExtractSummary:
        """Apply the pending scan events of every root to the statement index."""
        tracker = tracker or ProgressTracker()
        summary = ExtractSummary()
        for root, source_tree in self.roots.items():
            work = []
            for event in source_tree.tree.scan():
                if isinstance(event, DeletedFile):
                    source_tree.files_with_statements.pop(event.id, None)
                    summary.deleted += 1
                elif isinstance(event, NewFile):
                    work.append((event.path, event.info))
            if not work:
                continue

            tracker.step(f"Extracting log statements from {root}")
            results, errors = self.extractor.extract_all(work, tracker)
            for statements in results:
                source_tree.files_with_statements[statements.id] = statements
            summary.added += len(work)
            summary.failed += len(errors)
            summary.errors.extend(errors)
        logger.debug("Extraction summary: {}", summary)
        return summary

    def is_empty(self) -> bool:
        return self.statement_count() == 0

    def statement_count(self) -> int:
        return sum(source_tree.statement_count() for source_tree in self.roots.values())

    def match_log_statement(self, log_ref: LogRef) -> Optional[LogMapping]:
        """
        Find the statement that most likely produced a log message.

        Returns:
            A LogMapping with the statement, its variables and the resolved
            exception trace, or None when there is neither a statement nor a
            resolved stack frame.
        """
        details = log_ref.details
        body = log_ref.body
        src_ref = None
        if details is not None and details.file:
            src_ref = self._match_with_hint(body, details.file, details.lineno)
        if src_ref is None:
            src_ref = self._match_everywhere(body)

        variables = extract_variables(body, src_ref) if src_ref is not None else []
        exception_trace = []
        if details is not None and details.trace is not None:
            exception_trace = self.resolve_exception_trace(details.trace)

        if src_ref is None and not exception_trace:
            return None
        return LogMapping(log_ref=log_ref, src_ref=src_ref, variables=variables,
                          exception_trace=exception_trace)

    def resolve_exception_trace(self, trace: StackTrace) -> List[CallSite]:
        """Resolve every frame of a trace to a source location; unknown frames are skipped."""
        pattern = FRAME_PATTERNS.get(trace.language)
        if pattern is None:
            return []
        call_sites = []
        for frame in pattern.finditer(trace.content):
            line_no = int(frame.group("line"))
            if trace.language == SourceLanguage.JAVA:
                parts = frame.group("qualified").split(".")
                name = parts[-1]
                path = "/".join(parts[:-2] + [frame.group("file")])
            else:
                name = frame.group("name").strip()
                path = frame.group("path")
            call_site = self._resolve_frame(path, name, line_no)
            if call_site is not None:
                call_sites.append(call_site)
        return call_sites

    def _resolve_frame(self, path: str, name: str, line_no: int) -> Optional[CallSite]:
        for source_tree in self.roots.values():
            found = source_tree.tree.find_file(path)
            if found:
                actual_path, info = found[0]
                return CallSite(name=name, source_path=str(actual_path),
                                language=info.language, line_no=line_no)
        return None

    def _match_with_hint(self, body: str, file_hint: str,
                         lineno: Optional[int]) -> Optional[SourceRef]:
        candidates: List[SourceRef] = []
        for source_tree in self.roots.values():
            for statements in source_tree.files_with_statements.values():
                if file_hint in statements.path:
                    candidates.extend(matching_statements(statements, body))
        if not candidates:
            return None

        def rank(item):
            index, src_ref = item
            on_line = lineno is not None and src_ref.line_no <= lineno <= src_ref.end_line_no
            return on_line, src_ref.quality, -index

        return max(enumerate(candidates), key=rank)[1]

    def _match_everywhere(self, body: str) -> Optional[SourceRef]:
        files = [statements for source_tree in self.roots.values()
                 for statements in source_tree.files_with_statements.values()]
        if not files:
            return None
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.workers)

        best = None
        for hit in self._executor.map(partial(_best_in_file, body=body), files):
            if hit is not None and (best is None or hit.quality > best.quality):
                best = hit
        return best
