"""
Logging statement extraction.

Parses source files, finds logging calls through the language profile query
and turns each format literal into a SourceRef with its synthesized matcher.
"""

import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Tuple, Union

from loguru import logger

from .errors import MatcherCapacityError, SourceReadError
from .matcher import build_combined_matcher, build_matcher
from .models import SourceFileInfo, SourceLanguage, SourceRef, StatementsInFile
from .source_query import LITERAL, QueryResult, SourceQuery

# Files handed to the worker pool at a time; bounds the results held in memory.
EXTRACTION_CHUNK_SIZE = 256

ExtractionWork = Tuple[Path, SourceFileInfo]


def _build_source_ref(path: str, language: SourceLanguage,
                      result: QueryResult) -> Optional[SourceRef]:
    content, is_raw = language.profile.unquote(result.text)
    matcher = build_matcher(content, language, is_raw)
    if matcher is None:
        return None
    return SourceRef(
        source_path=path,
        language=language,
        line_no=result.start_point[0] + 1,
        end_line_no=result.end_point[0] + 1,
        column=result.start_point[1],
        name=result.name,
        text=result.text,
        quality=matcher.quality,
        pattern=matcher.pattern,
        matcher=matcher.regex,
        args=matcher.args,
    )


def extract_statements(path: Union[str, Path], info: SourceFileInfo,
                       source: Optional[bytes] = None) -> Optional[StatementsInFile]:
    """
    Extract the logging statements of one file.

    Args:
        path: path of the file, recorded in every SourceRef
        info: language and identifier of the file
        source: file contents; read from ``path`` when omitted

    Returns:
        The statements of the file, or None when it has none.

    Raises:
        SourceReadError: the file could not be read
    """
    path = str(path)
    if source is None:
        try:
            source = Path(path).read_bytes()
        except OSError as e:
            raise SourceReadError(Path(path), e) from e

    profile = info.language.profile
    statements: List[SourceRef] = []
    current: Optional[SourceRef] = None
    for result in SourceQuery(source, info.language).logging_captures():
        if result.kind == LITERAL:
            current = _build_source_ref(path, info.language, result)
            if current is not None:
                statements.append(current)
        elif current is not None and not profile.is_ignored_argument(result.text):
            current.vars.append(result.text)

    if not statements:
        return None

    try:
        matcher = build_combined_matcher([s.pattern for s in statements], path)
    except MatcherCapacityError as e:
        logger.warning("{}; statements in this file will not be matched", e)
        matcher = None

    logger.debug("Extracted {} statements from {}", len(statements), path)
    return StatementsInFile(path=path, id=info.id, log_statements=statements,
                            matcher=matcher)


def _extract_one(path: str, info: SourceFileInfo):
    """Worker entry point (module level so it can be pickled)."""
    try:
        return extract_statements(path, info), None
    except SourceReadError as e:
        return None, e


class StatementExtractor:
    """
    Extracts statements from many files, in parallel when workers > 1.
    """

    def __init__(self, workers: Optional[int] = None):
        self.workers = workers or min(32, (os.cpu_count() or 1) + 4)

    def extract_all(self, work: List[ExtractionWork], tracker=None
                    ) -> Tuple[List[StatementsInFile], List[SourceReadError]]:
        """
        Extract every file in ``work``.

        Returns:
            The statement sets in the order of ``work`` and the read errors.
        """
        results: List[Optional[StatementsInFile]] = [None] * len(work)
        errors: List[SourceReadError] = []
        guard = tracker.doing_work(len(work), "files") if tracker else None

        def record(index: int, outcome) -> None:
            statements, error = outcome
            results[index] = statements
            if error is not None:
                logger.warning("{}", error)
                errors.append(error)
            if guard is not None:
                guard.inc()

        try:
            if self.workers <= 1 or len(work) <= 1:
                for index, (path, info) in enumerate(work):
                    record(index, self._run_inline(path, info))
            else:
                self._run_parallel(work, record)
        finally:
            if guard is not None:
                guard.close()

        return [r for r in results if r is not None], errors

    @staticmethod
    def _run_inline(path: Path, info: SourceFileInfo):
        try:
            return _extract_one(str(path), info)
        except Exception as e:
            return None, SourceReadError(path, e)

    def _run_parallel(self, work: List[ExtractionWork], record) -> None:
        with ProcessPoolExecutor(max_workers=self.workers) as executor:
            for start in range(0, len(work), EXTRACTION_CHUNK_SIZE):
                chunk = work[start:start + EXTRACTION_CHUNK_SIZE]
                future_to_index = {
                    executor.submit(_extract_one, str(path), info): start + offset
                    for offset, (path, info) in enumerate(chunk)
                }
                for future in as_completed(future_to_index):
                    index = future_to_index[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        outcome = (None, SourceReadError(work[index][0], e))
                    record(index, outcome)
