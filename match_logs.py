#!/usr/bin/env python3
"""
CLI tool for mapping runtime log messages back to the source code that
emitted them.

Usage:
    python match_logs.py -d ./src -l server.log -f '^(?P<level>\\w+) (?P<body>.*)$'
"""

import sys
from typing import IO, List, Optional

import click
from loguru import logger
from tqdm import tqdm

from logsource import Cache, JSONLWriter, LogFormat, LogMatcher, LogRef
from logsource.errors import (LogSourceError, NoLogMessagesError, NoLogStatementsError,
                              UnreadableLineError)
from logsource.io_utils import CACHE_DIR_ENV
from logsource.models import LogMapping
from logsource.progress import ProgressListener, ProgressTracker, WorkInfo


class TqdmProgressListener(ProgressListener):
    """Renders progress updates on standard error."""

    def __init__(self):
        self.prefix = ""
        self.bars = {}

    def on_step(self, message: str) -> None:
        tqdm.write(message, file=sys.stderr)

    def on_begin_step(self, message: str) -> None:
        self.prefix = message

    def on_end_step(self, message: str) -> None:
        tqdm.write(f"{self.prefix}... {message}", file=sys.stderr)
        self.prefix = ""

    def on_work_started(self, info: WorkInfo) -> None:
        self.bars[id(info)] = tqdm(total=info.total, unit=f" {info.units}",
                                   desc=self.prefix or None, file=sys.stderr, leave=False)

    def on_work_progress(self, info: WorkInfo, amount: int) -> None:
        bar = self.bars.get(id(info))
        if bar is not None:
            bar.update(amount)

    def on_work_finished(self, info: WorkInfo) -> None:
        bar = self.bars.pop(id(info), None)
        if bar is not None:
            bar.close()


class MessageAccumulator:
    """
    Groups log lines into messages and writes one mapping per message.

    With a log format, a line matching the format starts a new message and
    any other line continues the current one.  Lines before the first match
    are dropped.  Without a format every line is a message.
    """

    def __init__(self, log_matcher: LogMatcher, log_format: Optional[LogFormat],
                 writer: JSONLWriter, limit: Optional[int] = None):
        self.log_matcher = log_matcher
        self.log_format = log_format
        self.writer = writer
        self.limit = limit
        self.lines: List[str] = []
        self.message_count = 0

    def at_limit(self) -> bool:
        return self.limit is not None and self.message_count >= self.limit

    def consume_line(self, line: str) -> None:
        if self.log_format is None:
            self._emit(LogRef.from_line(line))
        elif self.log_format.is_match(line):
            self.flush()
            self.lines = [line]
        elif self.lines:
            self.lines.append(line)

    def flush(self) -> None:
        if not self.lines:
            return
        content = "\n".join(self.lines)
        self.lines = []
        if self.at_limit():
            return
        log_ref = self.log_format.build_log_ref(content)
        if log_ref is not None:
            self._emit(log_ref)

    def eof(self) -> None:
        """
        Finish the stream.

        Raises:
            NoLogMessagesError: a log format was given and never matched
        """
        self.flush()
        if self.log_format is not None and self.message_count == 0:
            raise NoLogMessagesError()

    def _emit(self, log_ref: LogRef) -> None:
        self.message_count += 1
        mapping = self.log_matcher.match_log_statement(log_ref)
        if mapping is None:
            mapping = LogMapping(log_ref=log_ref)
        self.writer.write_mapping(mapping)


def _echo_warnings(warnings) -> None:
    for warning in warnings:
        click.echo(f"warning: {warning}", err=True)


def _read_lines(stream: IO[bytes], start: int):
    """Yield the text, or an UnreadableLineError, of each line after ``start``."""
    for lineno, raw in enumerate(stream):
        if lineno < start:
            continue
        try:
            yield raw.rstrip(b"\r\n").decode("utf-8")
        except UnicodeDecodeError as e:
            yield UnreadableLineError(lineno, e)


@click.command()
@click.option('--source', '-d', 'sources',
              multiple=True,
              type=click.Path(),
              help='Source directory (or file) to map logs onto; repeatable')
@click.option('--log', '-l', 'log_file',
              type=click.Path(exists=True, dir_okay=False),
              help='Log file to read (default: standard input)')
@click.option('--format', '-f', 'log_format',
              help='Regular expression describing the log format; named groups: '
                   'timestamp, thread, level, file, line, method, body')
@click.option('--start', '-s',
              type=click.IntRange(min=0),
              default=0,
              help='First line of the log to use (0 based)')
@click.option('--count', '-c',
              type=click.IntRange(min=0),
              help='Number of log messages to process')
@click.option('--out', '-o', 'output_file',
              type=click.Path(dir_okay=False),
              help='Write JSONL mappings to this file (default: standard output)')
@click.option('--cache-dir',
              envvar=CACHE_DIR_ENV,
              type=click.Path(file_okay=False),
              help='Directory of the source tree cache')
@click.option('--no-cache',
              is_flag=True,
              help='Neither read nor write the source tree cache')
@click.option('--workers', '-w',
              type=click.IntRange(min=1),
              help='Number of parallel workers for extraction and matching')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Print progress information to standard error')
def match_logs(sources: tuple,
               log_file: Optional[str],
               log_format: Optional[str],
               start: int,
               count: Optional[int],
               output_file: Optional[str],
               cache_dir: Optional[str],
               no_cache: bool,
               workers: Optional[int],
               verbose: bool):
    """
    Map log messages back to the statements that emitted them.

    Each message is written as one JSON object with the matched source
    reference, the recovered variables and the resolved exception trace.

    Examples:

    \b
    # Map a log file onto a source tree
    python match_logs.py -d ./src -l app.log

    \b
    # Multi-line messages with a log format
    python match_logs.py -d ./src -l app.log \\
        -f '^\\[(?P<timestamp>[^\\]]+)\\] (?P<level>\\w+) (?P<body>.*)$'
    """
    logger.remove()
    logger.add(lambda message: click.echo(message, err=True, nl=False),
               level="DEBUG" if verbose else "WARNING",
               format="{level}: {message}")

    tracker = ProgressTracker()
    if verbose:
        tracker.subscribe(TqdmProgressListener())

    try:
        compiled_format = LogFormat(log_format) if log_format else None

        with LogMatcher(workers=workers) as log_matcher:
            for source in sources:
                log_matcher.add_root(source)

            cache = None if no_cache else Cache.open(cache_dir)
            if cache is not None:
                _echo_warnings(log_matcher.load_from_cache(cache, tracker))

            _echo_warnings(log_matcher.discover_sources(tracker))
            summary = log_matcher.extract_log_statements(tracker)
            if log_matcher.is_empty():
                raise NoLogStatementsError()
            if verbose:
                click.echo(f"Indexed {log_matcher.statement_count()} log statements", err=True)

            if cache is not None and summary.changed():
                _echo_warnings(log_matcher.cache_to(cache, tracker))

            stream = click.open_file(log_file or '-', 'rb')
            with stream, JSONLWriter(output_file or click.get_text_stream('stdout')) as writer:
                accumulator = MessageAccumulator(log_matcher, compiled_format, writer, count)
                for line in _read_lines(stream, start):
                    if accumulator.at_limit():
                        break
                    if isinstance(line, UnreadableLineError):
                        accumulator.flush()
                        writer.write_error(line)
                    else:
                        accumulator.consume_line(line)
                accumulator.eof()

    except KeyboardInterrupt:
        click.echo("Matching cancelled by user", err=True)
        sys.exit(1)
    except LogSourceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    match_logs()
