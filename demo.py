#!/usr/bin/env python3
"""
Demo script for the log-to-source correlation system.
"""

import shutil
import tempfile
from pathlib import Path

from logsource import LogFormat, LogMatcher, LogRef


def create_sample_sources(root: Path):
    """Write a small multi-language project for demonstration."""
    (root / "com" / "example").mkdir(parents=True)
    (root / "com" / "example" / "OrderService.java").write_text('''
package com.example;

public class OrderService {
    private static final Logger log = LoggerFactory.getLogger(OrderService.class);

    public void processOrder(String orderId, String userId) {
        log.info("Processing order {} for user {}", orderId, userId);
        try {
            charge(orderId);
        } catch (Exception e) {
            log.error("Payment failed for order {}", orderId, e);
        }
    }

    private void charge(String orderId) {
        throw new IllegalStateException("card declined");
    }
}
''')

    (root / "worker.rs").write_text('''
fn main() {
    info!("Worker pool started with {} threads", 4);
    for i in 0..3 {
        run(i);
    }
}

fn run(job: u32) {
    debug!("Job {job} finished in {}ms", 12);
}
''')

    (root / "ingest.py").write_text('''
import logging

logger = logging.getLogger(__name__)


def ingest(path, rows):
    logger.info("Ingested %d rows from %s", rows, path)
    logger.warning(f"Skipping malformed record in {path}")
''')


def create_sample_logs():
    """Sample log messages for matching (one multi-line message with a trace)."""
    return [
        "2023-10-15 14:30:00 INFO  [main] Worker pool started with 4 threads",
        "2023-10-15 14:30:01 DEBUG [main] Job 2 finished in 12ms",
        "2023-10-15 14:30:02 INFO  [http-1] Processing order A-17 for user alice",
        "2023-10-15 14:30:03 ERROR [http-1] Payment failed for order A-17\n"
        "java.lang.IllegalStateException: card declined\n"
        "\tat com.example.OrderService.charge(OrderService.java:17)\n"
        "\tat com.example.OrderService.processOrder(OrderService.java:10)",
        "2023-10-15 14:30:04 INFO  [etl] Ingested 120 rows from /data/a.csv",
        "2023-10-15 14:30:05 INFO  [etl] Some unrelated log message",
    ]


LOG_FORMAT = r"^(?<timestamp>\S+ \S+) (?<level>\w+)\s+\[(?<thread>[^\]]+)\] (?<body>.*)$"


def main():
    """Run the demo."""
    print("Log-to-Source Correlation Demo")
    print("=" * 50)

    temp_dir = Path(tempfile.mkdtemp())
    print(f"Working in temporary directory: {temp_dir}")

    try:
        create_sample_sources(temp_dir)
        print("Created sample Java, Rust and Python sources")

        log_format = LogFormat(LOG_FORMAT)
        with LogMatcher(workers=1) as log_matcher:
            log_matcher.add_root(temp_dir)
            for warning in log_matcher.discover_sources():
                print(f"  warning: {warning}")
            summary = log_matcher.extract_log_statements()
            print(f"\nIndexed {log_matcher.statement_count()} statements "
                  f"from {summary.added} files")

            matched_count = 0
            for i, message in enumerate(create_sample_logs(), 1):
                log_ref = log_format.build_log_ref(message) or LogRef.from_line(message)
                mapping = log_matcher.match_log_statement(log_ref)

                print(f"\n  {i}. Log: {message.splitlines()[0]}")
                if mapping is None or mapping.src_ref is None:
                    print("     No match found")
                    continue

                matched_count += 1
                src_ref = mapping.src_ref
                print(f"     Match: {src_ref.text}")
                print(f"     Source: {Path(src_ref.source_path).name}:{src_ref.line_no} "
                      f"in {src_ref.name or '<top level>'} (quality {src_ref.quality})")
                for pair in mapping.variables:
                    print(f"     {pair.expr} = {pair.value}")
                for call_site in mapping.exception_trace:
                    print(f"     at {call_site.name} "
                          f"{Path(call_site.source_path).name}:{call_site.line_no}")

        print(f"\nMatched {matched_count} of {len(create_sample_logs())} messages")

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)
        print("\nCleaned up temporary directory")


if __name__ == '__main__':
    main()
