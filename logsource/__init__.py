"""
Log-to-Source Correlation

A Python library that maps runtime log messages back to the logging
statements in Rust, Java and Python code bases that produced them, recovers
the values of their placeholders and resolves embedded exception traces.
"""

__version__ = "1.0.0"
__author__ = "logsource developers"

from .correlator import ExtractSummary, LogMatcher, SourceTree, extract_variables
from .errors import LogSourceError
from .extractor import StatementExtractor, extract_statements
from .io_utils import Cache, JSONLWriter
from .log_format import LogFormat, detect_trace
from .matcher import build_matcher
from .models import LogMapping, LogRef, SourceLanguage, SourceRef
from .progress import ProgressListener, ProgressTracker
from .source_hier import SourceHierTree

__all__ = [
    "Cache",
    "ExtractSummary",
    "JSONLWriter",
    "LogFormat",
    "LogMapping",
    "LogMatcher",
    "LogRef",
    "LogSourceError",
    "ProgressListener",
    "ProgressTracker",
    "SourceHierTree",
    "SourceLanguage",
    "SourceRef",
    "SourceTree",
    "StatementExtractor",
    "build_matcher",
    "detect_trace",
    "extract_statements",
    "extract_variables",
]
