"""
Incremental snapshot of a source directory hierarchy.

A SourceHierTree mirrors a directory subtree in memory.  ``sync()`` compares
the snapshot with the file system one directory listing at a time and
``scan()`` reports the files that appeared or disappeared since the last
scan.
"""

import os
import stat
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from loguru import logger

from .errors import SourceAccessError
from .models import SourceFileID, SourceFileInfo, SourceLanguage

# Version control and editor metadata directories that are never entered.
SKIPPED_DIRECTORIES = frozenset({".git", ".hg", ".svn", ".bzr", ".idea", ".vscode"})

Metadata = Union[os.stat_result, OSError]


@dataclass
class FileContent:
    info: SourceFileInfo
    last_modified_time: int


@dataclass
class UnsupportedFileContent:
    pass


@dataclass
class DirectoryContent:
    entries: Dict[str, "SourceHierNode"] = field(default_factory=dict)


@dataclass
class ErrorContent:
    cause: SourceAccessError


@dataclass
class UnknownContent:
    pass


SourceHierContent = Union[FileContent, UnsupportedFileContent, DirectoryContent,
                          ErrorContent, UnknownContent]


@dataclass
class SourceHierNode:
    """
    A node in the tree.

    ``last_scan_time`` is None until the node has been visited by a scan
    after its last content change.
    """
    content: SourceHierContent = field(default_factory=UnknownContent)
    last_scan_time: Optional[float] = None


@dataclass(frozen=True)
class NewFile:
    path: Path
    info: SourceFileInfo


@dataclass(frozen=True)
class DeletedFile:
    path: Path
    id: SourceFileID


ScanEvent = Union[NewFile, DeletedFile]


@dataclass
class SourceHierStats:
    files: int = 0
    unsupported_files: int = 0
    directories: int = 0
    errors: int = 0


def _stat(path: Path, follow_symlinks: bool = True) -> Metadata:
    try:
        return os.stat(path, follow_symlinks=follow_symlinks)
    except OSError as e:
        return e


def _list_directory(path: Path) -> Dict[str, Metadata]:
    """Shallow listing of a directory: entry name -> metadata (or the error)."""
    entries: Dict[str, Metadata] = {}
    with os.scandir(path) as iterator:
        for entry in iterator:
            if entry.name in SKIPPED_DIRECTORIES and entry.is_dir(follow_symlinks=False):
                continue
            try:
                entries[entry.name] = entry.stat(follow_symlinks=False)
            except OSError as e:
                entries[entry.name] = e
    return entries


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


class TreeScanner:
    """
    One-shot iterator over the changes recorded in a tree.

    Pending deletions are taken from the tree when the scanner is created, so
    they are reported exactly once even if the scanner is never exhausted.
    """

    def __init__(self, root_path: Path, root_node: SourceHierNode,
                 deleted_events: List[DeletedFile]):
        self._deleted_events = deleted_events
        self._stack: List[Tuple[Path, SourceHierNode]] = [(root_path, root_node)]

    def __iter__(self) -> Iterator[ScanEvent]:
        return self

    def __next__(self) -> ScanEvent:
        if self._deleted_events:
            return self._deleted_events.pop(0)
        while self._stack:
            path, node = self._stack.pop()
            last_scan_time = node.last_scan_time
            node.last_scan_time = time.time()
            content = node.content
            if isinstance(content, FileContent):
                if last_scan_time is None:
                    return NewFile(path, content.info)
            elif isinstance(content, DirectoryContent):
                for name in reversed(list(content.entries)):
                    self._stack.append((path / name, content.entries[name]))
        raise StopIteration


class SourceHierTree:
    """
    Tracks the state of a source code hierarchy.

    File identifiers are assigned from a counter owned by the tree, so the
    same file keeps its identifier across syncs until it changes or is
    removed, and identifiers are never reused.
    """

    def __init__(self, root_path: Union[str, Path]):
        self.root_path = Path(root_path)
        self.root_node = SourceHierNode()
        self._next_id = 0
        self._deleted_events: List[DeletedFile] = []
        self._stats = SourceHierStats()

    @classmethod
    def from_path(cls, root_path: Union[str, Path]) -> "SourceHierTree":
        """Create an unpopulated tree for the given root."""
        return cls(root_path)

    def sync(self) -> List[SourceAccessError]:
        """
        Synchronize the tree with the file system.

        Files are compared by modification time only.  Directories are listed
        once and their children are synced, created or reported as deleted.

        Returns:
            The access errors found during this sync.  They are recorded as
            Error nodes and never abort the sync.
        """
        errors: List[SourceAccessError] = []
        stack: List[Tuple[SourceHierNode, Path, Metadata]] = [
            (self.root_node, self.root_path, _stat(self.root_path))
        ]
        while stack:
            node, path, meta = stack.pop()
            if self._sync_node(node, path, meta, stack):
                node.last_scan_time = None
                if isinstance(node.content, ErrorContent):
                    errors.append(node.content.cause)
        self._stats = self._compute_stats()
        for error in errors:
            logger.debug("Sync error under {}: {}", self.root_path, error)
        return errors

    def scan(self) -> TreeScanner:
        """Report the changes introduced by ``sync()`` since the last scan."""
        deleted_events, self._deleted_events = self._deleted_events, []
        return TreeScanner(self.root_path, self.root_node, deleted_events)

    def stats(self) -> SourceHierStats:
        return self._stats

    def errors(self) -> List[SourceAccessError]:
        return [node.content.cause for _, node in self._walk()
                if isinstance(node.content, ErrorContent)]

    def find_file(self, path: Union[str, Path]) -> List[Tuple[Path, SourceFileInfo]]:
        """
        Resolve a path to the matching source files in this tree.

        The path is first walked from the root.  When that fails, every
        directory is tried as a starting point, then successively shorter
        suffixes of the path, which resolves package-style or foreign
        absolute paths from stack traces.  A foreign absolute path must
        keep its parent directory in the match, so a file name alone never
        ties a library frame to a project file.
        """
        path = Path(path)
        parts = self._relative_parts(path)
        if not parts:
            return []
        foreign = path.is_absolute() and not _is_under(path, self.root_path)
        min_suffix = 2 if foreign else 1

        if isinstance(self.root_node.content, FileContent):
            if len(parts) >= min_suffix and \
                    parts[-min_suffix:] == self.root_path.parts[-min_suffix:]:
                return [(self.root_path, self.root_node.content.info)]
            return []

        exact = self._lookup(self.root_node, self.root_path, parts)
        if exact is not None:
            return [exact]

        for start in range(len(parts) - min_suffix + 1):
            suffix = parts[start:]
            found = []
            for dir_path, node in self._walk():
                if isinstance(node.content, DirectoryContent):
                    hit = self._lookup(node, dir_path, suffix)
                    if hit is not None:
                        found.append(hit)
            if found:
                return found
        return []

    def _relative_parts(self, path: Path) -> Tuple[str, ...]:
        if path.is_absolute():
            try:
                path = path.relative_to(self.root_path)
            except ValueError:
                return tuple(part for part in path.parts if part != path.anchor)
        return tuple(part for part in path.parts if part not in ("", "."))

    @staticmethod
    def _lookup(node: SourceHierNode, node_path: Path,
                parts: Tuple[str, ...]) -> Optional[Tuple[Path, SourceFileInfo]]:
        current, current_path = node, node_path
        for part in parts:
            if not isinstance(current.content, DirectoryContent):
                return None
            child = current.content.entries.get(part)
            if child is None:
                return None
            current, current_path = child, current_path / part
        if isinstance(current.content, FileContent):
            return current_path, current.content.info
        return None

    def _walk(self) -> Iterator[Tuple[Path, SourceHierNode]]:
        """Visit every node depth-first."""
        stack = [(self.root_path, self.root_node)]
        while stack:
            path, node = stack.pop()
            yield path, node
            if isinstance(node.content, DirectoryContent):
                for name in reversed(list(node.content.entries)):
                    stack.append((path / name, node.content.entries[name]))

    def _compute_stats(self) -> SourceHierStats:
        stats = SourceHierStats()
        for _, node in self._walk():
            content = node.content
            if isinstance(content, FileContent):
                stats.files += 1
            elif isinstance(content, UnsupportedFileContent):
                stats.unsupported_files += 1
            elif isinstance(content, DirectoryContent):
                stats.directories += 1
            elif isinstance(content, ErrorContent):
                stats.errors += 1
        return stats

    def _new_file_info(self, language: SourceLanguage) -> SourceFileInfo:
        info = SourceFileInfo(language, SourceFileID(self._next_id))
        self._next_id += 1
        return info

    def _sync_node(self, node: SourceHierNode, path: Path, meta: Metadata,
                   stack: List[Tuple[SourceHierNode, Path, Metadata]]) -> bool:
        """Sync one node, pushing children that need a sync.  True if it changed."""
        content = node.content
        if isinstance(content, FileContent):
            if (not isinstance(meta, OSError) and stat.S_ISREG(meta.st_mode)
                    and meta.st_mtime_ns == content.last_modified_time):
                return False
            self._deleted_events.append(DeletedFile(path, content.info.id))
            node.content = self._build(path, meta, node, stack)
            return True

        if isinstance(content, DirectoryContent):
            if isinstance(meta, OSError) or not stat.S_ISDIR(meta.st_mode):
                self._report_deleted(path, node)
                node.content = self._build(path, meta, node, stack)
                return True
            try:
                latest = _list_directory(path)
            except OSError as e:
                self._report_deleted(path, node)
                node.content = ErrorContent(SourceAccessError(path, e))
                return True

            changed = False
            for name in [name for name in content.entries if name not in latest]:
                self._report_deleted(path / name, content.entries.pop(name))
                changed = True
            for name, child_meta in latest.items():
                child = content.entries.get(name)
                if child is None:
                    child = SourceHierNode()
                    content.entries[name] = child
                    changed = True
                stack.append((child, path / name, child_meta))
            if changed:
                content.entries = dict(sorted(content.entries.items()))
            return changed

        node.content = self._build(path, meta, node, stack)
        return True

    def _build(self, path: Path, meta: Metadata, node: SourceHierNode,
               stack: List[Tuple[SourceHierNode, Path, Metadata]]) -> SourceHierContent:
        """Create content from current metadata; directory children are stubs."""
        if isinstance(meta, OSError):
            return ErrorContent(SourceAccessError(path, meta))
        if stat.S_ISDIR(meta.st_mode):
            try:
                latest = _list_directory(path)
            except OSError as e:
                return ErrorContent(SourceAccessError(path, e))
            directory = DirectoryContent()
            for name in sorted(latest):
                child = SourceHierNode()
                directory.entries[name] = child
                stack.append((child, path / name, latest[name]))
            return directory
        if stat.S_ISREG(meta.st_mode):
            language = SourceLanguage.from_path(path)
            if language is None:
                return UnsupportedFileContent()
            return FileContent(self._new_file_info(language), meta.st_mtime_ns)
        return UnknownContent()

    def _report_deleted(self, path: Path, node: SourceHierNode) -> None:
        """Record a deletion for every file in a removed subtree."""
        stack = [(path, node)]
        while stack:
            current_path, current = stack.pop()
            content = current.content
            if isinstance(content, FileContent):
                self._deleted_events.append(DeletedFile(current_path, content.info.id))
            elif isinstance(content, DirectoryContent):
                for name in reversed(list(content.entries)):
                    stack.append((current_path / name, content.entries[name]))
