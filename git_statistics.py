#!/usr/bin/env python3
"""
git-statistics - per-author, per-language change statistics from git history

Streams ``git log --numstat --summary`` one commit at a time, turns every
commit into a CommitRecord (files, languages, additions/deletions, status
counters), checkpoints the records to numbered JSON chunks so memory stays
bounded and reruns can resume, then folds the chunks into author reports.

Pipeline:
    git log -> CommitCollector -> CommitBuilder -> CommitStore (chunks)
            -> StatisticsAggregator -> ranked author/language report

Version: 1.0.0
"""

import json
import os
import re
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import click
import psutil
import yaml
from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

from blob_inspector import (
    UNKNOWN_LANGUAGE,
    FileClassifier,
    FileTraits,
    GitBlobResolver,
    GitRepository,
    RepositoryNotFoundError,
    Submodule,
)

colorama_init(autoreset=True)


VERSION = "1.0.0"

CHECKPOINT_DIRNAME = ".git_statistics"
ERRORS_FILENAME = "collection_errors.txt"
DEFAULT_LIMIT = 100
MEMORY_CHECK_INTERVAL = 1000

# sha, author name, author email, author date, parent ids
LOG_FORMAT = "%H,%an,%ae,%ad,%p"
HEADER_FIELDS = 5
SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")


# ============================================================================
# ERRORS
# ============================================================================


class GitCommandError(RuntimeError):
    """A git subprocess exited with a non-zero status"""


class CommitRejected(Exception):
    """A commit buffer could not be turned into a CommitRecord"""

    def __init__(self, message: str, sha: Optional[str] = None):
        super().__init__(message)
        self.sha = sha


class MalformedCommitError(CommitRejected):
    """Header line is not a valid commit header"""


class EmptyCommitError(CommitRejected):
    """No diff-summary line survived classification"""


class InvalidSortKeyError(ValueError):
    """Requested ranking counter does not exist"""


# ============================================================================
# PROGRESS REPORTING
# ============================================================================


class ProgressReporter:
    """
    Console output for a statistics run.

    Stage banners and the commit progress bar go to stdout, errors to
    stderr. ``quiet`` silences everything but errors; ``verbose`` adds
    stage counters and the per-commit diagnostics the collector emits.
    """

    RULE = "=" * 70

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors
        self.start_time = time.time()
        self.stage_times: Dict[str, float] = {}

    def _colorize(self, text: str, color: str) -> str:
        if self.use_colors:
            return f"{color}{text}{Style.RESET_ALL}"
        return text

    def _line(self, text: str, color: str = "", stream=None):
        if stream is None and self.quiet:
            return
        print(self._colorize(text, color) if color else text, file=stream or sys.stdout)

    def _banner(self, title: str, color: str, lines: Iterable[str] = ()):
        rule = self._colorize(self.RULE, Fore.CYAN)
        print(f"\n{rule}")
        print(self._colorize(title, color))
        for line in lines:
            print(f"   {line}")
        print(rule)

    def _elapsed(self, since: float) -> str:
        return f"{time.time() - since:.2f}s"

    def stage_start(self, stage_name: str, message: str = ""):
        if self.quiet:
            return
        self.stage_times[stage_name] = time.time()
        self._banner(
            f"🔄 {stage_name}", Fore.BLUE + Style.BRIGHT, [message] if message else []
        )

    def stage_complete(self, stage_name: str, stats: Optional[Dict[str, Any]] = None):
        """Close a stage; its counters are listed only in verbose mode"""
        started = self.stage_times.pop(stage_name, time.time())
        self._line(
            f"✅ {stage_name} complete ({self._elapsed(started)})",
            Fore.GREEN + Style.BRIGHT,
        )
        if self.verbose:
            for key, value in (stats or {}).items():
                self._line(f"   {key}: {value}")

    def create_progress_bar(
        self, total: Optional[int], desc: str = "Collecting"
    ) -> Optional[tqdm]:
        """tqdm bar over ``total`` commits; None when quiet or the total is unknown"""
        if self.quiet or not total:
            return None

        return tqdm(
            total=total,
            desc=self._colorize(desc, Fore.CYAN),
            unit=" commits",
            ncols=100,
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]",
        )

    def info(self, message: str):
        self._line(f"{self._colorize('ℹ️  ', Fore.BLUE)}{message}")

    def detail(self, message: str):
        if self.verbose:
            self._line(f"   {message}")

    def warning(self, message: str):
        self._line(f"{self._colorize('⚠️  ', Fore.YELLOW + Style.BRIGHT)}{message}")

    def error(self, message: str):
        self._line(f"❌ ERROR: {message}", Fore.RED + Style.BRIGHT, stream=sys.stderr)

    def success(self, message: str):
        self._line(f"✨ {message}", Fore.GREEN + Style.BRIGHT)

    def summary(self, stats: Dict[str, Any]):
        """Closing banner with the run's counters and wall-clock time"""
        if self.quiet:
            return
        self._banner(
            "📊 COLLECTION SUMMARY",
            Fore.MAGENTA + Style.BRIGHT,
            [f"{key}: {value}" for key, value in stats.items()]
            + [self._colorize(f"⏱️  Total time: {self._elapsed(self.start_time)}", Fore.YELLOW)],
        )


class MemoryMonitor:
    """Monitor resident memory and enforce an optional limit"""

    def __init__(self, limit_mb: Optional[float] = None):
        self.limit_mb = limit_mb
        self.peak_mb = 0.0

    def check_memory(self) -> float:
        """Current RSS in MB; raises MemoryError above the limit"""
        process = psutil.Process(os.getpid())
        memory_mb = process.memory_info().rss / 1024 / 1024
        self.peak_mb = max(self.peak_mb, memory_mb)

        if self.limit_mb and memory_mb > self.limit_mb:
            raise MemoryError(
                f"Memory limit exceeded: {memory_mb:.1f}MB > {self.limit_mb}MB"
            )

        return memory_mb

    def get_peak(self) -> float:
        return self.peak_mb


# ============================================================================
# DATA STRUCTURES & MODELS
# ============================================================================


STATUS_BY_VERB = {
    "create": "created",
    "delete": "deleted",
    "rename": "renamed",
    "copy": "copied",
}
COUNTER_BY_STATUS = {status: verb for verb, status in STATUS_BY_VERB.items()}
FILE_STATUSES = ("modified", "created", "deleted", "renamed", "copied")
STATUS_COUNTERS = ("create", "delete", "rename", "copy")


@dataclass
class FileChange:
    """One file touched by one commit"""

    name: str
    old_name: Optional[str] = None
    status: Optional[str] = None
    similar: Optional[int] = None
    additions: int = 0
    deletions: int = 0
    language: str = UNKNOWN_LANGUAGE
    binary: bool = False
    image: bool = False
    vendored: bool = False
    generated: bool = False

    def apply_traits(self, traits: FileTraits):
        self.language = traits.language or UNKNOWN_LANGUAGE
        self.binary = traits.binary
        self.image = traits.image
        self.vendored = traits.vendored
        self.generated = traits.generated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "old_name": self.old_name,
            "status": self.status,
            "similar": self.similar,
            "additions": self.additions,
            "deletions": self.deletions,
            "language": self.language,
            "binary": self.binary,
            "image": self.image,
            "vendored": self.vendored,
            "generated": self.generated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileChange":
        return cls(
            name=data["name"],
            old_name=data.get("old_name"),
            status=data.get("status"),
            similar=data.get("similar"),
            additions=data.get("additions", 0),
            deletions=data.get("deletions", 0),
            language=data.get("language", UNKNOWN_LANGUAGE),
            binary=data.get("binary", False),
            image=data.get("image", False),
            vendored=data.get("vendored", False),
            generated=data.get("generated", False),
        )


@dataclass
class CommitRecord:
    """
    Everything recorded about one commit.

    ``additions``, ``deletions`` and the status counters are tallied from the
    files as they are added; they are never recomputed.
    """

    sha: str
    author: str
    author_email: str
    time: str
    merge: bool = False
    additions: int = 0
    deletions: int = 0
    create: int = 0
    delete: int = 0
    rename: int = 0
    copy: int = 0
    files: List[FileChange] = field(default_factory=list)

    def increment(self, counter: str, amount: int = 1):
        if counter not in STATUS_COUNTERS:
            raise KeyError(f"Unknown status counter: {counter}")
        setattr(self, counter, getattr(self, counter) + amount)

    def add_file(self, change: FileChange):
        self.files.append(change)
        self.additions += change.additions
        self.deletions += change.deletions

        counter = COUNTER_BY_STATUS.get(change.status)
        if counter:
            self.increment(counter)

    def status_counts(self) -> Dict[str, int]:
        return {counter: getattr(self, counter) for counter in STATUS_COUNTERS}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "author": self.author,
            "author_email": self.author_email,
            "time": self.time,
            "merge": self.merge,
            "additions": self.additions,
            "deletions": self.deletions,
            "create": self.create,
            "delete": self.delete,
            "rename": self.rename,
            "copy": self.copy,
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommitRecord":
        return cls(
            sha=data["sha"],
            author=data.get("author", ""),
            author_email=data.get("author_email", ""),
            time=data.get("time", ""),
            merge=data.get("merge", False),
            additions=data.get("additions", 0),
            deletions=data.get("deletions", 0),
            create=data.get("create", 0),
            delete=data.get("delete", 0),
            rename=data.get("rename", 0),
            copy=data.get("copy", 0),
            files=[FileChange.from_dict(f) for f in data.get("files", [])],
        )


@dataclass
class CollectionMetrics:
    """Counters for one collection run"""

    commits_collected: int = 0
    commits_rejected: int = 0
    commits_dropped: int = 0
    files_skipped: int = 0
    chunks_written: int = 0
    memory_peak_mb: float = 0.0
    total_time: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "commits_collected": self.commits_collected,
            "commits_rejected": self.commits_rejected,
            "commits_dropped": self.commits_dropped,
            "files_skipped": self.files_skipped,
            "chunks_written": self.chunks_written,
            "memory_peak_mb": round(self.memory_peak_mb, 2),
            "total_time_seconds": round(self.total_time, 2),
        }


# ============================================================================
# DIFF LINE CLASSIFICATION
# ============================================================================


MODIFIED_WITH_RENAME = "modified_with_rename"
MODIFIED = "modified"
CREATED_OR_DELETED = "created_or_deleted"
RENAMED_OR_COPIED = "renamed_or_copied"

COUNT_KINDS = (MODIFIED_WITH_RENAME, MODIFIED)
MARKER_KINDS = (CREATED_OR_DELETED, RENAMED_OR_COPIED)


@dataclass
class ClassifiedLine:
    """Structured result of one matched diff-summary line"""

    kind: str
    path: str
    old_path: Optional[str] = None
    additions: int = 0
    deletions: int = 0
    status: Optional[str] = None
    similar: Optional[int] = None


def parse_count(text: str) -> int:
    """numstat prints '-' for binary files"""
    return 0 if text == "-" else int(text)


C_QUOTE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "v": "\v",
    "f": "\f",
    "r": "\r",
    '"': '"',
    "\\": "\\",
}
C_QUOTE_ESCAPE_PATTERN = re.compile(r"\\([0-7]{3}|.)")


def unquote_path(path: str) -> str:
    """
    Undo git's C-style path quoting.

    git wraps a path in double quotes when it contains control characters,
    a double quote or a backslash (and non-ASCII bytes unless
    core.quotePath is off), writing each such byte as an escape. Octal
    escapes are raw bytes of the UTF-8 path. Unquoted paths are returned
    unchanged.
    """
    path = path.strip()
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    body = path[1:-1]
    raw = bytearray()
    position = 0
    for match in C_QUOTE_ESCAPE_PATTERN.finditer(body):
        raw += body[position : match.start()].encode("utf-8")
        code = match.group(1)
        if len(code) == 3:
            raw.append(int(code, 8))
        else:
            raw += C_QUOTE_ESCAPES.get(code, code).encode("utf-8")
        position = match.end()
    raw += body[position:].encode("utf-8")

    return raw.decode("utf-8", errors="replace")


def _join_path(*parts: str) -> str:
    path = re.sub(r"/{2,}", "/", "".join(parts))
    return path.lstrip("/")


def split_old_new_file(old: str, new: str) -> Tuple[str, str]:
    """
    Expand the two sides of a ``=>`` arrow into full paths.

    git abbreviates renames as ``prefix/{old => new}/suffix``; the arrow
    splits that into ``prefix/{old`` and ``new}/suffix``. Only the braced
    segment differs between the two paths. Without braces the sides are
    complete paths already.

    Returns:
        (old_path, new_path)
    """
    old = unquote_path(old)
    new = unquote_path(new)

    prefix, brace, old_segment = old.partition("{")
    if not brace:
        prefix, old_segment = "", old

    new_segment, brace, suffix = new.partition("}")
    if not brace:
        new_segment, suffix = new, ""

    return (
        _join_path(prefix, old_segment, suffix),
        _join_path(prefix, new_segment, suffix),
    )


def _modified_with_rename(groups: Tuple[str, ...]) -> ClassifiedLine:
    additions, deletions, old, new = groups
    old_path, new_path = split_old_new_file(old, new)
    return ClassifiedLine(
        kind=MODIFIED_WITH_RENAME,
        path=new_path,
        old_path=old_path,
        additions=parse_count(additions),
        deletions=parse_count(deletions),
    )


def _modified(groups: Tuple[str, ...]) -> ClassifiedLine:
    additions, deletions, path = groups
    return ClassifiedLine(
        kind=MODIFIED,
        path=unquote_path(path),
        additions=parse_count(additions),
        deletions=parse_count(deletions),
    )


def _created_or_deleted(groups: Tuple[str, ...]) -> ClassifiedLine:
    verb, path = groups
    return ClassifiedLine(
        kind=CREATED_OR_DELETED,
        path=unquote_path(path),
        status=STATUS_BY_VERB[verb.lower()],
    )


def _renamed_or_copied(groups: Tuple[str, ...]) -> ClassifiedLine:
    verb, old, new, similar = groups
    old_path, new_path = split_old_new_file(old, new)
    return ClassifiedLine(
        kind=RENAMED_OR_COPIED,
        path=new_path,
        old_path=old_path,
        status=STATUS_BY_VERB[verb.lower()],
        similar=int(similar),
    )


@dataclass(frozen=True)
class LineRule:
    kind: str
    pattern: "re.Pattern"
    build: Callable[[Tuple[str, ...]], ClassifiedLine]

    def match(self, line: str) -> Optional[ClassifiedLine]:
        found = self.pattern.match(line)
        if found is None:
            return None
        return self.build(found.groups())


# Most specific first: a rename counts line also satisfies the plain counts rule
LINE_RULES: Tuple[LineRule, ...] = (
    LineRule(
        MODIFIED_WITH_RENAME,
        re.compile(r"^(-|\d+)\s+(-|\d+)\s+(.+)\s+=>\s+(.+)$"),
        _modified_with_rename,
    ),
    LineRule(
        MODIFIED,
        re.compile(r"^(-|\d+)\s+(-|\d+)\s+(.+)$"),
        _modified,
    ),
    LineRule(
        CREATED_OR_DELETED,
        re.compile(r"^(create|delete) mode \d+ (.+)$", re.IGNORECASE),
        _created_or_deleted,
    ),
    LineRule(
        RENAMED_OR_COPIED,
        re.compile(r"^(rename|copy)\s+(.+)\s+=>\s+(.+)\s+\((\d+)%?\)?", re.IGNORECASE),
        _renamed_or_copied,
    ),
)


def classify_line(line: str) -> Optional[ClassifiedLine]:
    """
    Match one body line against the ordered rules.

    Returns:
        ClassifiedLine for the first rule that matches, None otherwise
    """
    line = line.strip()
    if not line:
        return None

    for rule in LINE_RULES:
        result = rule.match(line)
        if result is not None:
            return result
    return None


class ChangeSetAccumulator:
    """
    Merge the classified lines of one commit into FileChange records.

    Counts and status for one file may arrive on separate lines in either
    order; both are folded into a single record keyed by the file's final
    path. Output keeps first-seen order.
    """

    def __init__(self):
        self._changes: Dict[str, FileChange] = {}

    def __len__(self) -> int:
        return len(self._changes)

    def get(self, path: str) -> Optional[FileChange]:
        return self._changes.get(path)

    def add(self, line: ClassifiedLine) -> FileChange:
        existing = self._changes.get(line.path)

        if existing is None:
            change = FileChange(
                name=line.path,
                old_name=line.old_path,
                status=line.status,
                similar=line.similar,
                additions=line.additions,
                deletions=line.deletions,
            )
            self._changes[line.path] = change
            return change

        if line.kind in COUNT_KINDS:
            # At most one counts line per file
            existing.additions = line.additions
            existing.deletions = line.deletions
            if existing.old_name is None:
                existing.old_name = line.old_path
        else:
            existing.status = line.status
            if line.old_path is not None:
                existing.old_name = line.old_path
            if line.similar is not None:
                existing.similar = line.similar

        return existing

    def add_line(self, raw: str) -> bool:
        """Classify and merge ``raw``; False when the line is not a diff line"""
        classified = classify_line(raw)
        if classified is None:
            return False
        self.add(classified)
        return True

    def changes(self) -> List[FileChange]:
        return list(self._changes.values())


# ============================================================================
# COMMIT STORE / CHECKPOINT CACHE
# ============================================================================


CHUNK_FILE_PATTERN = re.compile(r"^(\d+)\.json$")

CHUNK_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "required": [
            "sha",
            "author",
            "author_email",
            "time",
            "merge",
            "additions",
            "deletions",
            "create",
            "delete",
            "rename",
            "copy",
            "files",
        ],
        "properties": {
            "sha": {"type": "string", "pattern": "^[0-9a-fA-F]{40}$"},
            "author": {"type": "string"},
            "author_email": {"type": "string"},
            "time": {"type": "string"},
            "merge": {"type": "boolean"},
            "additions": {"type": "integer", "minimum": 0},
            "deletions": {"type": "integer", "minimum": 0},
            "create": {"type": "integer", "minimum": 0},
            "delete": {"type": "integer", "minimum": 0},
            "rename": {"type": "integer", "minimum": 0},
            "copy": {"type": "integer", "minimum": 0},
            "files": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["name", "additions", "deletions", "language"],
                    "properties": {
                        "name": {"type": "string"},
                        "old_name": {"type": ["string", "null"]},
                        "status": {"enum": list(FILE_STATUSES) + [None]},
                        "similar": {"type": ["integer", "null"]},
                        "additions": {"type": "integer", "minimum": 0},
                        "deletions": {"type": "integer", "minimum": 0},
                        "language": {"type": "string"},
                        "binary": {"type": "boolean"},
                        "image": {"type": "boolean"},
                        "vendored": {"type": "boolean"},
                        "generated": {"type": "boolean"},
                    },
                },
            },
        },
    },
}


def dump_commits(records: Iterable[CommitRecord], pretty: bool = False) -> str:
    """Serialize records as one chunk; output is deterministic for a given mode"""
    payload = [record.to_dict() for record in records]
    if pretty:
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"


def read_chunk(path: str) -> List[CommitRecord]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [CommitRecord.from_dict(item) for item in data]


class CommitStore:
    """
    In-memory sha -> CommitRecord mapping backed by numbered JSON chunks.

    ``flush`` writes the whole mapping to ``<path>/<n>.json`` once it holds
    more than ``limit`` records (or when forced) and clears it, so a scan of
    any size keeps at most ``limit + 1`` records in memory.
    """

    def __init__(
        self,
        path: str,
        limit: int = DEFAULT_LIMIT,
        fresh: bool = True,
        pretty: bool = False,
    ):
        if limit < 1:
            raise ValueError(f"Flush limit must be a positive integer, got {limit}")

        self.path = path
        self.limit = limit
        self.fresh = fresh
        self.pretty = pretty
        self.commits: Dict[str, CommitRecord] = {}
        self.chunks_written = 0

        if fresh:
            self.clear_chunks()

    def __len__(self) -> int:
        return len(self.commits)

    def __contains__(self, sha: str) -> bool:
        return sha in self.commits

    def __getitem__(self, sha: str) -> CommitRecord:
        return self.commits[sha]

    def __iter__(self) -> Iterator[CommitRecord]:
        return iter(self.commits.values())

    @property
    def size(self) -> int:
        return len(self.commits)

    def add(self, record: CommitRecord):
        self.commits[record.sha] = record

    def _indexed_chunks(self) -> List[Tuple[int, str]]:
        if not os.path.isdir(self.path):
            return []

        indexed = []
        for name in os.listdir(self.path):
            match = CHUNK_FILE_PATTERN.match(name)
            if match:
                indexed.append((int(match.group(1)), os.path.join(self.path, name)))
        return sorted(indexed)

    def chunk_files(self) -> List[str]:
        """Chunk paths in index order; other files in the directory are ignored"""
        return [path for _, path in self._indexed_chunks()]

    def next_chunk_path(self) -> str:
        """One past the highest existing index, so a gap never reuses a name"""
        indexed = self._indexed_chunks()
        next_index = indexed[-1][0] + 1 if indexed else 0
        return os.path.join(self.path, f"{next_index}.json")

    def clear_chunks(self) -> int:
        removed = 0
        for chunk in self.chunk_files():
            os.remove(chunk)
            removed += 1
        return removed

    def flush(self, force: bool = False) -> Optional[str]:
        """
        Persist and clear the mapping when it exceeds the limit or ``force``.

        Returns:
            Path of the chunk written, or None when nothing was written
        """
        if not force and len(self.commits) <= self.limit:
            return None
        if not self.commits:
            return None

        chunk_path = self.next_chunk_path()
        self.save(chunk_path)
        self.commits.clear()
        self.chunks_written += 1
        return chunk_path

    def save(self, path: str, pretty: Optional[bool] = None):
        if pretty is None:
            pretty = self.pretty

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(dump_commits(self.commits.values(), pretty))

    def load(self, paths: Union[str, List[str]]) -> "CommitStore":
        """Merge the records of one or more chunk files into the mapping"""
        if isinstance(paths, str):
            paths = [paths]

        for path in paths:
            for record in read_chunk(path):
                self.commits[record.sha] = record
        return self

    def iter_saved_commits(self) -> Iterator[CommitRecord]:
        """
        Stream every persisted record, one chunk in memory at a time,
        followed by records not yet flushed. A sha is yielded once.
        """
        seen = set()
        for chunk in self.chunk_files():
            for record in read_chunk(chunk):
                if record.sha in seen:
                    continue
                seen.add(record.sha)
                yield record

        for record in list(self.commits.values()):
            if record.sha not in seen:
                seen.add(record.sha)
                yield record


# ============================================================================
# STATISTICS AGGREGATION
# ============================================================================


SORT_KEYS = (
    "commits",
    "merges",
    "additions",
    "deletions",
    "create",
    "delete",
    "rename",
    "copy",
)


@dataclass
class LanguageStats:
    additions: int = 0
    deletions: int = 0
    create: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "additions": self.additions,
            "deletions": self.deletions,
            "create": self.create,
        }


@dataclass
class AuthorStats:
    commits: int = 0
    merges: int = 0
    additions: int = 0
    deletions: int = 0
    create: int = 0
    delete: int = 0
    rename: int = 0
    copy: int = 0
    languages: Dict[str, LanguageStats] = field(default_factory=dict)

    def increment(self, counter: str, amount: int = 1):
        if counter not in SORT_KEYS:
            raise KeyError(f"Unknown author counter: {counter}")
        setattr(self, counter, getattr(self, counter) + amount)

    def language(self, label: str) -> LanguageStats:
        if label not in self.languages:
            self.languages[label] = LanguageStats()
        return self.languages[label]

    def to_dict(self) -> Dict[str, Any]:
        data = {key: getattr(self, key) for key in SORT_KEYS}
        data["languages"] = {
            label: stats.to_dict() for label, stats in sorted(self.languages.items())
        }
        return data


def add_commit_stats(stats: AuthorStats, commit: CommitRecord) -> AuthorStats:
    """Fold one commit's totals into ``stats`` and return it"""
    stats.increment("commits")
    stats.increment("additions", commit.additions)
    stats.increment("deletions", commit.deletions)
    if commit.merge:
        stats.increment("merges")

    for counter, amount in commit.status_counts().items():
        stats.increment(counter, amount)

    return stats


def add_language_stats(stats: AuthorStats, change: FileChange) -> AuthorStats:
    """Fold one file into the language bucket of ``stats`` and return it"""
    bucket = stats.language(change.language or UNKNOWN_LANGUAGE)
    bucket.additions += change.additions
    bucket.deletions += change.deletions
    if change.status == "created":
        bucket.create += 1
    return stats


class StatisticsAggregator:
    """
    Per-author totals with a nested per-language breakdown.

    Args:
        email: key authors by email instead of name
        merges: include merge commits; when False they are skipped entirely
    """

    def __init__(self, email: bool = False, merges: bool = False):
        self.email = email
        self.merges = merges
        self.stats: Dict[str, AuthorStats] = {}
        self.commits_seen = 0
        self.commits_skipped = 0

    def author_key(self, commit: CommitRecord) -> str:
        return commit.author_email if self.email else commit.author

    def process_commit(self, commit: CommitRecord) -> bool:
        self.commits_seen += 1
        if commit.merge and not self.merges:
            self.commits_skipped += 1
            return False

        key = self.author_key(commit)
        if key not in self.stats:
            self.stats[key] = AuthorStats()
        author = self.stats[key]

        add_commit_stats(author, commit)
        for change in commit.files:
            add_language_stats(author, change)
        return True

    def process(self, commits: Iterable[CommitRecord]) -> Dict[str, AuthorStats]:
        for commit in commits:
            self.process_commit(commit)
        return self.stats

    def top_n(self, sort: str = "commits", n: int = 0) -> List[Tuple[str, AuthorStats]]:
        """
        Authors ranked descending by ``sort`` (ties by author key).

        Raises:
            InvalidSortKeyError: ``sort`` is not a known counter

        Returns:
            Up to ``n`` (author, stats) pairs, all when n <= 0; empty list
            when there is no data
        """
        if sort not in SORT_KEYS:
            raise InvalidSortKeyError(
                f"Unknown sort key '{sort}' (expected one of: {', '.join(SORT_KEYS)})"
            )

        ranked = sorted(
            self.stats.items(), key=lambda item: (-getattr(item[1], sort), item[0])
        )
        return ranked[:n] if n and n > 0 else ranked

    def finalize(self, sort: str = "commits", n: int = 0) -> dict:
        return {
            "generated_at": datetime.now().astimezone().isoformat(),
            "author_key": "email" if self.email else "name",
            "merges_included": self.merges,
            "sort": sort,
            "commits_seen": self.commits_seen,
            "merge_commits_skipped": self.commits_skipped,
            "authors": [
                dict(author=author, **stats.to_dict())
                for author, stats in self.top_n(sort, n)
            ],
        }

    def export(self, output_path: str, sort: str = "commits", n: int = 0) -> dict:
        data = self.finalize(sort, n)
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return data


def max_length_in_list(items, minimum: Optional[int] = None) -> Optional[int]:
    """Longest key/item length, never below ``minimum``; None for no input"""
    if not items:
        return minimum
    longest = max(len(str(item)) for item in items)
    return max(longest, minimum or 0)


def render_author_report(
    ranked: List[Tuple[str, AuthorStats]], sort: str, merges: bool = False
) -> str:
    """Plain-text table of ranked authors with their language breakdown"""
    if not ranked:
        return "No commit statistics available."

    name_width = max_length_in_list([name for name, _ in ranked], len("Author"))
    columns = ("commits", "merges", "additions", "deletions") + STATUS_COUNTERS
    widths = {c: max(len(c), 9) for c in columns}

    lines = [
        f"Top {len(ranked)} author(s) by {sort}"
        + (" (merges included)" if merges else " (merges excluded)"),
        "",
        "  ".join(
            [f"{'Author':<{name_width}}"] + [f"{c.title():>{widths[c]}}" for c in columns]
        ),
        "-" * (name_width + sum(widths[c] + 2 for c in columns)),
    ]

    for name, stats in ranked:
        row = [f"{name:<{name_width}}"] + [
            f"{getattr(stats, c):>{widths[c]}}" for c in columns
        ]
        lines.append("  ".join(row))

        for label, language in sorted(
            stats.languages.items(), key=lambda item: -item[1].additions
        ):
            created = f"  ({language.create} created)" if language.create else ""
            lines.append(
                f"    {label:<20} +{language.additions} / -{language.deletions}{created}"
            )

    return "\n".join(lines)


# ============================================================================
# COMMIT COLLECTION
# ============================================================================


def is_header_line(line: str) -> bool:
    return len(line.split(",")) == HEADER_FIELDS


def header_sha(line: str) -> str:
    return line.split(",", 1)[0].strip()


class GitLogSource:
    """
    Line source for the collector: ``git log`` for the scan, ``git show``
    for the single-commit fallback.
    """

    DIFF_ARGS = [
        "--date=iso-strict",
        "--no-color",
        "--find-copies-harder",
        "--numstat",
        "--encoding=utf-8",
        "--summary",
        f"--format={LOG_FORMAT}",
    ]

    def __init__(
        self,
        repository: GitRepository,
        branches: Optional[List[str]] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ):
        self.repository = repository
        self.branches = branches or []
        self.since = since
        self.until = until

    @staticmethod
    def collect_branches(repository: GitRepository) -> List[str]:
        """Local branch names from ``git branch`` (current-branch marker removed)"""
        result = repository.run("branch", "--no-color")
        if result.returncode != 0:
            return []

        branches = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if line.startswith("*"):
                line = line[1:].strip()
            # Detached HEAD shows as "(HEAD detached at ...)"
            if not line or line.startswith("("):
                continue
            branches.append(line)
        return branches

    def _window_args(self) -> List[str]:
        args = []
        if self.since:
            args.append(f"--since={self.since}")
        if self.until:
            args.append(f"--until={self.until}")
        return args

    def log_command(self) -> List[str]:
        return self.repository.git_args(
            "log",
            *self.branches,
            "--reverse",
            *self.DIFF_ARGS,
            *self._window_args(),
            "--",
        )

    def show_command(self, sha: str) -> List[str]:
        return self.repository.git_args("show", sha, *self.DIFF_ARGS, "--")

    def count_commits(self) -> Optional[int]:
        """Number of commits the log will visit (for the progress bar)"""
        refs = self.branches or ["HEAD"]
        result = self.repository.run(
            "rev-list", "--count", *refs, *self._window_args(), "--"
        )
        if result.returncode != 0:
            return None
        try:
            return int(result.stdout.strip())
        except ValueError:
            return None

    def lines(self) -> Iterator[str]:
        """
        Yield ``git log`` output line by line while git is still running.

        stderr is spooled to a temporary file and read only when git fails.
        """
        with tempfile.TemporaryFile() as stderr_file:
            process = subprocess.Popen(
                self.log_command(),
                stdout=subprocess.PIPE,
                stderr=stderr_file,
                text=True,
                encoding="utf-8",
                errors="replace",
            )

            try:
                for line in process.stdout:
                    yield line

                process.wait()
                if process.returncode != 0:
                    stderr_file.seek(0)
                    stderr = stderr_file.read().decode("utf-8", errors="replace").strip()
                    raise GitCommandError(f"git log failed: {stderr}")
            finally:
                if process.poll() is None:
                    process.kill()
                    process.wait()
                process.stdout.close()

    def show(self, sha: str) -> List[str]:
        """Cleaned, non-empty lines of ``git show`` for one commit"""
        result = subprocess.run(
            self.show_command(sha),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]


class CommitBuilder:
    """
    Build a CommitRecord from one commit buffer (header line first).

    Files that cannot be resolved at the commit or its first parent, and
    submodule entries, are skipped with a diagnostic; the rest of the commit
    is still recorded.
    """

    def __init__(
        self,
        resolver,
        classifier: FileClassifier,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.resolver = resolver
        self.classifier = classifier
        self.reporter = reporter or ProgressReporter(quiet=True)
        self.errors: List[str] = []
        self.files_skipped = 0

    def diagnose(self, message: str):
        self.errors.append(message)
        self.reporter.detail(message)

    def parse_header(self, header: str) -> Tuple[CommitRecord, List[str]]:
        fields = header.split(",")
        if len(fields) != HEADER_FIELDS:
            raise MalformedCommitError(
                f"Invalid buffer containing commit information: {header[:60]}"
            )

        sha, author, author_email, commit_time, parents = (f.strip() for f in fields)
        if not SHA_PATTERN.match(sha):
            raise MalformedCommitError(
                f"Invalid commit sha '{sha[:60]}' in buffer header", sha=sha
            )

        parent_ids = parents.split()
        record = CommitRecord(
            sha=sha,
            author=author,
            author_email=author_email,
            time=commit_time,
            merge=len(parent_ids) > 1,
        )
        return record, parent_ids

    def resolve(self, sha: str, path: str, first_parent: Optional[str]):
        entry = self.resolver.resolve(sha, path)
        # Deleted files only exist in the parent tree
        if entry is None and first_parent:
            entry = self.resolver.resolve(first_parent, path)
        return entry

    def build(self, buffer: List[str]) -> CommitRecord:
        """
        Raises:
            MalformedCommitError: header is not a valid commit header
            EmptyCommitError: no diff-summary lines in the body
        """
        if not buffer:
            raise MalformedCommitError("Empty commit buffer")

        record, parent_ids = self.parse_header(buffer[0])

        accumulator = ChangeSetAccumulator()
        for line in buffer[1:]:
            accumulator.add_line(line)

        changes = accumulator.changes()
        if not changes:
            raise EmptyCommitError(f"No files were changed in {record.sha}", sha=record.sha)

        first_parent = parent_ids[0] if parent_ids else None
        for change in changes:
            entry = self.resolve(record.sha, change.name, first_parent)

            if isinstance(entry, Submodule):
                self.files_skipped += 1
                self.diagnose(f"Ignoring submodule {entry.name} in {record.sha}")
                continue
            if entry is None:
                self.files_skipped += 1
                self.diagnose(f"Problem processing file {change.name} in {record.sha}")
                continue

            change.apply_traits(self.classifier.classify(entry))
            record.add_file(change)

        return record


class CommitCollector:
    """
    Slice a stream of log lines into per-commit buffers and store the
    resulting records.

    A header line is any line with exactly five comma-separated fields. A
    buffer holding only its header (merges often have no diff body) is
    replaced by the single-commit ``git show`` view when that view reports
    the same sha; otherwise the commit is dropped.
    """

    def __init__(
        self,
        store: CommitStore,
        builder: CommitBuilder,
        source: Optional[GitLogSource] = None,
        reporter: Optional[ProgressReporter] = None,
        memory_monitor: Optional[MemoryMonitor] = None,
    ):
        self.store = store
        self.builder = builder
        self.source = source
        self.reporter = reporter or ProgressReporter(quiet=True)
        self.memory_monitor = memory_monitor
        self.errors = builder.errors
        self.metrics = CollectionMetrics()

    def diagnose(self, message: str):
        self.builder.diagnose(message)

    def fall_back_collect_commit(self, sha: str) -> Optional[List[str]]:
        if self.source is None:
            return None

        buffer = self.source.show(sha)
        if buffer and header_sha(buffer[0]) == sha:
            return buffer
        return None

    def extract_commit(self, buffer: List[str]) -> Optional[CommitRecord]:
        """Close one buffer: build the record and add it to the store"""
        sha = header_sha(buffer[0])

        if len(buffer) == 1 and SHA_PATTERN.match(sha):
            fallback = self.fall_back_collect_commit(sha)
            if fallback is None:
                self.metrics.commits_dropped += 1
                self.diagnose(f"No commit details available for {sha}")
                return None
            buffer = fallback

        self.reporter.detail(f"Extracting {sha}")

        try:
            record = self.builder.build(buffer)
        except CommitRejected as e:
            self.metrics.commits_rejected += 1
            self.diagnose(str(e))
            return None

        self.store.add(record)
        self.metrics.commits_collected += 1

        if (
            self.memory_monitor is not None
            and self.metrics.commits_collected % MEMORY_CHECK_INTERVAL == 0
        ):
            self.memory_monitor.check_memory()

        return record

    def _flush(self, force: bool = False):
        if self.store.flush(force) is not None:
            self.metrics.chunks_written += 1

    def collect(self, lines: Iterable[str], total: Optional[int] = None) -> int:
        """
        Consume ``lines`` to the end.

        The store is force-flushed on the way out even when the stream
        raises, so every record built before an abort is persisted.

        Returns:
            Number of commits recorded
        """
        progress_bar = self.reporter.create_progress_bar(total, desc="Collecting commits")
        buffer: List[str] = []

        try:
            for raw in lines:
                line = raw.strip()
                if not line:
                    continue

                if is_header_line(line):
                    if buffer:
                        self.extract_commit(buffer)
                        self._flush()
                        if progress_bar:
                            progress_bar.update(1)
                    buffer = []

                buffer.append(line)

            if buffer:
                self.extract_commit(buffer)
                buffer = []
                if progress_bar:
                    progress_bar.update(1)
        finally:
            self._flush(force=True)
            if progress_bar:
                progress_bar.close()

        self.metrics.files_skipped = self.builder.files_skipped
        return self.metrics.commits_collected


class GitStatistics:
    """
    One repository's statistics session: collection into checkpoint chunks,
    then aggregation from them.
    """

    def __init__(
        self,
        repository: GitRepository,
        limit: int = DEFAULT_LIMIT,
        fresh: bool = True,
        pretty: bool = False,
        reporter: Optional[ProgressReporter] = None,
        memory_limit_mb: Optional[float] = None,
        language_overrides: Optional[Dict[str, str]] = None,
        resolver=None,
        classifier: Optional[FileClassifier] = None,
    ):
        self.repository = repository
        self.reporter = reporter or ProgressReporter()
        self.commits_path = os.path.join(repository.root, CHECKPOINT_DIRNAME)
        self.commits = CommitStore(self.commits_path, limit, fresh, pretty)
        self.memory_monitor = MemoryMonitor(limit_mb=memory_limit_mb)
        self.builder = CommitBuilder(
            resolver or GitBlobResolver(repository),
            classifier or FileClassifier(language_overrides),
            reporter=self.reporter,
        )
        self.errors = self.builder.errors
        self.metrics = CollectionMetrics()

    def collect(
        self,
        branch: bool = False,
        since: Optional[str] = None,
        until: Optional[str] = None,
    ) -> CollectionMetrics:
        """Scan the log (all local branches unless ``branch``) into chunks"""
        start_time = time.time()
        self.reporter.stage_start("Git Log Processing", "Streaming commit history...")

        branches = [] if branch else GitLogSource.collect_branches(self.repository)
        source = GitLogSource(self.repository, branches, since, until)

        total = source.count_commits()
        if total == 0:
            self.reporter.warning("No commits found for the requested range")
            self.reporter.stage_complete("Git Log Processing")
            return self.metrics

        collector = CommitCollector(
            self.commits,
            self.builder,
            source=source,
            reporter=self.reporter,
            memory_monitor=self.memory_monitor,
        )

        try:
            collector.collect(source.lines(), total=total)
            self.memory_monitor.check_memory()
        except Exception as e:
            self.reporter.error(f"Failed to collect commits: {str(e)}")
            raise
        finally:
            self.metrics = collector.metrics
            self.metrics.total_time = time.time() - start_time
            self.metrics.memory_peak_mb = self.memory_monitor.get_peak()

        self.reporter.stage_complete(
            "Git Log Processing",
            {
                "Commits collected": f"{self.metrics.commits_collected:,}",
                "Commits rejected": f"{self.metrics.commits_rejected:,}",
                "Files skipped": f"{self.metrics.files_skipped:,}",
                "Chunks written": f"{self.metrics.chunks_written:,}",
            },
        )
        return self.metrics

    def calculate_statistics(
        self, email: bool = False, merges: bool = False
    ) -> StatisticsAggregator:
        aggregator = StatisticsAggregator(email=email, merges=merges)
        aggregator.process(self.commits.iter_saved_commits())
        return aggregator

    def write_errors(self) -> Optional[str]:
        if not self.errors:
            return None

        os.makedirs(self.commits_path, exist_ok=True)
        path = os.path.join(self.commits_path, ERRORS_FILENAME)
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(self.errors) + "\n")
        return path


# ============================================================================
# CONFIGURATION FILE SUPPORT
# ============================================================================


CONFIG_FILENAMES = (
    ".git-statistics.yaml",
    ".git-statistics.yml",
    ".git-statistics.json",
)

PRESETS = {
    "standard": {},
    "full": {"merges": True, "branch": False},
    "quick": {"branch": True, "limit": 1000},
}

DEFAULTS = {
    "limit": DEFAULT_LIMIT,
    "sort": "commits",
    "top": 0,
    "update": False,
    "pretty": False,
    "email": False,
    "merges": False,
    "branch": False,
}


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML or JSON file"""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif file_ext == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_ext}")

    return data or {}


def find_config_file(repo_path: str) -> Optional[str]:
    """Search the repository, then the current directory"""
    for search_dir in (repo_path, os.getcwd()):
        for config_name in CONFIG_FILENAMES:
            config_path = os.path.join(search_dir, config_name)
            if os.path.exists(config_path):
                return config_path
    return None


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults
    """

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str],
        preset_name: Optional[str],
        repo_path: str,
    ):
        self.cli = {k: v for k, v in cli_args.items() if v is not None}
        self.config = {}
        self.config_path = config_path

        if config_path:
            self.config = load_config_file(config_path)
        else:
            auto_path = find_config_file(repo_path)
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    self.config_path = auto_path
                except (OSError, ValueError, yaml.YAMLError) as e:
                    print(
                        f"Warning: Found config file but failed to load: {e}",
                        file=sys.stderr,
                    )

        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        final_preset_name = preset_name or self.config.get("preset")
        self.preset = PRESETS.get(final_preset_name, {}) if final_preset_name else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return DEFAULTS.get(key, default)


# ============================================================================
# CLI INTERFACE
# ============================================================================


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "repo_path",
    type=click.Path(file_okay=False, resolve_path=True),
    default=".",
    required=False,
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False),
    help="Write the ranked author statistics to this JSON file",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (.yaml or .json)",
)
@click.option(
    "--preset",
    type=click.Choice(sorted(PRESETS)),
    help="Use predefined configuration",
)
# Collection
@click.option("--limit", type=click.IntRange(min=1), help="Commits held in memory before a chunk is written")
@click.option(
    "--update",
    is_flag=True,
    default=None,
    help="Keep existing chunks and append to them instead of starting fresh",
)
@click.option(
    "--report-only",
    is_flag=True,
    default=None,
    help="Skip collection and report from existing chunks",
)
@click.option("--pretty", is_flag=True, default=None, help="Write indented JSON chunks")
@click.option("--branch", is_flag=True, default=None, help="Only scan the current branch")
@click.option("--since", help="Only commits more recent than this date")
@click.option("--until", help="Only commits older than this date")
@click.option("--memory-limit", type=float, help="Memory limit in MB")
# Report
@click.option("--email", is_flag=True, default=None, help="Group authors by email")
@click.option("--merges", is_flag=True, default=None, help="Include merge commits")
@click.option("--sort", type=click.Choice(SORT_KEYS), help="Counter used to rank authors")
@click.option("--top", type=click.IntRange(min=0), help="Number of authors to show (0 = all)")
# Output Control
@click.option(
    "-q", "--quiet", is_flag=True, default=None, help="Suppress progress output"
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=None,
    help="Show per-commit and per-file diagnostics",
)
@click.option("--no-color", is_flag=True, default=None, help="Disable colored output")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be collected without running git log",
)
@click.version_option(version=VERSION)
def main(repo_path, output, config, preset, **kwargs):
    """
    Collect per-author, per-language change statistics for a git repository.

    Commit records are checkpointed under REPO_PATH/.git_statistics as
    numbered JSON chunks, then aggregated into a ranked author report.
    """
    resolver = ConfigResolver(kwargs, config, preset, repo_path)

    quiet = resolver.get("quiet", False)
    verbose = resolver.get("verbose", False)
    reporter = ProgressReporter(
        quiet=quiet, verbose=verbose, use_colors=not resolver.get("no_color", False)
    )

    try:
        repository = GitRepository.discover(repo_path)
    except RepositoryNotFoundError as e:
        reporter.error(str(e))
        sys.exit(1)

    limit = resolver.get("limit")
    report_only = resolver.get("report_only", False)
    update = resolver.get("update") or report_only
    pretty = resolver.get("pretty")
    branch = resolver.get("branch")
    since = resolver.get("since")
    until = resolver.get("until")
    email = resolver.get("email")
    merges = resolver.get("merges")
    sort = resolver.get("sort")
    top = resolver.get("top")
    memory_limit = resolver.get("memory_limit")
    language_overrides = resolver.get("languages") or {}
    output = output or resolver.get("output")

    if kwargs.get("dry_run"):
        reporter.info("DRY RUN MODE - No collection will be performed")
        reporter.info(f"Repository: {repository.root}")
        reporter.info(
            f"Checkpoint directory: {os.path.join(repository.root, CHECKPOINT_DIRNAME)}"
        )
        if resolver.config_path:
            reporter.info(f"Configuration: {resolver.config_path}")
        if branch:
            reporter.info("Branches: current branch only")
        else:
            branches = GitLogSource.collect_branches(repository)
            reporter.info(f"Branches: {', '.join(branches) or 'HEAD'}")
        reporter.info(f"Flush limit: {limit}")
        reporter.info(f"Mode: {'resume' if update else 'fresh'}")
        reporter.info(f"Author key: {'email' if email else 'name'}")
        reporter.info(f"Merges: {'included' if merges else 'excluded'}")
        reporter.info(f"Sort: {sort}")
        return

    try:
        session = GitStatistics(
            repository,
            limit=limit,
            fresh=not update,
            pretty=pretty,
            reporter=reporter,
            memory_limit_mb=memory_limit,
            language_overrides=language_overrides,
        )

        if not report_only:
            session.collect(branch=branch, since=since, until=until)

        reporter.stage_start("Aggregation", "Folding commit records into author statistics...")
        aggregator = session.calculate_statistics(email=email, merges=merges)
        ranked = aggregator.top_n(sort, top)
        reporter.stage_complete("Aggregation", {"Authors": len(aggregator.stats)})

        click.echo(render_author_report(ranked, sort, merges))

        if output:
            aggregator.export(output, sort, top)
            reporter.info(f"Statistics written to {output}")

        errors_path = session.write_errors()
        if errors_path:
            reporter.warning(f"{len(session.errors)} diagnostics logged to {errors_path}")

        summary_stats = {
            "Repository": repository.root,
            "Checkpoint directory": session.commits_path,
            "Commits aggregated": f"{aggregator.commits_seen:,}",
            "Authors": f"{len(aggregator.stats):,}",
        }
        if not report_only:
            summary_stats["Commits collected"] = f"{session.metrics.commits_collected:,}"
            summary_stats["Chunks written"] = f"{session.metrics.chunks_written:,}"
            summary_stats["Peak memory"] = f"{session.metrics.memory_peak_mb:.1f} MB"

        reporter.summary(summary_stats)
        reporter.success("Statistics complete!")

    except Exception as e:
        reporter.error(f"Statistics failed: {str(e)}")
        if verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
