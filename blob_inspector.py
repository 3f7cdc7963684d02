"""
Blob lookup and file classification for git-statistics.

Resolves a path at a given revision to its stored blob (or submodule
reference) and classifies the blob's content: language, binary, image,
vendored and generated flags.
"""

import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


# ============================================================================
# REPOSITORY HANDLE
# ============================================================================


class RepositoryNotFoundError(RuntimeError):
    """Raised when no git repository encloses the requested path"""


class GitRepository:
    """
    Long-lived handle on one git repository.

    Every git invocation goes through this object so that the working tree
    path is resolved once and passed explicitly to collaborators.
    """

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    @classmethod
    def discover(cls, path: str = ".") -> "GitRepository":
        """
        Find the repository enclosing ``path``.

        Raises:
            RepositoryNotFoundError: if ``path`` is not inside a work tree
        """
        if not os.path.isdir(path):
            raise RepositoryNotFoundError(f"Not a git repository: {path}")

        result = subprocess.run(
            ["git", "-C", path, "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0 or not result.stdout.strip():
            raise RepositoryNotFoundError(f"Not a git repository: {path}")

        return cls(result.stdout.strip())

    def git_args(self, *args: str) -> List[str]:
        # Paths come back as plain UTF-8 instead of octal-escaped quoted strings
        return [
            "git",
            "-C",
            self.root,
            "--no-pager",
            "-c",
            "core.quotePath=false",
        ] + list(args)

    def run(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            self.git_args(*args),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )

    def read_bytes(self, *args: str) -> bytes:
        result = subprocess.run(self.git_args(*args), capture_output=True)
        if result.returncode != 0:
            return b""
        return result.stdout


# ============================================================================
# BLOB RESOLUTION
# ============================================================================


SUBMODULE_MODE = "160000"


@dataclass
class Blob:
    """A regular file stored at one revision"""

    repository: GitRepository
    object_id: str
    path: str
    mode: str = "100644"
    _data: Optional[bytes] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def data(self) -> bytes:
        if self._data is None:
            self._data = self.repository.read_bytes("cat-file", "blob", self.object_id)
        return self._data


@dataclass
class Submodule:
    """A gitlink entry pointing at another repository"""

    object_id: str
    path: str

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


ResolvedEntry = Union[Blob, Submodule, None]


class GitBlobResolver:
    """
    Look up ``path`` in the tree of ``sha`` using ``git ls-tree``.

    ``resolve`` returns a Blob, a Submodule, or None when the path is absent
    (or names a directory) at that revision.
    """

    def __init__(self, repository: GitRepository):
        self.repository = repository

    def resolve(self, sha: str, path: str) -> ResolvedEntry:
        if not sha or not path:
            return None

        result = self.repository.run("ls-tree", "-z", "--full-tree", sha, "--", path)
        if result.returncode != 0:
            return None

        for line in result.stdout.split("\0"):
            # <mode> SP <type> SP <object> TAB <path>, NUL-terminated and unquoted
            meta, _, entry_path = line.partition("\t")
            parts = meta.split()
            if len(parts) != 3 or entry_path != path:
                continue

            mode, object_type, object_id = parts
            if mode == SUBMODULE_MODE or object_type == "commit":
                return Submodule(object_id=object_id, path=path)
            if object_type == "blob":
                return Blob(
                    repository=self.repository,
                    object_id=object_id,
                    path=path,
                    mode=mode,
                )

        return None


# ============================================================================
# FILE CLASSIFICATION
# ============================================================================


UNKNOWN_LANGUAGE = "Unknown"

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".py": "Python",
    ".pyw": "Python",
    ".pyi": "Python",
    ".ipynb": "Jupyter Notebook",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".java": "Java",
    ".kt": "Kotlin",
    ".swift": "Swift",
    ".go": "Go",
    ".rs": "Rust",
    ".php": "PHP",
    ".rb": "Ruby",
    ".rake": "Ruby",
    ".gemspec": "Ruby",
    ".cs": "C#",
    ".c": "C",
    ".h": "C",
    ".cc": "C++",
    ".cpp": "C++",
    ".hpp": "C++",
    ".m": "Objective-C",
    ".mm": "Objective-C++",
    ".scala": "Scala",
    ".clj": "Clojure",
    ".ex": "Elixir",
    ".exs": "Elixir",
    ".erl": "Erlang",
    ".hs": "Haskell",
    ".lua": "Lua",
    ".pl": "Perl",
    ".r": "R",
    ".dart": "Dart",
    ".sql": "SQL",
    ".sh": "Shell",
    ".bash": "Shell",
    ".zsh": "Shell",
    ".ps1": "PowerShell",
    ".vim": "Vim script",
    ".tf": "HCL",
    ".yml": "YAML",
    ".yaml": "YAML",
    ".json": "JSON",
    ".toml": "TOML",
    ".ini": "INI",
    ".xml": "XML",
    ".md": "Markdown",
    ".markdown": "Markdown",
    ".rst": "reStructuredText",
    ".tex": "TeX",
    ".html": "HTML",
    ".htm": "HTML",
    ".erb": "HTML+ERB",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "Sass",
    ".less": "Less",
}

LANGUAGE_BY_FILENAME: Dict[str, str] = {
    "Makefile": "Makefile",
    "GNUmakefile": "Makefile",
    "Dockerfile": "Dockerfile",
    "Gemfile": "Ruby",
    "Rakefile": "Ruby",
    "Guardfile": "Ruby",
    "Vagrantfile": "Ruby",
    "CMakeLists.txt": "CMake",
}

IMAGE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".bmp",
    ".ico",
    ".tif",
    ".tiff",
    ".webp",
}

VENDORED_PATTERNS = [
    re.compile(p)
    for p in (
        r"(^|/)vendors?/",
        r"(^|/)node_modules/",
        r"(^|/)bower_components/",
        r"(^|/)third[_-]?party/",
        r"(^|/)external/",
        r"(^|/)deps/",
        r"(^|/)jquery([^/]*)\.js$",
        r"(^|/)bootstrap([^/]*)\.(js|css)$",
    )
]

GENERATED_PATTERNS = [
    re.compile(p)
    for p in (
        r"\.min\.(js|css)$",
        r"\.map$",
        r"_pb2(_grpc)?\.py$",
        r"\.pb\.(go|cc|h)$",
        r"(^|/)package-lock\.json$",
        r"(^|/)yarn\.lock$",
        r"(^|/)Gemfile\.lock$",
        r"(^|/)poetry\.lock$",
        r"(^|/)Cargo\.lock$",
        r"(^|/)go\.sum$",
    )
]

GENERATED_MARKERS = (
    b"@generated",
    b"Code generated by",
    b"DO NOT EDIT",
    b"This file is automatically generated",
    b"Generated by Django",
)

BINARY_SNIFF_BYTES = 8000
MARKER_SNIFF_LINES = 5


@dataclass
class FileTraits:
    language: str = UNKNOWN_LANGUAGE
    binary: bool = False
    image: bool = False
    vendored: bool = False
    generated: bool = False


class FileClassifier:
    """
    Classify blob content the way a code-statistics report needs it.

    Language detection is filename first, then extension; ``overrides`` maps
    extensions (with or without the leading dot) or exact filenames to a
    language label and wins over the built-in tables.
    """

    def __init__(self, overrides: Optional[Dict[str, str]] = None):
        self.by_extension = dict(LANGUAGE_BY_EXTENSION)
        self.by_filename = dict(LANGUAGE_BY_FILENAME)

        for key, language in (overrides or {}).items():
            key = str(key)
            if key.startswith(".") or "." not in key:
                ext = key if key.startswith(".") else f".{key}"
                self.by_extension[ext.lower()] = str(language)
            else:
                self.by_filename[key] = str(language)

    def detect_language(self, path: str) -> str:
        name = os.path.basename(path)
        if name in self.by_filename:
            return self.by_filename[name]

        ext = os.path.splitext(name)[1].lower()
        return self.by_extension.get(ext, UNKNOWN_LANGUAGE)

    @staticmethod
    def is_image(path: str) -> bool:
        return os.path.splitext(path)[1].lower() in IMAGE_EXTENSIONS

    @staticmethod
    def is_binary(data: bytes) -> bool:
        # Same heuristic git uses for diffs
        return b"\x00" in data[:BINARY_SNIFF_BYTES]

    @staticmethod
    def is_vendored(path: str) -> bool:
        return any(p.search(path) for p in VENDORED_PATTERNS)

    @staticmethod
    def is_generated(path: str, data: bytes) -> bool:
        if any(p.search(path) for p in GENERATED_PATTERNS):
            return True

        prefix = data[:BINARY_SNIFF_BYTES]
        head = b"\n".join(prefix.splitlines()[:MARKER_SNIFF_LINES])
        return any(marker in head for marker in GENERATED_MARKERS)

    def classify(self, blob: Blob) -> FileTraits:
        """
        Classify one blob.

        Args:
            blob: resolved Blob (content is read on demand)

        Returns:
            FileTraits with language label ("Unknown" when undetected)
        """
        path = blob.path
        image = self.is_image(path)
        data = b"" if image else blob.data
        binary = image or self.is_binary(data)

        return FileTraits(
            language=self.detect_language(path),
            binary=binary,
            image=image,
            vendored=self.is_vendored(path),
            generated=(not binary) and self.is_generated(path, data),
        )
