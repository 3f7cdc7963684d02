import os
import subprocess
from unittest.mock import MagicMock

import pytest

from blob_inspector import Blob, FileClassifier, FileTraits, GitRepository, Submodule
from git_statistics import (
    CommitBuilder,
    CommitRecord,
    CommitStore,
    FileChange,
    ProgressReporter,
)

FIXTURES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")


def fixture(name: str) -> str:
    return os.path.join(FIXTURES_DIR, name)


SHA_A = "a" * 40
SHA_B = "b" * 40
SHA_C = "c" * 40


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def chunk_dir(tmp_path):
    return str(tmp_path / ".git_statistics")


@pytest.fixture
def store_factory(chunk_dir):
    def make(limit=100, fresh=True, pretty=False):
        return CommitStore(chunk_dir, limit=limit, fresh=fresh, pretty=pretty)

    return make


@pytest.fixture
def loaded_store(store_factory):
    """Store holding the three commits of multiple_authors.json"""

    def make(limit=100, name="multiple_authors.json"):
        return store_factory(limit=limit).load(fixture(name))

    return make


@pytest.fixture
def sample_commits():
    """Two authors, one merge, files in Markdown and Ruby."""
    first = CommitRecord(
        sha=SHA_A,
        author="Alice Smith",
        author_email="alice@example.com",
        time="2023-11-14T22:13:20+00:00",
    )
    first.add_file(FileChange("docs/guide.md", status="created", additions=20, language="Markdown"))
    first.add_file(FileChange("src/app.rb", status="created", additions=50, language="Ruby"))

    second = CommitRecord(
        sha=SHA_B,
        author="Bob Jones",
        author_email="bob@example.com",
        time="2023-11-16T03:46:40+00:00",
    )
    second.add_file(FileChange("src/app.rb", additions=10, deletions=3, language="Ruby"))
    second.add_file(
        FileChange(
            "src/helpers.rb",
            old_name="src/util.rb",
            status="renamed",
            similar=90,
            additions=2,
            deletions=1,
            language="Ruby",
        )
    )

    third = CommitRecord(
        sha=SHA_C,
        author="Alice Smith",
        author_email="alice@example.com",
        time="2023-11-17T09:06:40+00:00",
        merge=True,
    )
    third.add_file(FileChange("docs/guide.md", additions=5, deletions=8, language="Markdown"))
    third.add_file(FileChange("docs/old.md", status="deleted", deletions=12, language="Markdown"))

    return [first, second, third]


class FakeResolver:
    """Resolver backed by a {(sha, path): entry} table"""

    def __init__(self, entries=None):
        self.entries = entries or {}
        self.calls = []

    def resolve(self, sha, path):
        self.calls.append((sha, path))
        return self.entries.get((sha, path))


class FakeClassifier:
    def __init__(self, traits=None):
        self.classifier = FileClassifier()
        self.traits = traits or {}

    def classify(self, blob):
        if blob.path in self.traits:
            return self.traits[blob.path]
        return FileTraits(language=self.classifier.detect_language(blob.path))


def make_blob(path, data=b"text\n"):
    return Blob(repository=MagicMock(), object_id="0" * 40, path=path, _data=data)


def make_submodule(path):
    return Submodule(object_id="1" * 40, path=path)


@pytest.fixture
def fake_resolver():
    return FakeResolver()


@pytest.fixture
def builder(fake_resolver, quiet_reporter):
    return CommitBuilder(fake_resolver, FakeClassifier(), reporter=quiet_reporter)


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()

    def run(*args, env=None):
        subprocess.run(
            ["git", "-C", str(repo)] + list(args),
            check=True,
            capture_output=True,
            env=env,
        )

    def commit_as(name, email, message):
        env = dict(
            os.environ,
            GIT_AUTHOR_NAME=name,
            GIT_AUTHOR_EMAIL=email,
            GIT_COMMITTER_NAME=name,
            GIT_COMMITTER_EMAIL=email,
        )
        run("commit", "-m", message, env=env)

    run("init", "-b", "main")
    run("config", "user.email", "tester@test.com")
    run("config", "user.name", "Tester")
    run("config", "commit.gpgsign", "false")

    # Commit 1 - two new files
    (repo / "app.py").write_text("print('hello')\n", encoding="utf-8")
    (repo / "README.md").write_text("# App\n\nIntro\n", encoding="utf-8")
    run("add", ".")
    commit_as("Alice Smith", "alice@example.com", "initial")

    # Commit 2 - modify and move into a directory
    (repo / "app.py").write_text("print('hello')\nprint('world')\n", encoding="utf-8")
    (repo / "lib").mkdir()
    run("mv", "README.md", "lib/README.md")
    run("add", ".")
    commit_as("Bob Jones", "bob@example.com", "update and move")

    # Commit 3 - delete a file
    run("rm", "-q", "app.py")
    commit_as("Alice Smith", "alice@example.com", "remove app")

    return str(repo)


@pytest.fixture
def repository(git_repo):
    return GitRepository(git_repo)
