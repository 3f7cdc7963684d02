import pytest

from git_statistics import (
    CREATED_OR_DELETED,
    MODIFIED,
    MODIFIED_WITH_RENAME,
    RENAMED_OR_COPIED,
    ChangeSetAccumulator,
    classify_line,
    parse_count,
    split_old_new_file,
    unquote_path,
)


# ============================================================================
# PATH SPLITTING
# ============================================================================


class TestSplitOldNewFile:
    def test_change_in_middle(self):
        old, new = split_old_new_file("lib/{old_dir", "new_dir}/file.rb")
        assert old == "lib/old_dir/file.rb"
        assert new == "lib/new_dir/file.rb"

    def test_change_at_beginning(self):
        old, new = split_old_new_file("{src/dir/lib", "lib/dir}/file.rb")
        assert old == "src/dir/lib/file.rb"
        assert new == "lib/dir/file.rb"

    def test_empty_old_segment(self):
        old, new = split_old_new_file("src/{", "dir}/file.rb")
        assert old == "src/file.rb"
        assert new == "src/dir/file.rb"

    def test_empty_new_segment(self):
        old, new = split_old_new_file("{lib", "}/file.rb")
        assert old == "lib/file.rb"
        assert new == "file.rb"

    def test_change_at_ending(self):
        old, new = split_old_new_file("lib/dir/{old_file.rb", "new_file.rb}")
        assert old == "lib/dir/old_file.rb"
        assert new == "lib/dir/new_file.rb"

    def test_simple_complete_change(self):
        old, new = split_old_new_file("file.rb", "lib/dir/file.rb}")
        assert old == "file.rb"
        assert new == "lib/dir/file.rb"

    def test_no_braces(self):
        assert split_old_new_file("a.txt ", " b.txt") == ("a.txt", "b.txt")


def test_parse_count():
    assert parse_count("12") == 12
    assert parse_count("0") == 0
    assert parse_count("-") == 0


# ============================================================================
# LINE CLASSIFICATION
# ============================================================================


class TestClassifyLine:
    def test_modified(self):
        result = classify_line("10\t5\tlib/git_statistics/collector.rb")
        assert result.kind == MODIFIED
        assert result.path == "lib/git_statistics/collector.rb"
        assert result.additions == 10
        assert result.deletions == 5
        assert result.old_path is None
        assert result.status is None

    def test_modified_binary_counts(self):
        result = classify_line("-\t-\tassets/logo.png")
        assert result.kind == MODIFIED
        assert result.additions == 0
        assert result.deletions == 0

    def test_modified_path_with_spaces(self):
        result = classify_line("1\t0\tdocs/release notes.md")
        assert result.path == "docs/release notes.md"

    def test_modified_with_brace_rename(self):
        result = classify_line("3\t1\tlib/{old_dir => new_dir}/file.rb")
        assert result.kind == MODIFIED_WITH_RENAME
        assert result.path == "lib/new_dir/file.rb"
        assert result.old_path == "lib/old_dir/file.rb"
        assert result.additions == 3
        assert result.deletions == 1

    def test_modified_with_plain_rename(self):
        result = classify_line("0\t0\told.rb => new.rb")
        assert result.kind == MODIFIED_WITH_RENAME
        assert result.path == "new.rb"
        assert result.old_path == "old.rb"

    def test_rename_counts_take_precedence_over_plain_counts(self):
        # Both count rules match this line; the rename rule must win
        result = classify_line("1\t2\tsrc/{a => b}/x.py")
        assert result.kind == MODIFIED_WITH_RENAME

    def test_create_mode(self):
        result = classify_line(" create mode 100644 lib/git_statistics.rb")
        assert result.kind == CREATED_OR_DELETED
        assert result.status == "created"
        assert result.path == "lib/git_statistics.rb"

    def test_delete_mode(self):
        result = classify_line("delete mode 100755 bin/run")
        assert result.kind == CREATED_OR_DELETED
        assert result.status == "deleted"
        assert result.path == "bin/run"

    def test_rename_marker(self):
        result = classify_line("rename lib/{old_dir => new_dir}/file.rb (87%)")
        assert result.kind == RENAMED_OR_COPIED
        assert result.status == "renamed"
        assert result.old_path == "lib/old_dir/file.rb"
        assert result.path == "lib/new_dir/file.rb"
        assert result.similar == 87

    def test_copy_marker(self):
        result = classify_line("copy README.md => docs/README.md (100%)")
        assert result.kind == RENAMED_OR_COPIED
        assert result.status == "copied"
        assert result.old_path == "README.md"
        assert result.path == "docs/README.md"
        assert result.similar == 100

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   ",
            "mode change 100644 => 100755 bin/run",
            "Merge branch 'feature'",
            "1a\t2\tfile.txt",
        ],
    )
    def test_unrecognized_lines(self, line):
        assert classify_line(line) is None


# ============================================================================
# CHANGE-SET ACCUMULATION
# ============================================================================


class TestChangeSetAccumulator:
    def test_counts_then_create_marker(self):
        acc = ChangeSetAccumulator()
        acc.add_line("11\t0\tREADME.md")
        acc.add_line("62\t0\tlib/git_statistics.rb")
        acc.add_line("create mode 100644 README.md")
        acc.add_line("create mode 100644 lib/git_statistics.rb")

        changes = acc.changes()
        assert [c.name for c in changes] == ["README.md", "lib/git_statistics.rb"]
        assert all(c.status == "created" for c in changes)
        assert changes[0].additions == 11
        assert changes[1].additions == 62

    def test_marker_then_counts(self):
        acc = ChangeSetAccumulator()
        acc.add_line("delete mode 100644 old.txt")
        acc.add_line("0\t9\told.txt")

        changes = acc.changes()
        assert len(changes) == 1
        assert changes[0].status == "deleted"
        assert changes[0].deletions == 9

    def test_rename_counts_augmented_by_marker(self):
        acc = ChangeSetAccumulator()
        acc.add_line("2\t1\tlib/{old_dir => new_dir}/file.rb")
        acc.add_line("rename lib/{old_dir => new_dir}/file.rb (95%)")

        changes = acc.changes()
        assert len(changes) == 1
        change = changes[0]
        assert change.name == "lib/new_dir/file.rb"
        assert change.old_name == "lib/old_dir/file.rb"
        assert change.status == "renamed"
        assert change.similar == 95
        assert change.additions == 2
        assert change.deletions == 1

    def test_marker_without_counts_is_appended(self):
        acc = ChangeSetAccumulator()
        acc.add_line("1\t1\ta.txt")
        acc.add_line("copy a.txt => b.txt (100%)")

        changes = acc.changes()
        assert [c.name for c in changes] == ["a.txt", "b.txt"]
        assert changes[1].status == "copied"
        assert changes[1].old_name == "a.txt"
        assert changes[1].additions == 0

    def test_second_counts_line_overwrites(self):
        acc = ChangeSetAccumulator()
        acc.add_line("1\t1\ta.txt")
        acc.add_line("4\t2\ta.txt")

        assert len(acc) == 1
        assert acc.get("a.txt").additions == 4
        assert acc.get("a.txt").deletions == 2

    def test_ignored_lines(self):
        acc = ChangeSetAccumulator()
        assert acc.add_line("") is False
        assert acc.add_line("mode change 100644 => 100755 run.sh") is False
        assert acc.add_line("3\t0\trun.sh") is True
        assert len(acc) == 1

    def test_unmodified_status_stays_unset(self):
        acc = ChangeSetAccumulator()
        acc.add_line("3\t3\tsrc/main.py")
        assert acc.changes()[0].status is None


# ============================================================================
# QUOTED PATHS
# ============================================================================


class TestQuotedPaths:
    @pytest.mark.parametrize(
        "quoted, path",
        [
            ("plain.py", "plain.py"),
            ('"caf\\303\\251.py"', "café.py"),
            ('"tab\\there.txt"', "tab\there.txt"),
            ('"say \\"hi\\".md"', 'say "hi".md'),
            ('"back\\\\slash.txt"', "back\\slash.txt"),
            ('"', '"'),
        ],
    )
    def test_unquote_path(self, quoted, path):
        assert unquote_path(quoted) == path

    def test_quoted_counts_line(self):
        result = classify_line('2\t0\t"caf\\303\\251.py"')
        assert result.kind == MODIFIED
        assert result.path == "café.py"

    def test_quoted_create_marker_keeps_whole_path(self):
        result = classify_line('create mode 100644 "caf\\303\\251.py"')
        assert result.status == "created"
        assert result.path == "café.py"

    def test_quoted_rename_sides(self):
        result = classify_line('rename "a\\tb.txt" => "dir/a\\tb.txt" (100%)')
        assert result.old_path == "a\tb.txt"
        assert result.path == "dir/a\tb.txt"

    def test_quoted_file_is_one_change(self):
        acc = ChangeSetAccumulator()
        acc.add_line('2\t0\t"caf\\303\\251.py"')
        acc.add_line('create mode 100644 "caf\\303\\251.py"')

        changes = acc.changes()
        assert len(changes) == 1
        assert changes[0].name == "café.py"
        assert changes[0].status == "created"
        assert changes[0].additions == 2
