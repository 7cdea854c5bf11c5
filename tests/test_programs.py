"""
Tests for the program indexer.

Uses real descriptor files on disk.
"""

from monolaunch.services.preferences import Preferences
from monolaunch.services.programs import (
    MAX_KEYWORDS,
    build_index,
    extract_keywords,
    normalize_exec,
    parse_descriptor,
)

from conftest import write_desktop


class TestParseDescriptor:
    """Test Key=Value parsing."""

    def test_first_occurrence_wins(self):
        text = "Name=First\nName=Second\nExec=run\n"
        assert parse_descriptor(text)["Name"] == "First"

    def test_desktop_actions_do_not_override_main_entry(self):
        text = "[Desktop Entry]\nExec=app\n\n[Desktop Action x]\nExec=app --other\n"
        assert parse_descriptor(text)["Exec"] == "app"

    def test_ignores_unrecognized_keys_and_lines_without_equals(self):
        text = "# comment\n\nType=Application\nName=App\nnot a pair\n"
        assert parse_descriptor(text) == {"Name": "App"}

    def test_localized_keys_are_not_recognized(self):
        text = "Name[de]=Anwendung\nName=App\n"
        assert parse_descriptor(text)["Name"] == "App"

    def test_value_keeps_embedded_equals(self):
        text = "Exec=env GDK_BACKEND=x11 app\n"
        assert parse_descriptor(text)["Exec"] == "env GDK_BACKEND=x11 app"

    def test_empty_value_does_not_block_later_value(self):
        text = "Icon=\nIcon=app-icon\n"
        assert parse_descriptor(text)["Icon"] == "app-icon"


class TestNormalizeExec:
    """Test placeholder stripping."""

    def test_strips_placeholders(self):
        assert normalize_exec("app.sh %f %U") == "app.sh"

    def test_keeps_regular_arguments(self):
        assert normalize_exec("app --flag %u value") == "app --flag value"

    def test_no_placeholders_unchanged(self):
        assert normalize_exec("gnome-terminal") == "gnome-terminal"


class TestExtractKeywords:
    """Test weighted keyword extraction."""

    def test_weights_by_field(self):
        keywords = extract_keywords("Web Browser", "Surf", "Browser")
        assert keywords == [
            ("web", 1000),
            ("browser", 1000),
            ("surf", 1),
            ("browser", 1),
        ]

    def test_empty_fields_contribute_nothing(self):
        assert extract_keywords("App", None, "") == [("app", 1000)]

    def test_truncated_to_limit(self):
        long_comment = " ".join(f"word{i}" for i in range(50))
        keywords = extract_keywords("Name", long_comment, "Generic Name")
        assert len(keywords) == MAX_KEYWORDS
        assert keywords[0] == ("name", 1000)


class TestBuildIndex:
    """Test scanning directories into a ranked index."""

    def test_drops_descriptors_without_exec(self, tmp_applications):
        programs = build_index([tmp_applications], Preferences())
        ids = [p.id for p in programs]
        assert str(tmp_applications / "template.desktop") not in ids
        assert len(programs) == 3

    def test_exec_has_no_placeholders(self, tmp_applications):
        programs = build_index([tmp_applications], Preferences())
        for program in programs:
            assert "%" not in program.exec
        firefox = next(p for p in programs if p.name == "Firefox Web Browser")
        assert firefox.exec == "firefox"
        assert firefox.icon == "firefox"
        assert firefox.generic_name == "Web Browser"

    def test_id_is_descriptor_path(self, tmp_applications):
        programs = build_index([tmp_applications], Preferences())
        assert {p.id for p in programs} == {
            str(tmp_applications / "code.desktop"),
            str(tmp_applications / "firefox.desktop"),
            str(tmp_applications / "nautilus.desktop"),
        }

    def test_sorted_by_run_count(self, tmp_applications):
        prefs = Preferences(count={
            str(tmp_applications / "nautilus.desktop"): 9,
            str(tmp_applications / "firefox.desktop"): 3,
        })
        programs = build_index([tmp_applications], prefs)
        assert [p.name for p in programs] == ["Files", "Firefox Web Browser", "Visual Studio Code"]
        assert [p.run_count for p in programs] == [9, 3, 0]

    def test_ties_keep_scan_order(self, tmp_path):
        apps_dir = tmp_path / "apps"
        apps_dir.mkdir()
        for name in ["d", "a", "c", "b"]:
            write_desktop(apps_dir, f"{name}.desktop", f"Name={name}\nExec={name}\n")
        prefs = Preferences(count={str(apps_dir / "c.desktop"): 1})

        programs = build_index([apps_dir], prefs)
        assert [p.name for p in programs] == ["c", "a", "b", "d"]

    def test_directory_order_is_scan_order(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.mkdir()
        second.mkdir()
        write_desktop(first, "z.desktop", "Name=z\nExec=z\n")
        write_desktop(second, "a.desktop", "Name=a\nExec=a\n")

        programs = build_index([first, second], Preferences())
        assert [p.name for p in programs] == ["z", "a"]

    def test_is_idempotent(self, tmp_applications):
        prefs = Preferences(count={str(tmp_applications / "code.desktop"): 2})
        assert build_index([tmp_applications], prefs) == build_index([tmp_applications], prefs)

    def test_duplicate_directories_scanned_once(self, tmp_applications):
        programs = build_index([tmp_applications, tmp_applications], Preferences())
        assert len(programs) == 3

    def test_keywords_never_exceed_limit(self, tmp_path):
        apps_dir = tmp_path / "apps"
        apps_dir.mkdir()
        words = " ".join(f"w{i}" for i in range(40))
        write_desktop(apps_dir, "big.desktop", f"Name={words}\nComment={words}\nExec=big\n")

        programs = build_index([apps_dir], Preferences())
        assert len(programs[0].keywords) == MAX_KEYWORDS
        assert all(weight == 1000 for _, weight in programs[0].keywords)


class TestBuildIndexErrors:
    """Per-directory and per-file failures don't abort the scan."""

    def test_empty_directory_set(self):
        assert build_index([], Preferences()) == []

    def test_missing_directory_is_skipped(self, tmp_path, tmp_applications):
        programs = build_index([tmp_path / "missing", tmp_applications], Preferences())
        assert len(programs) == 3

    def test_file_given_as_directory_is_skipped(self, tmp_applications):
        not_a_dir = tmp_applications / "firefox.desktop"
        programs = build_index([not_a_dir, tmp_applications], Preferences())
        assert len(programs) == 3

    def test_undecodable_file_is_skipped(self, tmp_applications):
        (tmp_applications / "broken.desktop").write_bytes(b"Name=\xff\xfe\nExec=\xff\n")
        programs = build_index([tmp_applications], Preferences())
        assert len(programs) == 3

    def test_subdirectories_are_not_scanned(self, tmp_applications):
        nested = tmp_applications / "nested"
        nested.mkdir()
        write_desktop(nested, "hidden.desktop", "Name=Hidden\nExec=hidden\n")
        programs = build_index([tmp_applications], Preferences())
        assert "Hidden" not in [p.name for p in programs]
