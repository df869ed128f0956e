"""Tests for the universal and tool-specific target handlers."""

from __future__ import annotations

from pathlib import Path

import pytest

from aisync.config_schema import FileMapping, ReplaceRule
from aisync.errors import ConfigError
from aisync.sync.handlers import (
    KNOWN_TOOLS,
    ToolHandler,
    UniversalHandler,
    resolve_destination,
)

# ---------------------------------------------------------------------------
# Destination resolution
# ---------------------------------------------------------------------------


class TestResolveDestination:
    """Tests for resolve_destination() and get_target_path()."""

    def test_no_base_path_is_verbatim(self, make_target):
        """Without a base path the destination is used as written."""
        target = make_target(path=None)
        assert resolve_destination(target, "out/a.md") == Path("out/a.md")

    def test_relative_joined_to_base(self, make_target):
        """Relative destinations are joined to the base path."""
        target = make_target(path="/proj")
        assert resolve_destination(target, ".kiro/a.md") == Path(
            "/proj/.kiro/a.md"
        )

    def test_absolute_destination_kept(self, make_target):
        """Absolute destinations ignore the base path."""
        target = make_target(path="/proj")
        assert resolve_destination(target, "/etc/x.md") == Path("/etc/x.md")

    def test_get_target_path_first_match(self, make_target):
        """The first matching mapping decides the destination."""
        target = make_target([("*.md", "one.md"), ("a.md", "two.md")])
        path = UniversalHandler().get_target_path(target, "docs/a.md")
        assert path == Path("one.md")

    def test_get_target_path_no_mapping_raises(self, make_target):
        """The error names both the file and the target."""
        target = make_target([("a.md", "out/a.md")], name="cursor")
        with pytest.raises(ConfigError, match="No mapping found.*b.md.*cursor"):
            UniversalHandler().get_target_path(target, "b.md")


# ---------------------------------------------------------------------------
# UniversalHandler
# ---------------------------------------------------------------------------


class TestUniversalHandler:
    """Tests for UniversalHandler."""

    def test_handles_any_type(self):
        """The universal handler accepts every type."""
        handler = UniversalHandler()
        assert handler.can_handle("kiro")
        assert handler.can_handle("anything-else")

    def test_transform_uses_matching_mapping(self, make_target):
        """Only the rules of the matching mapping are applied."""
        target = make_target(
            [
                FileMapping(
                    source="a.md",
                    destination="out/a.md",
                    transform=[ReplaceRule(pattern="Kiro", replacement="Cursor")],
                ),
                FileMapping(source="b.md", destination="out/b.md"),
            ]
        )
        handler = UniversalHandler()
        assert handler.transform("Kiro", target, "a.md") == "Cursor"
        assert handler.transform("Kiro", target, "b.md") == "Kiro"
        assert handler.transform("Kiro", target, "zzz.md") == "Kiro"

    def test_validate_accepts_good_target(self, make_target):
        """A named target with one mapping is valid."""
        assert UniversalHandler().validate(make_target()) is True

    def test_validate_rejects_empty_mapping(self, make_target):
        """A target without mappings is invalid."""
        handler = UniversalHandler()
        target = make_target(mappings=[])
        assert handler.validate(target) is False
        assert "at least one mapping is required" in handler.validation_errors(
            target
        )

    def test_validate_rejects_empty_fields(self, make_target):
        """Blank names and mapping fields are reported."""
        handler = UniversalHandler()
        target = make_target([("", "out/a.md")], name=" ")
        errors = handler.validation_errors(target)
        assert "name is required" in errors
        assert "mapping[0] requires both source and destination" in errors

    def test_validate_rejects_blank_path(self, make_target):
        """A whitespace-only path is invalid."""
        assert UniversalHandler().validate(make_target(path="  ")) is False


# ---------------------------------------------------------------------------
# ToolHandler
# ---------------------------------------------------------------------------


class TestToolHandler:
    """Tests for ToolHandler destination checks."""

    def test_handles_only_its_type(self):
        """A tool handler serves its own type only."""
        handler = ToolHandler("cursor", KNOWN_TOOLS["cursor"])
        assert handler.can_handle("cursor")
        assert not handler.can_handle("kiro")

    def test_destination_inside_tree(self, make_target, tmp_path):
        """Destinations under the tool directory are accepted."""
        handler = ToolHandler("cursor", (".cursor",))
        target = make_target(
            [("rules.md", ".cursor/rules/rules.md")],
            type="cursor",
            path=str(tmp_path),
        )
        assert handler.validate(target) is True

    def test_destination_outside_tree(self, make_target, tmp_path):
        """Destinations outside the tool directory are reported."""
        handler = ToolHandler("cursor", (".cursor",))
        target = make_target(
            [("rules.md", ".kiro/steering/rules.md")],
            type="cursor",
            path=str(tmp_path),
        )
        errors = handler.validation_errors(target)
        assert handler.validate(target) is False
        assert any(".kiro/steering/rules.md" in e for e in errors)

    def test_parent_escape_rejected(self, make_target, tmp_path):
        """A .. segment cannot escape the tool directory."""
        handler = ToolHandler("kiro", (".kiro",))
        target = make_target(
            [("rules.md", ".kiro/../rules.md")],
            type="kiro",
            path=str(tmp_path),
        )
        assert handler.validate(target) is False

    def test_no_base_path_uses_cwd(self, make_target, workspace):
        """Without a base path the tree is checked against the working directory."""
        handler = ToolHandler("vscode", (".vscode",))
        target = make_target([("mcp.json", ".vscode/mcp.json")], type="vscode")
        assert handler.validate(target) is True

    def test_known_tools_table(self):
        """KNOWN_TOOLS lists the supported tools and their directories."""
        assert KNOWN_TOOLS["gemini-cli"] == (".gemini",)
        assert set(KNOWN_TOOLS) == {
            "kiro",
            "cursor",
            "vscode",
            "claudecode",
            "gemini-cli",
        }
