"""
Tests for the mapinfo.lua table reader.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from map_cache.media.mapinfo import (
    MapInfoError,
    json_safe,
    load_mapinfo,
    lookup,
    parse_lua_table,
)

MAPINFO = """
--------------------------------------------------------------------------------
-- mapinfo for Comet Catcher Redux
--------------------------------------------------------------------------------
local mapinfo = {
    name        = "Comet Catcher Redux",
    shortname   = "CCR",
    description = 'Land on a "comet"',
    version     = "v3.1",
    mapHardness = 150,
    gravity     = 120.5,
    tidalStrength = 0x0F,
    maxMetal    = 0.02 * 100,
    extractorRadius = -(-80),

    atmosphere = {
        minWind = 5,
        maxWind = 25,
    },

    --[[ disabled block
    lighting = { sunDir = {0, 1, 2} },
    ]]

    teams = {
        [0] = {startPos = {x = 512, z = 1024}},
        [1] = {startPos = {x = 4096, z = 3072}},
    },

    resources = { [[detailtex.bmp]], "specular.dds"; },
    custom = { enabled = true, nothing = nil, },
}

return mapinfo
"""


class TestParseLuaTable:
    """Test evaluating table literals."""

    def test_full_mapinfo(self) -> None:
        table = parse_lua_table(MAPINFO)

        assert table["name"] == "Comet Catcher Redux"
        assert table["description"] == 'Land on a "comet"'
        assert table["mapHardness"] == 150
        assert table["gravity"] == 120.5
        assert table["tidalStrength"] == 15
        assert table["maxMetal"] == pytest.approx(2.0)
        assert table["extractorRadius"] == 80
        assert table["atmosphere"] == {"minWind": 5, "maxWind": 25}
        assert "lighting" not in table
        assert table["teams"][1]["startPos"] == {"x": 4096, "z": 3072}
        assert table["resources"] == ["detailtex.bmp", "specular.dds"]
        assert table["custom"] == {"enabled": True, "nothing": None}

    def test_bare_table(self) -> None:
        assert parse_lua_table('{ name = "Tiny" }') == {"name": "Tiny"}

    def test_sequence_becomes_list(self) -> None:
        assert parse_lua_table("return { 1, 2, 3 }") == [1, 2, 3]

    def test_empty_table(self) -> None:
        assert parse_lua_table("return {}") == {}

    def test_long_string_drops_leading_newline(self) -> None:
        table = parse_lua_table('return { text = [==[\nline one\nline "two"]==] }')
        assert table["text"] == 'line one\nline "two"'

    def test_escapes(self) -> None:
        table = parse_lua_table(r'return { text = "tab\there\nnext" }')
        assert table["text"] == "tab\there\nnext"

    def test_function_call_rejected(self) -> None:
        with pytest.raises(MapInfoError):
            parse_lua_table("return { name = getName() }")

    def test_missing_table(self) -> None:
        with pytest.raises(MapInfoError):
            parse_lua_table("return 42")

    def test_unterminated_table(self) -> None:
        with pytest.raises(MapInfoError):
            parse_lua_table("return { name = 'x',")


class TestLookup:
    """Test case-insensitive access."""

    def test_nested_lookup_ignores_case(self) -> None:
        table = parse_lua_table(MAPINFO)
        assert lookup(table, "ATMOSPHERE", "minwind") == 5

    def test_default_for_missing_or_non_table(self) -> None:
        table = {"gravity": 100, "nothing": None}

        assert lookup(table, "smf", "minHeight", default=-1) == -1
        assert lookup(table, "gravity", "x", default=0) == 0
        assert lookup(table, "nothing", default="fallback") == "fallback"
        assert lookup(None, "name", default="n/a") == "n/a"

    def test_json_safe_stringifies_keys(self) -> None:
        assert json_safe({0: {"a": [1, {2: "b"}]}}) == {"0": {"a": [1, {"2": "b"}]}}


class TestLoadMapinfo:
    """Test reading mapinfo files from disk."""

    def test_load(self, temp_dir: Path) -> None:
        path = temp_dir / "mapinfo.lua"
        path.write_text(MAPINFO, encoding="utf-8")

        assert load_mapinfo(path)["version"] == "v3.1"

    def test_unreadable_file_returns_none(self, temp_dir: Path) -> None:
        path = temp_dir / "mapinfo.lua"
        path.write_text("return { name = VFS.Include('x') }", encoding="utf-8")

        assert load_mapinfo(path) is None

    def test_list_at_top_level_returns_none(self, temp_dir: Path) -> None:
        path = temp_dir / "mapinfo.lua"
        path.write_text("return { 'a', 'b' }", encoding="utf-8")

        assert load_mapinfo(path) is None
