from __future__ import annotations

import pytest

from mlprovision.errors import CommandPackError
from mlprovision.registry import DEFAULT_PACK, CommandPackRegistry


class TestCommandPackRegistry:
    def test_default_pack_is_listed_and_loads(self):
        reg = CommandPackRegistry()
        assert DEFAULT_PACK in reg.list()
        pack = reg.load()
        for kind in ("resource_group", "workspace", "compute_target", "dataset", "environment", "job"):
            assert kind in pack.resources

    def test_render_fills_placeholders(self):
        pack = CommandPackRegistry().load()
        argv = pack.render("workspace", "list", {"resource_group": "rg1"})
        assert argv == ["ml", "workspace", "list", "--resource-group", "rg1"]

    def test_render_missing_value(self):
        pack = CommandPackRegistry().load()
        with pytest.raises(CommandPackError) as exc:
            pack.render("workspace", "list", {})
        assert "resource_group" in str(exc.value)

    def test_unknown_action_and_kind(self):
        pack = CommandPackRegistry().load()
        with pytest.raises(CommandPackError):
            pack.render("environment", "create", {})
        with pytest.raises(CommandPackError):
            pack.for_kind("experiment")

    def test_custom_pack_dir(self, tmp_path):
        (tmp_path / "mini.yaml").write_text(
            "name: mini\nresources:\n  resource_group:\n    commands:\n      list: [group, list]\n", "utf-8"
        )
        reg = CommandPackRegistry(tmp_path)
        assert reg.list() == ["mini"]
        assert reg.load("mini").render("resource_group", "list") == ["group", "list"]

    def test_invalid_and_missing_packs(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("name: broken\n", "utf-8")
        reg = CommandPackRegistry(tmp_path)
        with pytest.raises(CommandPackError):
            reg.load("broken")
        with pytest.raises(CommandPackError) as exc:
            reg.load("absent")
        assert "available: broken" in str(exc.value)
