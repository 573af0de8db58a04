"""Tests for PluginManager: discovery, registration, and hook relay."""

from __future__ import annotations

from archnav.plugins import hookimpl
from archnav.plugins.manager import PluginManager


class _DummyPlugin:
    """Minimal plugin for registration tests."""

    def __init__(self) -> None:
        self.seen: list[int] = []

    @hookimpl
    def post_rebuild(
        self,
        workspace_id: str,
        generation_version: int,
        previous_version: int | None,
        edge_counts: dict[str, int],
    ) -> None:
        self.seen.append(generation_version)


class TestPluginManager:
    def test_starts_unloaded(self) -> None:
        pm = PluginManager()
        assert pm.is_loaded is False
        assert pm.list_plugin_names() == []

    def test_discover_without_entry_points(self) -> None:
        pm = PluginManager()
        pm.discover_and_load()
        assert pm.is_loaded is True

    def test_register_and_call(self) -> None:
        pm = PluginManager()
        plugin = _DummyPlugin()
        pm.register_plugin(plugin)
        assert "_DummyPlugin" in pm.list_plugin_names()
        pm.hook.post_rebuild(
            workspace_id="acme", generation_version=2, previous_version=1, edge_counts={}
        )
        assert plugin.seen == [2]

    def test_register_with_name_and_unregister(self) -> None:
        pm = PluginManager()
        plugin = _DummyPlugin()
        pm.register_plugin(plugin, name="sample")
        assert "sample" in pm.list_plugin_names()
        pm.unregister(plugin)
        assert "sample" not in pm.list_plugin_names()
