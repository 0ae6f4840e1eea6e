from pathlib import Path

from asset_redux.core.context import OverrideContext
from asset_redux.core.modules import PluginSource, ResourceModule
from asset_redux.core.registry import OverrideConflict
from asset_redux.core.settings import RuntimeSettings


def _pair(root: Path, name: str, **fields):
    return PluginSource(qualified_name=f"plugins.{name}", root=root), ResourceModule(name=name, **fields)


def test_contested_keys_are_reported(tmp_path: Path):
    context = OverrideContext()

    report = context.load_epoch(
        [
            _pair(tmp_path, "Alpha", sprites={"Icon": "a.png"}, textures={"ground": "g.png"}),
            _pair(tmp_path, "Beta", sprites={"icon": "b.png"}),
        ]
    )

    assert report.conflicts == [OverrideConflict("sprite", "icon", "Alpha", "Beta")]
    assert context.registry.owner_of("sprite", "ICON") == "Beta"
    assert context.registry.owner_of("texture", "ground") == "Alpha"
    assert "Conflict: sprite 'icon': Alpha -> Beta" in report.summary_lines()


def test_sprite_and_texture_with_same_name_do_not_conflict(tmp_path: Path):
    context = OverrideContext()

    report = context.load_epoch(
        [
            _pair(tmp_path, "Alpha", sprites={"stone": "a.png"}),
            _pair(tmp_path, "Beta", textures={"stone": "b.png"}),
        ]
    )

    assert report.conflicts == []


def test_priority_policy_reports_from_the_final_replay(tmp_path: Path):
    context = OverrideContext(RuntimeSettings(conflict_policy="priority"))

    report = context.load_epoch(
        [
            _pair(tmp_path, "High", priority=5, sprites={"icon": "h.png"}),
            _pair(tmp_path, "Low", priority=1, sprites={"icon": "l.png"}),
        ]
    )

    # Low is replayed first, so High overwrites it.
    assert report.conflicts == [OverrideConflict("sprite", "icon", "Low", "High")]
    assert context.sprites.path_for("icon") == str(tmp_path / "h.png")
