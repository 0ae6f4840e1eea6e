import json
from pathlib import Path

from PIL import Image

from asset_redux.cli.main import main


def _plugin(root: Path, dirname: str, manifest: dict) -> Path:
    plugin_dir = root / dirname
    plugin_dir.mkdir(parents=True)
    (plugin_dir / "assetredux.json").write_text(json.dumps(manifest), encoding="utf-8")
    return plugin_dir


def _plugins(tmp_path: Path) -> Path:
    root = tmp_path / "plugins"
    a = _plugin(root, "a", {"name": "Alpha", "priority": 5, "sprites": {"icon": "icon.png"}})
    Image.new("RGBA", (2, 2)).save(a / "icon.png")
    (a / "Buildings").mkdir()
    (a / "Buildings" / "x.json").write_text('{"id":"x"}', encoding="utf-8")
    (a / "Blueprints" / "hut").mkdir(parents=True)
    (a / "Blueprints" / "hut" / "data.json").write_text('{"hut":1}', encoding="utf-8")
    Image.new("RGBA", (2, 2)).save(a / "Blueprints" / "hut" / "preview.png")
    manifest = json.loads((a / "assetredux.json").read_text(encoding="utf-8"))
    manifest.update({"fragment_folders": {"build": "Buildings"}, "bundle_folders": ["Blueprints"]})
    (a / "assetredux.json").write_text(json.dumps(manifest), encoding="utf-8")

    _plugin(root, "b", {"name": "Beta", "sprites": {"icon": "other.png"}})
    _plugin(root, "c", {"name": "Stale", "target_version": "0.0.1"})
    return root


def test_cli_scan_json_reports_modules_and_conflicts(tmp_path: Path, capsys):
    root = _plugins(tmp_path)

    rc = main(["scan", str(root), "--json"])

    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert [m["name"] for m in payload["modules"]] == ["Alpha", "Beta"]
    assert payload["rejected"] == ["Stale"]
    assert payload["sprites"]["icon"].endswith("other.png")
    assert "Blueprint_Alpha_hut" in payload["sprites"]
    assert payload["text_resources"] == ["build"]
    assert [m["overrides"] for m in payload["modules"]] == [3, 1]
    assert payload["conflicts"] == [
        {"kind": "sprite", "key": "icon", "previous": "Alpha", "winner": "Beta"}
    ]


def test_cli_scan_priority_flag_changes_winner(tmp_path: Path, capsys):
    root = _plugins(tmp_path)

    main(["scan", str(root), "--json", "--priority"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["sprites"]["icon"].endswith("icon.png")


def test_cli_scan_text_output(tmp_path: Path, capsys):
    root = _plugins(tmp_path)

    main(["scan", str(root)])

    out = capsys.readouterr().out
    assert "Modules (2), highest priority first:" in out
    assert "Rejected: Stale" in out
    assert "total=3" in out


def test_cli_merge_writes_output(tmp_path: Path, capsys):
    root = _plugins(tmp_path)
    source = tmp_path / "build.json"
    source.write_text("[]", encoding="utf-8")
    out = tmp_path / "out" / "build.json"

    rc = main(["merge", str(root), "build", str(source), "--out", str(out)])

    assert rc == 0
    assert out.read_text(encoding="utf-8") == '[{"id":"x"}]'


def test_cli_merge_unknown_resource_echoes_input(tmp_path: Path, capsys):
    root = _plugins(tmp_path)
    source = tmp_path / "other.json"
    source.write_text("[1]", encoding="utf-8")

    main(["merge", str(root), "other", str(source)])

    captured = capsys.readouterr()
    assert captured.out == "[1]"
    assert "No processors registered for 'other'" in captured.err


def test_cli_bundles_lists_entries(tmp_path: Path, capsys):
    root = _plugins(tmp_path)

    main(["bundles", str(root)])

    assert "Alpha_hut\t9 chars (preview)" in capsys.readouterr().out
