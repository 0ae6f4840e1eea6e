import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from PIL import Image

from asset_redux.core.context import OverrideContext
from asset_redux.core.modules import PluginSource, ResourceModule


class FakeSprite:
    def __init__(self, name):
        self.name = name


def _png(path: Path) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", (2, 2), (10, 20, 30, 255)).save(path)
    return str(path)


def _loaded_context(tmp_path: Path) -> OverrideContext:
    _png(tmp_path / "icon.png")
    _png(tmp_path / "ground.png")
    context = OverrideContext()
    context.register(
        ResourceModule(
            name="Mod",
            sprites={"icon": "icon.png"},
            textures={"Ground": "ground.png"},
            text_processors={"dialogue": lambda s: s.replace("cat", "dog")},
        ),
        PluginSource("plugins.mod", tmp_path),
    )
    return context


def test_redirect_sprite_swaps_matching_names(tmp_path: Path):
    context = _loaded_context(tmp_path)
    original = FakeSprite("icon")

    redirected = context.redirect_sprite(original)

    assert redirected is context.sprites.try_resolve("icon")
    assert redirected is not original
    # An override passes through untouched.
    assert context.redirect_sprite(redirected) is redirected


def test_redirect_passes_through_unknown_and_empty(tmp_path: Path):
    context = _loaded_context(tmp_path)
    other = FakeSprite("other")

    assert context.redirect_sprite(other) is other
    assert context.redirect_sprite(None) is None
    nameless = FakeSprite("")
    assert context.redirect_texture(nameless) is nameless


def test_redirect_texture_is_case_insensitive(tmp_path: Path):
    context = _loaded_context(tmp_path)

    texture = context.redirect_texture(FakeSprite("ground"))

    assert texture is context.textures.try_resolve("Ground")


def test_redirect_text_uses_pipeline(tmp_path: Path):
    context = _loaded_context(tmp_path)

    assert context.redirect_text(1, "dialogue", "my cat") == "my dog"
    assert context.redirect_text(2, "narration", "my cat") == "my cat"
    assert context.redirect_text(3, "dialogue", "") == ""


def test_load_epoch_isolates_failing_modules(tmp_path: Path):
    context = OverrideContext()
    broken = ResourceModule(name="Broken")
    broken.sprites = None

    report = context.load_epoch(
        [
            (PluginSource("plugins.broken", tmp_path), broken),
            (PluginSource("plugins.fine", tmp_path), ResourceModule(name="Fine")),
            (PluginSource("plugins.fine", tmp_path), ResourceModule(name="Again")),
        ]
    )

    assert report.registered == ["Fine"]
    assert report.rejected == ["Again"]
    assert "Broken" in report.failed
    assert report.has_errors


def test_load_epoch_starts_from_a_clean_slate(tmp_path: Path):
    context = _loaded_context(tmp_path)
    assert context.sprites.try_resolve("icon") is not None

    report = context.load_epoch([])

    assert report.registered == []
    assert context.sprites.try_resolve("icon") is None
    assert context.pipeline.resolve("dialogue", "cat") == (False, "cat")


def test_load_plugins_dir_end_to_end(tmp_path: Path):
    plugin = tmp_path / "plugins" / "farm"
    _png(plugin / "Assets" / "barn.png")
    (plugin / "Buildings").mkdir(parents=True)
    (plugin / "Buildings" / "silo.json").write_text('[{"id":"silo"}]', encoding="utf-8")
    (plugin / "Blueprints" / "barn").mkdir(parents=True)
    (plugin / "Blueprints" / "barn" / "data.json").write_text("{}", encoding="utf-8")
    (plugin / "assetredux.json").write_text(
        json.dumps(
            {
                "name": "Farm",
                "sprites": {"barn": "Assets/barn.png"},
                "fragment_folders": {"build": "Buildings"},
                "bundle_folders": ["Blueprints"],
            }
        ),
        encoding="utf-8",
    )
    context = OverrideContext()

    report = context.load_plugins_dir(tmp_path / "plugins")

    assert report.registered == ["Farm"]
    assert context.sprites.try_resolve("barn") is not None
    assert context.redirect_text("list", "build", '[{"id":"farm"}]') == '[{"id":"farm"},{"id":"silo"}]'
    assert list(context.bundle_entries()) == [("Farm_barn", "{}")]


def test_request_refresh_without_population_is_harmless():
    context = OverrideContext()

    context.request_refresh()

    assert context.coordinator is None


def test_context_manager_shuts_down(tmp_path: Path):
    with _loaded_context(tmp_path) as context:
        sprite = context.sprites.try_resolve("icon")

    assert sprite.destroyed
    assert context.registry.active_modules == []


def test_reloading_same_modules_rebuilds_preloaded_data(tmp_path: Path):
    (tmp_path / "Buildings").mkdir()
    (tmp_path / "Buildings" / "a.json").write_text('[{"id":"a"}]', encoding="utf-8")
    house = tmp_path / "Blueprints" / "house"
    house.mkdir(parents=True)
    (house / "data.json").write_text("{}", encoding="utf-8")
    module = ResourceModule(
        name="Mod", fragment_folders={"build": "Buildings"}, bundle_folders=["Blueprints"]
    )
    pairs = [(PluginSource("plugins.mod", tmp_path), module)]
    context = OverrideContext()

    context.load_epoch(pairs)
    assert context.pipeline.resolve("build", "[]") == (True, '[{"id":"a"}]')
    assert list(context.bundle_entries()) == [("Mod_house", "{}")]

    (house / "data.json").unlink()
    context.load_epoch(pairs)

    assert context.pipeline.resolve("build", "[]") == (True, '[{"id":"a"}]')
    assert list(context.bundle_entries()) == []
    assert module.loaded_bundles == {}
    assert module.loaded_fragments == {"build": ['{"id":"a"}']}


def test_executor_moves_decodes_off_the_scan(tmp_path: Path):
    _png(tmp_path / "icon.png")
    executor = ThreadPoolExecutor(max_workers=1)
    context = OverrideContext(executor=executor)
    context.register(ResourceModule(name="Mod", sprites={"icon": "icon.png"}), PluginSource("plugins.mod", tmp_path))
    received = []

    context.sprites.resolve_async("icon", received.append)
    executor.shutdown(wait=True)
    assert received == []
    context.scheduler.tick()

    assert received[0] is context.sprites.try_resolve("icon")
