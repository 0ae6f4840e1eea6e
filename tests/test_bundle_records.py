from types import SimpleNamespace

from asset_redux.core.bundles import bundle_key, inject_bundle_records, preview_key


def _record(key, text):
    return SimpleNamespace(key=key, text=text)


def test_existing_keys_are_not_duplicated():
    existing = [_record("Mod_house", "old")]
    entries = [("mod_HOUSE", "new"), ("Mod_barn", "barn"), ("Mod_barn", "again")]

    added = inject_bundle_records(existing, entries, lambda r: r.key, _record)

    assert [r.key for r in added] == ["Mod_barn"]
    assert [r.text for r in existing] == ["old", "barn"]


def test_failing_and_empty_builds_are_skipped():
    def build(key, text):
        if key == "bad":
            raise ValueError("bad record")
        if key == "none":
            return None
        return _record(key, text)

    existing = []
    added = inject_bundle_records(existing, [("bad", "x"), ("none", "y"), ("ok", "z")], lambda r: r.key, build)

    assert [r.key for r in added] == ["ok"]
    assert existing == added


def test_records_without_key_are_ignored_for_matching():
    existing = [_record(None, "anonymous")]

    added = inject_bundle_records(existing, [("k", "v")], lambda r: r.key, _record)

    assert len(added) == 1
    assert len(existing) == 2


def test_key_helpers():
    assert bundle_key("Mod", "house") == "Mod_house"
    assert preview_key("Mod_house") == "Blueprint_Mod_house"
    assert preview_key("Blueprint_x") == "Blueprint_x"
