import pytest

from tshost.files import DependencyTracker, OnDemandFileLoader, VirtualFileRegistry

# --- Fixtures ---


@pytest.fixture
def create_files(tmp_path):
    """A factory fixture to create a temporary file structure."""

    def _create_files(file_dict):
        for file_path, content in file_dict.items():
            path = tmp_path / file_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return tmp_path

    return _create_files


@pytest.fixture
def loader():
    return OnDemandFileLoader(VirtualFileRegistry(), DependencyTracker())


# --- 1. Resolution ---


def test_lazy_load_is_idempotent(create_files, loader):
    """Resolving an on-disk file twice returns the same text and registers one record."""
    root = create_files({"types.d.ts": "declare const a: number;"})
    path = str(root / "types.d.ts")

    first = loader.resolve(path)
    second = loader.resolve(path)

    assert first == second == "declare const a: number;"
    assert len(loader.files) == 1
    assert loader.files.get(path).version == 0


def test_registry_is_consulted_before_disk(loader):
    """Virtual files that never existed on disk are still served."""
    loader.files.set("/p/a.ts", "let x = 1")

    assert loader.resolve("/p/a.ts") == "let x = 1"


def test_absent_file_is_reported_as_none(tmp_path, loader):
    path = str(tmp_path / "missing.d.ts")

    assert loader.resolve(path) is None
    assert path not in loader.files


def test_registry_text_wins_over_disk(create_files, loader):
    """Once registered, a file is not silently re-read from disk."""
    root = create_files({"types.d.ts": "declare const a: number;"})
    path = str(root / "types.d.ts")
    loader.resolve(path)

    (root / "types.d.ts").write_text("declare const a: string;")

    assert loader.resolve(path) == "declare const a: number;"


def test_file_deleted_from_disk_is_dropped_on_resolve(create_files, loader):
    """A file loaded from disk is not served from memory once it is gone."""
    root = create_files({"types.d.ts": "declare const a: number;"})
    path = str(root / "types.d.ts")
    loader.resolve(path)

    (root / "types.d.ts").unlink()

    assert not loader.file_exists(path)
    assert loader.resolve(path) is None
    assert path not in loader.files


def test_reloaded_file_continues_its_version(create_files, loader):
    root = create_files({"types.d.ts": "declare const a: number;"})
    path = str(root / "types.d.ts")
    loader.resolve(path)
    (root / "types.d.ts").unlink()
    loader.resolve(path)

    (root / "types.d.ts").write_text("declare const a: string;")

    assert loader.resolve(path) == "declare const a: string;"
    assert loader.files.get(path).version == 1


def test_registered_targets_do_not_need_a_file_on_disk(loader):
    loader.files.set("/p/a.ts", "let x = 1")
    loader.resolve("/p/a.ts")

    assert loader.resolve("/p/a.ts") == "let x = 1"
    assert loader.file_exists("/p/a.ts")


# --- 2. Dependency Recording ---


def test_declaration_files_are_attributed_to_the_requester(create_files, loader):
    root = create_files({"types.d.ts": "declare const a: number;", "util.ts": "export const b = 1;"})
    target = str(root / "main.ts")

    loader.resolve(str(root / "types.d.ts"), requested_by=target)
    loader.resolve(str(root / "util.ts"), requested_by=target)

    assert loader.dependencies.dependencies_of(target) == [str(root / "types.d.ts")]


def test_registry_hits_are_attributed_too(create_files, loader):
    """A declaration file loaded for one target still becomes a dependency of the next."""
    root = create_files({"types.d.ts": "declare const a: number;"})
    dts = str(root / "types.d.ts")
    loader.resolve(dts, requested_by="/p/a.ts")

    loader.resolve(dts, requested_by="/p/b.ts")

    assert loader.dependencies.dependents_of(dts) == ["/p/a.ts", "/p/b.ts"]


def test_no_edges_without_a_requester_or_to_itself(create_files, loader):
    root = create_files({"types.d.ts": "declare const a: number;"})
    dts = str(root / "types.d.ts")

    loader.resolve(dts)
    loader.resolve(dts, requested_by=dts)

    assert loader.dependencies.targets() == []


# --- 3. Existence Checks & Refresh ---


def test_file_exists_checks_registry_then_disk(create_files, loader):
    root = create_files({"on-disk.ts": ""})
    loader.files.set("/virtual/a.ts", "")

    assert loader.file_exists("/virtual/a.ts")
    assert loader.file_exists(str(root / "on-disk.ts"))
    assert not loader.file_exists(str(root / "nowhere.ts"))


def test_refresh_rereads_and_bumps_the_version(create_files, loader):
    root = create_files({"types.d.ts": "declare const a: number;"})
    path = str(root / "types.d.ts")
    loader.resolve(path)
    (root / "types.d.ts").write_text("declare const a: string;")

    record = loader.refresh(path)

    assert record.version == 1
    assert loader.resolve(path) == "declare const a: string;"


def test_refresh_drops_deleted_files(create_files, loader):
    root = create_files({"types.d.ts": "declare const a: number;"})
    path = str(root / "types.d.ts")
    loader.resolve(path)
    (root / "types.d.ts").unlink()

    assert loader.refresh(path) is None
    assert path not in loader.files


def test_refresh_ignores_unregistered_paths(create_files, loader):
    root = create_files({"types.d.ts": ""})

    assert loader.refresh(str(root / "types.d.ts")) is None
    assert len(loader.files) == 0
