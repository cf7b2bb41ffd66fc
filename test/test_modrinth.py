import hashlib
import json

import pytest

from nyarumc.standard import Context
from nyarumc.modrinth import ModrinthApi, ModSpec, ModNotFoundError, LauncherState, \
    install_mod, find_mod_file, needs_mod_update, check_mod_update


MOD_CONTENT = b"fabric api build"
SPEC = ModSpec("P7dR8mSH", "fabric-api")


def setup_modrinth(server, files=None, published="2025-12-10T10:00:00Z") -> ModrinthApi:

    if files is None:
        files = [
            {"url": f"{server.url}cdn/fabric-api-sources.jar", "filename": "fabric-api-sources.jar", "primary": False},
            {
                "url": server.add("cdn/fabric-api-0.139.0+1.21.11.jar", MOD_CONTENT),
                "filename": "fabric-api-0.139.0+1.21.11.jar",
                "primary": True,
                "hashes": {"sha1": hashlib.sha1(MOD_CONTENT).hexdigest(), "sha512": "ignored"},
                "size": len(MOD_CONTENT),
            },
        ]

    server.add("modrinth/project/P7dR8mSH/version", [
        {"version_number": "0.139.0+1.21.11", "date_published": published, "files": files},
        {"version_number": "0.138.0+1.21.11", "date_published": "2025-11-01T10:00:00Z", "files": []},
    ])

    return ModrinthApi(f"{server.url}modrinth/")


def test_needs_mod_update():

    assert needs_mod_update(False, None, "b")
    assert needs_mod_update(False, "a", "a")
    assert not needs_mod_update(True, None, "b")
    assert not needs_mod_update(True, "", "b")
    assert not needs_mod_update(True, "a", "a")
    assert needs_mod_update(True, "a", "b")


def test_resolve_download(local_server):

    from urllib.parse import parse_qs

    api = setup_modrinth(local_server)
    mod_file = api.resolve_download(SPEC)

    assert mod_file.filename == "fabric-api-0.139.0+1.21.11.jar"
    assert mod_file.sha1 == hashlib.sha1(MOD_CONTENT).hexdigest()
    assert mod_file.size == len(MOD_CONTENT)
    assert mod_file.published == "2025-12-10T10:00:00Z"

    path, query = local_server.queries[-1]
    assert path == "/modrinth/project/P7dR8mSH/version"
    assert parse_qs(query) == {"loaders": ['["fabric"]'], "game_versions": ['["1.21.11"]']}


def test_resolve_download_first_file(local_server):

    api = setup_modrinth(local_server, [
        {"url": "http://host/a.jar", "filename": "a.jar"},
        {"url": "http://host/b.jar", "filename": "b.jar"},
    ])

    mod_file = api.resolve_download(SPEC)
    assert mod_file.filename == "a.jar"
    assert mod_file.sha1 is None
    assert mod_file.size is None


def test_resolve_download_errors(local_server):

    api = setup_modrinth(local_server, [{"url": "http://host/a.jar", "filename": "../a.jar"}])
    with pytest.raises(ValueError, match="filename"):
        api.resolve_download(SPEC)

    api = setup_modrinth(local_server, [])
    with pytest.raises(ModNotFoundError):
        api.resolve_download(SPEC)

    local_server.add("modrinth/project/P7dR8mSH/version", [])
    with pytest.raises(ModNotFoundError) as error:
        api.resolve_download(SPEC)
    assert str(error.value) == "'P7dR8mSH'"


def test_install_mod(local_server, tmp_path):

    api = setup_modrinth(local_server)
    context = Context(tmp_path)

    context.mods_dir.mkdir(parents=True)
    (context.mods_dir / "fabric-api-0.138.0+1.21.11.jar").write_bytes(b"old build")
    (context.mods_dir / "fabric-api-0.137.0+1.21.10.jar").write_bytes(b"older build")
    (context.mods_dir / "sodium-0.6.0.jar").write_bytes(b"other mod")

    mod_file = api.resolve_download(SPEC)
    dst = install_mod(context, mod_file, SPEC.prefix)

    assert dst == context.mods_dir / "fabric-api-0.139.0+1.21.11.jar"
    assert dst.read_bytes() == MOD_CONTENT
    assert sorted(p.name for p in context.mods_dir.iterdir()) == [
        "fabric-api-0.139.0+1.21.11.jar",
        "sodium-0.6.0.jar",
    ]
    assert find_mod_file(context, SPEC.prefix) == dst

    # Already valid, nothing downloaded.
    local_server.hits.clear()
    install_mod(context, mod_file, SPEC.prefix)
    assert local_server.total_hits() == 0
    assert dst.read_bytes() == MOD_CONTENT

    # Corrupted file is replaced.
    dst.write_bytes(b"corrupted")
    install_mod(context, mod_file, SPEC.prefix)
    assert dst.read_bytes() == MOD_CONTENT


def test_find_mod_file(tmp_path):

    context = Context(tmp_path)
    assert find_mod_file(context, "fabric-api") is None
    context.mods_dir.mkdir()
    assert find_mod_file(context, "fabric-api") is None
    (context.mods_dir / "fabric-api-1.jar").write_bytes(b"")
    assert find_mod_file(context, "fabric-api") == context.mods_dir / "fabric-api-1.jar"


def test_launcher_state(tmp_path):

    file = tmp_path / "state.json"
    state = LauncherState(file)
    state.load()
    assert state.get_mod_timestamp("P7dR8mSH") is None

    state.set_mod_timestamp("P7dR8mSH", "2025-12-10T10:00:00Z")
    state.save()
    assert json.loads(file.read_text()) == {"mods": {"P7dR8mSH": "2025-12-10T10:00:00Z"}}

    state = LauncherState(file)
    state.load()
    assert state.get_mod_timestamp("P7dR8mSH") == "2025-12-10T10:00:00Z"

    # Corrupted state is read as empty.
    file.write_text("[1, 2")
    state.load()
    assert state.mod_timestamps == {}
    file.write_text("[1, 2]")
    state.load()
    assert state.mod_timestamps == {}


def test_check_mod_update(local_server, tmp_path):

    api = setup_modrinth(local_server)
    context = Context(tmp_path)
    state = LauncherState(context.state_file)

    # No file, an update is needed.
    assert check_mod_update(context, state, SPEC, api=api)
    assert state.get_mod_timestamp(SPEC.project_id) is None

    # File present without stored timestamp, baseline is recorded.
    install_mod(context, api.resolve_download(SPEC), SPEC.prefix)
    assert not check_mod_update(context, state, SPEC, api=api)
    assert state.get_mod_timestamp(SPEC.project_id) == "2025-12-10T10:00:00Z"
    assert json.loads(context.state_file.read_text())["mods"][SPEC.project_id] == "2025-12-10T10:00:00Z"

    assert not check_mod_update(context, state, SPEC, api=api)

    # A newer build is published.
    api = setup_modrinth(local_server, published="2026-01-05T10:00:00Z")
    assert check_mod_update(context, state, SPEC, api=api)


def test_installer_mods_stage(game_repository, tmp_path, monkeypatch):

    from nyarumc.standard import VersionManifest, SimpleWatcher
    from nyarumc.install import Installer, InstallWarningEvent

    monkeypatch.setattr("nyarumc.standard.minecraft_os", "linux")

    api = setup_modrinth(game_repository.server)
    context = Context(tmp_path)

    warnings = []
    Installer(context,
        manifest=VersionManifest(game_repository.manifest_url),
        resources_url=game_repository.resources_url,
        fabric=None,
        modrinth=api,
        mods=[SPEC, ModSpec("missing", "missing-mod")]
    ).install(watcher=SimpleWatcher({InstallWarningEvent: warnings.append}))

    assert (context.mods_dir / "fabric-api-0.139.0+1.21.11.jar").read_bytes() == MOD_CONTENT
    assert [w.stage for w in warnings] == ["mods"]
    assert warnings[0].message.startswith("missing: ")

    state = LauncherState(context.state_file)
    state.load()
    assert state.mod_timestamps == {"P7dR8mSH": "2025-12-10T10:00:00Z"}
