import json

import aiohttp
import pytest

from conftest import FakeSession, make_mod, make_zip
from modserver.api import InMemoryRegistry, ModrinthRegistry
from modserver.exceptions import UnresolvedDependencyError, VersionConflictError
from modserver.models import ServerPackConfig
from modserver.orchestrator import ServerPackOrchestrator
from modserver.services.api_client import ModrinthClient


def fabric_jar(path, mod_id, version, depends=None, environment="*"):
    meta = {
        "schemaVersion": 1,
        "id": mod_id,
        "version": version,
        "environment": environment,
        "depends": depends or {},
    }
    path.write_bytes(make_zip({"fabric.mod.json": json.dumps(meta)}))


@pytest.fixture
def local_pack(tmp_path):
    mods = tmp_path / "client-mods"
    mods.mkdir()
    fabric_jar(mods / "fabric-api-0.90.0.jar", "fabric-api", "0.90.0")
    fabric_jar(
        mods / "lithium-0.11.2.jar",
        "lithium",
        "0.11.2",
        {"fabricloader": "*", "fabric-api": ">=0.80.0", "ghostlib": "^1.0.0"},
    )
    fabric_jar(mods / "zoomify-2.0.0.jar", "zoomify", "2.0.0", environment="client")
    return mods


def local_config(source_dir, out_dir, **resolve):
    return ServerPackConfig.from_dict(
        {
            "minecraft": {"version": "1.20.1", "mod_loader": "fabric"},
            "source": {"type": "local", "path": str(source_dir)},
            "output": {"download_dir": str(out_dir)},
            "resolve": resolve,
        }
    )


@pytest.mark.asyncio
async def test_local_dry_run_writes_plan(local_pack, tmp_path):
    out = tmp_path / "server"
    orchestrator = ServerPackOrchestrator(local_config(local_pack, out))

    plan = await orchestrator.run(dry_run=True)

    assert plan.install_order == ["fabric-api", "lithium"]
    assert [mod.id for mod in plan.skipped_client_mods] == ["zoomify"]
    assert [dep.mod_id for dep in plan.resolution.missing_deps] == ["ghostlib"]
    assert not (out / "mods").exists()

    written = json.loads((out / "install-plan.json").read_text(encoding="utf-8"))
    assert written["install_order"] == ["fabric-api", "lithium"]
    assert written["skipped_client_mods"] == ["zoomify"]
    assert written["missing_deps"][0]["mod_id"] == "ghostlib"
    assert written["missing_deps"][0]["version_expr"] == ">=1.0.0,<2.0.0"
    assert orchestrator.get_stats() == {"server_mods": 2, "skipped_client_mods": 1, "missing": 1}


@pytest.mark.asyncio
async def test_local_run_copies_server_mods(local_pack, tmp_path):
    out = tmp_path / "server"
    await ServerPackOrchestrator(local_config(local_pack, out)).run()

    copied = sorted(p.name for p in (out / "mods").iterdir())
    assert copied == ["fabric-api-0.90.0.jar", "lithium-0.11.2.jar"]


@pytest.mark.asyncio
async def test_keep_client_mods_when_not_server_only(local_pack, tmp_path):
    config = local_config(local_pack, tmp_path / "server", server_only=False)
    plan = await ServerPackOrchestrator(config).run(dry_run=True)
    assert "zoomify" in plan.install_order


@pytest.mark.asyncio
async def test_strict_missing_dependency(local_pack, tmp_path):
    config = local_config(local_pack, tmp_path / "server", strict=True)
    with pytest.raises(UnresolvedDependencyError):
        await ServerPackOrchestrator(config).run(dry_run=True)


@pytest.mark.asyncio
async def test_strict_conflict(tmp_path):
    registry = InMemoryRegistry(
        [
            make_mod("a", deps=[("lib", "1.0.0")]),
            make_mod("b", deps=[("lib", "2.0.0")]),
            make_mod("lib", "1.0.0"),
            make_mod("lib", "2.0.0"),
        ]
    )
    config = ServerPackConfig.from_dict(
        {
            "minecraft": {"version": "1.20.1", "mods": ["a", "b"]},
            "output": {"download_dir": str(tmp_path)},
            "resolve": {"strict": True},
        }
    )
    with pytest.raises(VersionConflictError):
        await ServerPackOrchestrator(config, registry=registry).run(dry_run=True)


@pytest.mark.asyncio
async def test_modrinth_source_reports_missing_requests(tmp_path):
    registry = InMemoryRegistry([make_mod("a", "1.2.0"), make_mod("a", "2.0.0")])
    config = ServerPackConfig.from_dict(
        {
            "minecraft": {
                "version": "1.20.1",
                "mods": [{"id": "a", "version": "<2.0.0"}, "ghost", "a"],
            },
            "output": {"download_dir": str(tmp_path)},
        }
    )

    plan = await ServerPackOrchestrator(config, registry=registry).run(dry_run=True)

    assert plan.install_order == ["a"]
    assert plan.server_mods[0].mod_info.version == "1.2.0"
    assert [entry.id for entry in plan.missing_requests] == ["ghost"]


@pytest.mark.asyncio
async def test_mrpack_source(tmp_path):
    index = {
        "formatVersion": 1,
        "name": "Pack",
        "versionId": "1.0.0",
        "dependencies": {"minecraft": "1.20.1", "fabric-loader": "0.14.22"},
        "files": [
            {
                "path": "mods/lithium-0.11.2.jar",
                "hashes": {"sha1": "11"},
                "env": {"client": "required", "server": "required"},
                "downloads": ["https://cdn/lithium.jar"],
            },
            {
                "path": "mods/sodium-0.5.3.jar",
                "hashes": {"sha1": "22"},
                "env": {"client": "required", "server": "unsupported"},
                "downloads": ["https://cdn/sodium.jar"],
            },
        ],
    }
    pack = tmp_path / "pack.mrpack"
    pack.write_bytes(make_zip({"modrinth.index.json": json.dumps(index)}))
    config = ServerPackConfig.from_dict(
        {
            "minecraft": {"version": "1.20.1"},
            "source": {"type": "mrpack", "path": str(pack)},
            "output": {"download_dir": str(tmp_path / "server")},
        }
    )

    plan = await ServerPackOrchestrator(config).run(dry_run=True)

    assert plan.install_order == ["lithium"]
    assert [mod.id for mod in plan.skipped_client_mods] == ["sodium"]
    assert plan.server_mods[0].download_url == "https://cdn/lithium.jar"


@pytest.mark.asyncio
async def test_network_failure_reports_missing_request(tmp_path):
    session = FakeSession({"/project/lithium": (aiohttp.ServerDisconnectedError(), None)})
    registry = ModrinthRegistry(ModrinthClient(session=session), "1.20.1", "fabric")
    config = ServerPackConfig.from_dict(
        {
            "minecraft": {"version": "1.20.1", "mods": ["lithium"]},
            "output": {"download_dir": str(tmp_path)},
        }
    )

    plan = await ServerPackOrchestrator(config, registry=registry).run(dry_run=True)

    assert plan.install_order == []
    assert [entry.id for entry in plan.missing_requests] == ["lithium"]
