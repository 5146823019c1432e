import json
import sys

import pytest
from click.testing import CliRunner
from loguru import logger

from conftest import make_zip
from modserver import __version__
from modserver.cli import main


def write_pack(tmp_path):
    mods = tmp_path / "mods-in"
    mods.mkdir()
    meta = {
        "schemaVersion": 1,
        "id": "lithium",
        "version": "0.11.2",
        "depends": {"ghostlib": "*"},
        "recommends": {"extra": "*"},
    }
    (mods / "lithium-0.11.2.jar").write_bytes(make_zip({"fabric.mod.json": json.dumps(meta)}))
    (mods / "extra-1.0.0.jar").write_bytes(
        make_zip({"fabric.mod.json": json.dumps({"id": "extra", "version": "1.0.0"})})
    )

    config = tmp_path / "modserver.json"
    config.write_text(
        json.dumps(
            {
                "minecraft": {"version": "1.20.1", "mod_loader": "fabric"},
                "source": {"type": "local", "path": str(mods)},
                "output": {"download_dir": str(tmp_path / "server")},
            }
        )
    )
    return config


def test_version_option():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_dry_run(tmp_path):
    config = write_pack(tmp_path)

    result = CliRunner().invoke(main, [str(config), "--dry-run"])

    assert result.exit_code == 0, result.output
    plan = json.loads((tmp_path / "server" / "install-plan.json").read_text(encoding="utf-8"))
    assert sorted(plan["install_order"]) == ["extra", "lithium"]
    assert not (tmp_path / "server" / "mods").exists()


def test_strict_fails_on_missing_dependency(tmp_path):
    config = write_pack(tmp_path)

    result = CliRunner().invoke(main, [str(config), "--dry-run", "--strict"])

    assert result.exit_code == 1
    assert "E702" in result.output


def test_invalid_config(tmp_path):
    config = tmp_path / "modserver.toml"
    config.write_text('[minecraft]\nversion = "1.20.1"\nmod_loader = "bukkit"\n')

    result = CliRunner().invoke(main, [str(config)])

    assert result.exit_code == 1
    assert "E102" in result.output


def test_missing_config_file(tmp_path):
    result = CliRunner().invoke(main, [str(tmp_path / "absent.toml")])
    assert result.exit_code == 2


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_log_file_records_resolution(tmp_path, restore_logger):
    config = write_pack(tmp_path)
    log_file = tmp_path / "logs" / "run.log"

    result = CliRunner().invoke(main, [str(config), "--dry-run", "--log-file", str(log_file)])

    assert result.exit_code == 0, result.output
    content = log_file.read_text(encoding="utf-8")
    assert "[解析] lithium 0.11.2" in content
    assert "[缺失] ghostlib" in content
