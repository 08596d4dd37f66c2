from __future__ import annotations

from pathlib import Path

import pytest

from toolchain_provisioner.errors import ConfigError
from toolchain_provisioner.lib.manifests import list_manifests, manifest_path
from toolchain_provisioner.provision_config import load_config, parse_config, repo_name_from_url


def test_bundled_manifest_reproduces_lc3_recipe() -> None:
    cfg = load_config(manifest_path())

    assert cfg.base_image == "ubuntu:22.04"
    assert cfg.target_root == "/"
    assert {"build-essential", "git", "flex", "wish", "tzdata"} <= set(cfg.packages)
    assert [r.name for r in cfg.repositories] == ["lc3tools", "lcc-lc3"]
    assert [r.path for r in cfg.repositories] == ["/root/lc3tools", "/root/lcc-lc3"]
    assert cfg.path_append == "/root/.lc3"
    assert cfg.entrypoint == ["bash"]
    assert "lc3" in list_manifests()


def test_repository_defaults() -> None:
    cfg = parse_config({"base_image": "ubuntu:22.04", "repositories": [{"url": "https://x.test/a/lcc-lc3.git"}]})
    repo = cfg.repositories[0]

    assert repo.name == "lcc-lc3"
    assert repo.path == "/root/lcc-lc3"
    assert repo.ref is None
    assert repo.configure_cmd == ("./configure",)
    assert repo.install_cmd == ("make", "install")


def test_defaults_for_empty_manifest() -> None:
    cfg = parse_config({})

    assert cfg.base_image == "ubuntu:22.04"
    assert cfg.build_strategy == "sequential"
    assert cfg.fetch_retry.max_attempts == 3
    assert cfg.fetch_timeout == 600.0
    assert cfg.verify_binaries == []


@pytest.mark.parametrize(
    "raw",
    [
        {"base_image": "ubuntu"},
        {"target": {"workdir": "relative"}},
        {"environment": {"path_append": "bin"}},
        {"build": {"strategy": "eventually"}},
        {"repositories": [{"url": "https://x.test/a.git"}, {"url": "https://y.test/a"}]},
        {"repositories": [{"name": "../escape", "url": "https://x.test/a.git"}]},
        {"repositories": [{"name": "nourl"}]},
    ],
)
def test_invalid_manifests(raw) -> None:
    with pytest.raises(ConfigError):
        parse_config(raw)


def test_manifest_must_be_mapping() -> None:
    with pytest.raises(ConfigError):
        parse_config(["not", "a", "mapping"])


def test_load_config_rejects_missing_and_non_yaml(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.yaml"))

    p = tmp_path / "manifest.json"
    p.write_text("{}", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(p))


def test_repo_name_from_url() -> None:
    assert repo_name_from_url("https://github.com/haplesshero13/lc3tools") == "lc3tools"
    assert repo_name_from_url("https://github.com/haplesshero13/lcc-lc3.git/") == "lcc-lc3"
