from __future__ import annotations

import pytest

from conftest import FakeRunner
from toolchain_provisioner.errors import ExternalBuildError
from toolchain_provisioner.lib.command import CmdResult
from toolchain_provisioner.lib.recipes import ShellBuildRecipe, run_recipe
from toolchain_provisioner.lib.target import Target


def test_shell_recipe_on_host_runs_in_working_copy() -> None:
    runner = FakeRunner()
    recipe = ShellBuildRecipe("lc3tools", "/root/lc3tools", Target("/"), runner=runner)

    results = run_recipe(recipe)

    assert [r.step for r in results] == ["configure", "build_and_install"]
    assert runner.calls == [["./configure"], ["make", "install"]]
    assert [k["cwd"] for k in runner.kwargs] == ["/root/lc3tools", "/root/lc3tools"]


def test_shell_recipe_in_rootfs_changes_directory_inside_chroot() -> None:
    runner = FakeRunner()
    ShellBuildRecipe("lcc-lc3", "/root/lcc-lc3", Target("/srv/rootfs"), runner=runner).configure()

    assert runner.calls == [["chroot", "/srv/rootfs", "/bin/sh", "-c", "cd /root/lcc-lc3 && exec ./configure"]]
    assert runner.kwargs[0]["cwd"] is None


def test_configure_failure_stops_before_install() -> None:
    runner = FakeRunner([CmdResult(argv=[], returncode=1, stdout="", stderr="no cc")])
    recipe = ShellBuildRecipe("lc3tools", "/root/lc3tools", Target("/"), runner=runner)

    with pytest.raises(ExternalBuildError) as exc:
        run_recipe(recipe)

    assert (exc.value.repository, exc.value.step, exc.value.exit_code) == ("lc3tools", "configure", 1)
    assert len(runner.calls) == 1


def test_empty_configure_command_is_skipped() -> None:
    runner = FakeRunner()
    recipe = ShellBuildRecipe("x", "/root/x", Target("/"), configure_cmd=(), runner=runner)

    run_recipe(recipe)
    assert runner.calls == [["make", "install"]]
