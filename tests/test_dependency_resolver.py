from pathlib import Path

import pytest

from pyffbuild.distro import ArchLinux, OpenSuseTumbleweed, SystemDependencyResolver
from pyffbuild.utils import DependencyInstallError
from .setup_mock_ffbuildconfig import FakeHost, parse_arguments


def _resolver(host: FakeHost, distro_cls, *args: str) -> SystemDependencyResolver:
    config = parse_arguments(list(args))
    return SystemDependencyResolver(config, distro_cls(config, host.root))


def test_all_packages_present_installs_nothing(tmp_path: Path, monkeypatch):
    host = FakeHost.arch_linux(tmp_path, programs=["pacman", "sudo"],
                               installed_packages=ArchLinux.required_packages).install(monkeypatch)
    resolver = _resolver(host, ArchLinux)
    assert resolver.missing_packages() == []
    assert resolver.resolve() == []
    assert host.commands_starting_with("sudo") == []
    # one query per package and nothing else
    assert len(host.commands) == 2 * len(ArchLinux.required_packages)
    assert all(c[:2] == ["pacman", "-Qi"] for c in host.commands)


@pytest.mark.parametrize("missing", [["cmake"], ["nasm", "meson", "ninja"], list(ArchLinux.required_packages)])
def test_missing_packages_are_installed_in_one_call(tmp_path: Path, monkeypatch, missing):
    installed = [p for p in ArchLinux.required_packages if p not in missing]
    host = FakeHost.arch_linux(tmp_path, programs=["pacman", "sudo"],
                               installed_packages=installed).install(monkeypatch)
    resolver = _resolver(host, ArchLinux)
    assert resolver.resolve() == missing
    install_calls = host.commands_starting_with("sudo")
    assert install_calls == [["sudo", "pacman", "-Sy", "--needed", "--noconfirm", *missing]]


def test_opensuse_uses_rpm_and_zypper(tmp_path: Path, monkeypatch):
    installed = [p for p in OpenSuseTumbleweed.required_packages if p != "libva-devel"]
    host = FakeHost.opensuse_tumbleweed(tmp_path, programs=["rpm", "zypper", "sudo", "pkg-config"],
                                        installed_packages=installed).install(monkeypatch)
    resolver = _resolver(host, OpenSuseTumbleweed)
    assert resolver.resolve() == ["libva-devel"]
    assert host.commands_starting_with("rpm", "-q", "cmake") == [["rpm", "-q", "cmake"]]
    assert host.commands_starting_with("sudo") == [
        ["sudo", "zypper", "--non-interactive", "install", "--no-recommends", "libva-devel"]]


def test_missing_sudo_is_reported(tmp_path: Path, monkeypatch):
    host = FakeHost.arch_linux(tmp_path, programs=["pacman"], installed_packages=[]).install(monkeypatch)
    resolver = _resolver(host, ArchLinux)
    with pytest.raises(DependencyInstallError, match="'sudo' is not available") as excinfo:
        resolver.resolve()
    assert excinfo.value.packages == list(ArchLinux.required_packages)
    assert excinfo.value.fixit_hint.startswith("Install the following packages manually: base-devel cmake")
    assert host.commands_starting_with("sudo") == []


def test_package_manager_failure(tmp_path: Path, monkeypatch):
    host = FakeHost.arch_linux(tmp_path, programs=["pacman", "sudo"],
                               installed_packages=[p for p in ArchLinux.required_packages if p != "yasm"])
    host.install(monkeypatch)
    host.fail_when(lambda cmd: cmd[0] == "sudo")
    resolver = _resolver(host, ArchLinux)
    with pytest.raises(DependencyInstallError, match=r"exit code 2") as excinfo:
        resolver.resolve()
    assert excinfo.value.packages == ["yasm"]
    assert excinfo.value.exit_code == 1
