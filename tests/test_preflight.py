from pathlib import Path

import pytest

from pyffbuild.config.ffbuildconfig import DistributionKind
from pyffbuild.distro import ArchLinux, OpenSuseTumbleweed, check_kernel, detect_distribution
from pyffbuild.utils import OSInfo, UnsupportedPlatformError
from .setup_mock_ffbuildconfig import FakeHost, parse_arguments


def test_parse_os_release(tmp_path: Path):
    os_release = tmp_path / "os-release"
    os_release.write_text('# comment\nNAME="openSUSE Tumbleweed"\nID="opensuse-tumbleweed"\n'
                          "ID_LIKE='opensuse suse'\n\nVERSION_ID=\"20240101\"\nnot a key value line\n")
    assert OSInfo.parse_os_release(os_release) == {
        "NAME": "openSUSE Tumbleweed",
        "ID": "opensuse-tumbleweed",
        "ID_LIKE": "opensuse suse",
        "VERSION_ID": "20240101",
    }
    assert OSInfo.parse_os_release(tmp_path / "does-not-exist") == {}


def test_non_linux_kernel_is_rejected(monkeypatch):
    monkeypatch.setattr(OSInfo, "kernel_name", staticmethod(lambda: "Darwin"))
    with pytest.raises(UnsupportedPlatformError, match="This script only supports Linux. Detected: Darwin"):
        check_kernel()
    with pytest.raises(UnsupportedPlatformError, match="only supports Linux"):
        detect_distribution(parse_arguments([]), DistributionKind.AUTO, Path("/this/does/not/exist"))


def test_detect_arch_linux(tmp_path: Path, monkeypatch):
    host = FakeHost.arch_linux(tmp_path).install(monkeypatch)
    distribution = detect_distribution(parse_arguments([]), DistributionKind.AUTO, host.root)
    assert isinstance(distribution, ArchLinux)
    assert isinstance(detect_distribution(parse_arguments([]), DistributionKind.ARCHLINUX, host.root), ArchLinux)


def test_arch_release_without_os_release(tmp_path: Path, monkeypatch):
    (tmp_path / "etc/pacman.d").mkdir(parents=True)
    FakeHost(tmp_path).install(monkeypatch)
    assert isinstance(detect_distribution(parse_arguments([]), DistributionKind.AUTO, tmp_path), ArchLinux)


def test_detect_opensuse_tumbleweed(tmp_path: Path, monkeypatch):
    host = FakeHost.opensuse_tumbleweed(tmp_path).install(monkeypatch)
    distribution = detect_distribution(parse_arguments([]), DistributionKind.AUTO, host.root)
    assert isinstance(distribution, OpenSuseTumbleweed)


def test_other_distribution_is_rejected(tmp_path: Path, monkeypatch):
    host = FakeHost.ubuntu(tmp_path).install(monkeypatch)
    with pytest.raises(UnsupportedPlatformError, match="Unsupported Linux distribution. Detected ID=ubuntu") as e:
        detect_distribution(parse_arguments([]), DistributionKind.AUTO, host.root)
    assert "Arch Linux, openSUSE Tumbleweed" in e.value.fixit_hint
    with pytest.raises(UnsupportedPlatformError, match="Non-Arch Linux detected"):
        detect_distribution(parse_arguments([]), DistributionKind.ARCHLINUX, host.root)
    with pytest.raises(UnsupportedPlatformError, match="intended for openSUSE Tumbleweed. Detected ID=ubuntu"):
        detect_distribution(parse_arguments([]), DistributionKind.OPENSUSE_TUMBLEWEED, host.root)
    assert host.commands == []


def test_missing_os_release(tmp_path: Path, monkeypatch):
    FakeHost(tmp_path).install(monkeypatch)
    with pytest.raises(UnsupportedPlatformError, match="os-release not found"):
        detect_distribution(parse_arguments([]), DistributionKind.OPENSUSE_TUMBLEWEED, tmp_path)
    with pytest.raises(UnsupportedPlatformError, match="Cannot detect distribution: .*etc/os-release not found") as e:
        detect_distribution(parse_arguments([]), DistributionKind.AUTO, tmp_path)
    assert "Detected ID=" not in str(e.value)
    assert "Arch Linux, openSUSE Tumbleweed" in e.value.fixit_hint


def test_distribution_option_from_command_line():
    assert parse_arguments([]).distribution == DistributionKind.AUTO
    assert parse_arguments(["--distribution", "archlinux"]).distribution == DistributionKind.ARCHLINUX
    assert parse_arguments(["--distribution=opensuse-tumbleweed"]).distribution == \
        DistributionKind.OPENSUSE_TUMBLEWEED
    with pytest.raises(KeyError, match="invalid choice"):
        parse_arguments(["--distribution", "ubuntu"])


def test_pkg_config_search_path_prefers_install_prefix(tmp_path: Path):
    config = parse_arguments([])
    prefix = Path("/home/user/.local")
    arch = ArchLinux(config, tmp_path)
    assert arch.pkg_config_dirs(prefix) == [Path("/home/user/.local/lib/pkgconfig"), Path("/usr/lib/pkgconfig"),
                                            Path("/usr/share/pkgconfig")]
    assert arch.runtime_library_dirs(prefix) == [Path("/home/user/.local/lib")]
    suse = OpenSuseTumbleweed(config, tmp_path)
    assert suse.pkg_config_dirs(prefix)[:3] == [Path("/home/user/.local/lib/pkgconfig"),
                                                Path("/home/user/.local/lib64/pkgconfig"),
                                                Path("/usr/lib64/pkgconfig")]
    assert suse.runtime_library_dirs(prefix) == [Path("/home/user/.local/lib"), Path("/home/user/.local/lib64")]
