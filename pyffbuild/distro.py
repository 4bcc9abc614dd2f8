#
# Copyright (c) 2016 Alex Richardson
# All rights reserved.
#
# This software was developed by SRI International and the University of
# Cambridge Computer Laboratory under DARPA/AFRL contract FA8750-10-C-0237
# ("CTSRD"), as part of the DARPA CRASH research programme.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions
# are met:
# 1. Redistributions of source code must retain the above copyright
#    notice, this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE AUTHOR AND CONTRIBUTORS ``AS IS'' AND
# ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED.  IN NO EVENT SHALL THE AUTHOR OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS
# OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION)
# HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT
# LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY
# OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF
# SUCH DAMAGE.
#

import subprocess
import typing
from pathlib import Path

from .config.ffbuildconfig import DistributionKind
from .processutils import check_required_command, commandline_to_str, find_program, run_command
from .utils import (ConfigBase, DependencyInstallError, InstallInstructions, OSInfo, UnsupportedPlatformError,
                    remove_duplicates, status_update)

__all__ = ["Distribution", "ArchLinux", "OpenSuseTumbleweed", "SUPPORTED_DISTRIBUTIONS", "check_kernel",  # no-combine
           "detect_distribution", "SystemDependencyResolver"]  # no-combine


class Distribution:
    """
    A supported host distribution: how to recognize it, which packages the toolchain needs and how to query and
    install them, and where its pkg-config and runtime library directories are.
    """
    kind: DistributionKind
    pretty_name: str
    package_manager: str
    required_packages: "tuple[str, ...]" = ()
    vaapi_package: str
    system_pkgconfig_dirs: "tuple[str, ...]" = ()
    prefix_library_dirs: "tuple[str, ...]" = ("lib",)

    def __init__(self, config: ConfigBase, host_root: Path = Path("/")) -> None:
        self.config = config
        self.host_root = host_root

    @classmethod
    def matches(cls, host_root: Path) -> bool:
        raise NotImplementedError()

    @classmethod
    def mismatch_message(cls, host_root: Path) -> str:
        return "This script is intended for " + cls.pretty_name + "."

    def query_command(self, package: str) -> "list[str]":
        raise NotImplementedError()

    def install_command(self, packages: "typing.Sequence[str]") -> "list[str]":
        raise NotImplementedError()

    def check_installed_tools(self) -> None:
        pass

    def pkg_config_dirs(self, prefix: Path) -> "list[Path]":
        """The pkg-config search path with the install prefix first so that newly built libraries shadow the
        system versions."""
        return [prefix / libdir / "pkgconfig" for libdir in self.prefix_library_dirs] + [
            Path(d) for d in self.system_pkgconfig_dirs]

    def runtime_library_dirs(self, prefix: Path) -> "list[Path]":
        return [prefix / libdir for libdir in self.prefix_library_dirs]

    def vaapi_install_instructions(self) -> InstallInstructions:
        return InstallInstructions("Ensure '" + self.vaapi_package + "' is installed via " + self.package_manager +
                                   " if you want VAAPI hardware acceleration.")

    def __repr__(self) -> str:
        return "<" + self.__class__.__name__ + " " + self.kind.value + ">"


def _os_release_not_found_message(host_root: Path) -> "typing.Optional[str]":
    os_release_path = host_root / "etc/os-release"
    if not os_release_path.exists():
        return "Cannot detect distribution: " + str(os_release_path) + " not found."
    return None


def _detected_os_release(host_root: Path) -> str:
    os_release = OSInfo.etc_os_release(host_root)
    return "Detected ID=" + os_release.get("ID", "") + ", ID_LIKE=" + os_release.get("ID_LIKE", "")


class ArchLinux(Distribution):
    kind = DistributionKind.ARCHLINUX
    pretty_name = "Arch Linux"
    package_manager = "pacman"
    required_packages = ("base-devel", "cmake", "nasm", "yasm", "pkgconf", "git", "wget", "autoconf", "automake",
                         "libtool", "clang", "libva", "meson", "ninja", "python")
    vaapi_package = "libva"
    system_pkgconfig_dirs = ("/usr/lib/pkgconfig", "/usr/share/pkgconfig")
    prefix_library_dirs = ("lib",)

    @classmethod
    def matches(cls, host_root: Path) -> bool:
        return OSInfo.is_arch_linux(host_root)

    @classmethod
    def mismatch_message(cls, host_root: Path) -> str:
        return "Non-Arch Linux detected. This script is intended for Arch Linux."

    def query_command(self, package: str) -> "list[str]":
        return ["pacman", "-Qi", package]

    def install_command(self, packages: "typing.Sequence[str]") -> "list[str]":
        return ["pacman", "-Sy", "--needed", "--noconfirm", *packages]


class OpenSuseTumbleweed(Distribution):
    kind = DistributionKind.OPENSUSE_TUMBLEWEED
    pretty_name = "openSUSE Tumbleweed"
    package_manager = "zypper"
    required_packages = ("patterns-devel-base-devel_basis", "gcc", "gcc-c++", "make", "cmake", "nasm", "yasm", "git",
                         "wget", "autoconf", "automake", "libtool", "clang", "libva-devel", "meson", "ninja")
    vaapi_package = "libva-devel"
    system_pkgconfig_dirs = ("/usr/lib64/pkgconfig", "/usr/lib/pkgconfig", "/usr/share/pkgconfig")
    prefix_library_dirs = ("lib", "lib64")

    @classmethod
    def matches(cls, host_root: Path) -> bool:
        os_release = OSInfo.etc_os_release(host_root)
        return os_release.get("ID") == "opensuse-tumbleweed" or "suse" in os_release.get("ID_LIKE", "").split()

    @classmethod
    def mismatch_message(cls, host_root: Path) -> str:
        return _os_release_not_found_message(host_root) or (
            "This script is intended for openSUSE Tumbleweed. " + _detected_os_release(host_root))

    def query_command(self, package: str) -> "list[str]":
        return ["rpm", "-q", package]

    def install_command(self, packages: "typing.Sequence[str]") -> "list[str]":
        return ["zypper", "--non-interactive", "install", "--no-recommends", *packages]

    def check_installed_tools(self) -> None:
        check_required_command("pkg-config", zypper="pkgconf-pkg-config")


SUPPORTED_DISTRIBUTIONS: "list[type[Distribution]]" = [ArchLinux, OpenSuseTumbleweed]


def check_kernel() -> str:
    kernel = OSInfo.kernel_name()
    if kernel != "Linux":
        raise UnsupportedPlatformError("This script only supports Linux. Detected:", kernel)
    return kernel


def detect_distribution(config: ConfigBase, kind: DistributionKind = DistributionKind.AUTO,
                        host_root: Path = Path("/")) -> Distribution:
    check_kernel()
    if kind != DistributionKind.AUTO:
        distro_cls = next(d for d in SUPPORTED_DISTRIBUTIONS if d.kind == kind)
        if not distro_cls.matches(host_root):
            raise UnsupportedPlatformError(distro_cls.mismatch_message(host_root))
        return distro_cls(config, host_root)
    for distro_cls in SUPPORTED_DISTRIBUTIONS:
        if distro_cls.matches(host_root):
            return distro_cls(config, host_root)
    message = _os_release_not_found_message(host_root) or (
        "Unsupported Linux distribution. " + _detected_os_release(host_root))
    raise UnsupportedPlatformError(message, fixit_hint="Supported distributions are: " +
                                            ", ".join(d.pretty_name for d in SUPPORTED_DISTRIBUTIONS))


class SystemDependencyResolver:
    """Installs the missing toolchain packages with a single privileged package manager invocation."""

    def __init__(self, config: ConfigBase, distribution: Distribution) -> None:
        self.config = config
        self.distribution = distribution

    def is_installed(self, package: str) -> bool:
        # Querying is read-only so it also runs in pretend mode
        result = run_command(self.distribution.query_command(package), config=self.config, capture_output=True,
                             capture_error=True, allow_unexpected_returncode=True, run_in_pretend_mode=True,
                             print_verbose_only=True)
        return result.returncode == 0

    def missing_packages(self) -> "list[str]":
        query_tool = self.distribution.query_command("")[0]
        check_required_command(query_tool)
        return [pkg for pkg in remove_duplicates(self.distribution.required_packages) if not self.is_installed(pkg)]

    def install(self, packages: "typing.Sequence[str]") -> None:
        sudo = find_program("sudo")
        if sudo is None:
            raise DependencyInstallError("'sudo' is not available, cannot install missing packages", packages=packages)
        install_cmd = ["sudo", *self.distribution.install_command(packages)]
        try:
            run_command(install_cmd, config=self.config)
        except subprocess.CalledProcessError as e:
            raise DependencyInstallError("Failed to install packages using `" + commandline_to_str(install_cmd) +
                                         "` (exit code " + str(e.returncode) + ")", packages=packages) from e

    def resolve(self) -> "list[str]":
        """
        :return: the list of packages that were installed (empty if everything was already present)
        """
        status_update("Checking required", self.distribution.package_manager, "packages...")
        missing = self.missing_packages()
        if missing:
            status_update("Installing missing packages:", " ".join(missing))
            self.install(missing)
        else:
            status_update("All required packages are already installed.")
        self.distribution.check_installed_tools()
        return missing
