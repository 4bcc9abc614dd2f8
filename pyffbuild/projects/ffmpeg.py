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

import os
from pathlib import Path

from .project import AutotoolsProject, GitRepository
from ..processutils import find_program


class BuildFFmpeg(AutotoolsProject):
    """
    Builds FFmpeg against the codec libraries that were installed to the prefix by the other targets. The libraries
    are found via pkg-config (with the install prefix searched first) and located at runtime through an rpath.
    """
    target = "ffmpeg"
    repository = GitRepository("https://github.com/FFmpeg/FFmpeg.git", default_branch="master")
    dependencies = ("svt-av1", "opus", "dav1d", "zimg")
    system_pkg_config = Path("/usr/bin/pkg-config")

    def setup(self) -> None:
        super().setup()
        self.configure_args.extend([
            "--disable-static",
            "--enable-shared",
            "--enable-gpl",
            "--enable-libsvtav1",
            "--enable-libopus",
            "--enable-libdav1d",
            "--enable-libzimg",
            # We don't want any X11 or direct rendering dependencies
            "--disable-xlib",
            "--disable-libxcb",
            "--disable-vdpau",
            "--disable-libdrm",
            self.rpath_ldflags(),
        ])

    def rpath_ldflags(self) -> str:
        lib_dirs = self.context.distribution.runtime_library_dirs(self.install_dir)
        return "--extra-ldflags=-Wl,-rpath," + ":".join(str(d) for d in lib_dirs)

    def pkg_config_environment(self) -> "dict[str, str]":
        search_path = [str(d) for d in self.context.distribution.pkg_config_dirs(self.install_dir)]
        existing = os.getenv("PKG_CONFIG_PATH")
        if existing:
            search_path.append(existing)
        result = {"PKG_CONFIG_PATH": ":".join(search_path)}
        if self.system_pkg_config.exists():
            result["PKG_CONFIG"] = str(self.system_pkg_config)
        else:
            self.warning(self.system_pkg_config, "not found, relying on pkg-config in $PATH")
        return result

    def libva_available(self) -> bool:
        if not find_program("pkg-config"):
            self.warning("Could not find pkg-config, cannot check for libva")
            return False
        # This is a read-only query so it also runs with --pretend
        result = self.run_cmd("pkg-config", "--exists", "libva", run_in_pretend_mode=True,
                              allow_unexpected_returncode=True, print_verbose_only=True)
        return result.returncode == 0

    def configure(self, **kwargs) -> None:
        if not self.config.vaapi:
            self.info("VAAPI support disabled by --no-vaapi")
        elif self.libva_available():
            self.info("libva found, enabling VAAPI hardware acceleration")
            self.configure_args.append("--enable-vaapi")
        else:
            self.warning("libva not found via pkg-config, building FFmpeg without VAAPI support",
                         fixit_hint=self.context.distribution.vaapi_install_instructions().fixit_hint())
        self.verbose_print("FFmpeg configure flags:")
        for flag in self.all_configure_args():
            self.verbose_print("   ", flag)
        super().configure(**kwargs)

    def process(self) -> None:
        with self.set_env(print_verbose_only=False, **self.pkg_config_environment()):
            super().process()
