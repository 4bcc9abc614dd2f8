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
from typing import Optional

from .project import CMakeProject, GitRepository
from ..utils import OSInfo, ToolchainError


class BuildSvtAv1(CMakeProject):
    target = "svt-av1"
    directory_name = "SVT-AV1"
    # The psy fork (https://github.com/BlueSwordM/svt-av1-psyex.git) can be selected with --svt-av1/git-url
    repository = GitRepository("https://gitlab.com/AOMediaCodec/SVT-AV1.git", default_branch="master")
    cmake_build_subdir = "Build"

    def _resolve_compiler(self, path: "Optional[Path]", name: str) -> Path:
        if path is None or not path.is_file() or not os.access(str(path), os.X_OK):
            error = ToolchainError(name, "compiler not found or not executable:", path if path else name,
                                   fixit_hint=OSInfo.install_instructions(name, default="clang").fixit_hint())
            if not self.config.pretend:
                raise error
            self.warning("Potential fatal error:", str(error), fixit_hint=error.fixit_hint)
            return Path(name)
        return path

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        self.CC = self._resolve_compiler(self.config.clang_path, "clang")
        self.CXX = self._resolve_compiler(self.config.clang_plusplus_path, "clang++")

    def configure(self, **kwargs) -> None:
        self.add_cmake_options(CMAKE_C_COMPILER=self.CC, CMAKE_CXX_COMPILER=self.CXX, BUILD_SHARED_LIBS=True,
                               BUILD_APPS=False, SVT_AV1_LTO=True, NATIVE=True, CMAKE_C_FLAGS="-O3",
                               CMAKE_CXX_FLAGS="-O3")
        super().configure(**kwargs)
