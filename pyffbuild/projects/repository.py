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

import typing
from pathlib import Path
from typing import Optional

from ..utils import BuildError

if typing.TYPE_CHECKING:
    from .project import Project

__all__ = ["GitRepository", "SourceRepository"]  # no-combine


class SourceRepository:
    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        raise NotImplementedError()


class GitRepository(SourceRepository):
    """
    A git repository that is always cloned with --depth 1 from the head of a branch. Since there is no commit
    pinning, two runs can produce different results.
    """

    def __init__(self, url: str, *, default_branch: "Optional[str]" = None, recurse_submodules: bool = False):
        self.url = url
        self.default_branch = default_branch
        self.recurse_submodules = recurse_submodules

    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        url = current_project.git_url
        branch = current_project.git_branch
        assert isinstance(url, str), url
        if (src_dir / ".git").exists():
            current_project.verbose_print("Reusing existing checkout in", src_dir)
            return
        if src_dir.exists() and any(src_dir.iterdir()):
            raise BuildError("Cannot clone", url, "into non-empty directory", src_dir)
        clone_cmd = ["git", "clone", "--depth", "1"]
        if self.recurse_submodules:
            clone_cmd.append("--recurse-submodules")
        if branch:
            clone_cmd += ["--branch", branch]
        current_project.run_cmd([*clone_cmd, url, src_dir], cwd=src_dir.parent)

    @staticmethod
    def update_submodules(current_project: "Project", *, src_dir: Path) -> None:
        current_project.run_cmd("git", "submodule", "update", "--init", "--recursive", cwd=src_dir)
