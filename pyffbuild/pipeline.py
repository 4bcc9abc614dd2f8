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

import time
import typing
from pathlib import Path

from .colour import AnsiColour, coloured
from .config.ffbuildconfig import FFBuildConfig
from .distro import Distribution, SystemDependencyResolver, detect_distribution
from .filesystemutils import FileSystemUtils
from .targets import Target
from .utils import BuildError, status_update

__all__ = ["BuildContext", "BuildPipeline", "BuildResult"]  # no-combine


class BuildContext:
    """The values that stay fixed for the whole run once preflight has completed."""

    def __init__(self, *, distribution: Distribution, install_prefix: Path, build_root: Path, make_jobs: int) -> None:
        self.distribution = distribution
        self.install_prefix = install_prefix
        self.build_root = build_root
        self.make_jobs = make_jobs

    def __repr__(self) -> str:
        return (f"<BuildContext {self.distribution!r} prefix={self.install_prefix} build_root={self.build_root} "
                f"jobs={self.make_jobs}>")


class BuildResult:
    def __init__(self, *, error: "typing.Optional[BuildError]" = None,
                 completed_targets: "typing.Sequence[str]" = ()) -> None:
        self.error = error
        self.completed_targets = list(completed_targets)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 0 if self.error is None else self.error.exit_code

    def __repr__(self) -> str:
        return f"<BuildResult ok={self.ok} completed={self.completed_targets} error={self.error!r}>"


class BuildPipeline(FileSystemUtils):
    """
    Runs the stages of a build strictly in order: preflight checks, system package installation, workspace
    reset and finally the selected targets. The first failure aborts the run.
    """

    def __init__(self, config: FFBuildConfig, targets: "list[Target]", host_root: Path = Path("/")) -> None:
        super().__init__(config)
        self.config = config
        self.targets = targets
        self.host_root = host_root
        self.context: "typing.Optional[BuildContext]" = None
        self.installed_packages: "list[str]" = []
        self.completed_targets: "list[str]" = []

    def preflight(self) -> BuildContext:
        distribution = detect_distribution(self.config, self.config.distribution, host_root=self.host_root)
        status_update("Detected", distribution.pretty_name)
        install_prefix = self.config.install_prefix
        build_root = self.config.build_root
        if build_root == install_prefix or install_prefix in build_root.parents or \
                build_root in install_prefix.parents:
            raise BuildError("The build root", build_root, "must not overlap with the install prefix",
                             install_prefix, fixit_hint="Pass a different directory with --build-root")
        self.context = BuildContext(distribution=distribution, install_prefix=install_prefix, build_root=build_root,
                                    make_jobs=self.config.make_jobs)
        if self.config.verbose:
            print(self.context)
        return self.context

    def resolve_system_dependencies(self) -> None:
        assert self.context is not None
        if self.config.skip_system_dependencies:
            status_update("Skipping system package installation")
            return
        resolver = SystemDependencyResolver(self.config, self.context.distribution)
        self.installed_packages = resolver.resolve()

    def prepare_workspace(self) -> None:
        assert self.context is not None
        status_update("Preparing build directory", self.context.build_root)
        self.clean_directory(self.context.build_root)
        # The install prefix is shared between runs and never cleaned
        self.makedirs(self.context.install_prefix)
        for target in self.targets:
            src_dir = self.context.build_root / target.project_class.get_directory_name()
            self.delete_directory(src_dir)

    def build_targets(self) -> None:
        assert self.context is not None
        for target in self.targets:
            target.execute(self.config, self.context)
            self.completed_targets.append(target.name)

    def report(self) -> None:
        assert self.context is not None
        status_update("Build directory", self.context.build_root, "kept for inspection")
        banner = "=" * 40
        print(coloured(AnsiColour.green, banner))
        print(coloured(AnsiColour.green, "FFmpeg build successful!"))
        print(coloured(AnsiColour.green, banner))
        if "ffmpeg" in self.completed_targets:
            print("ffmpeg and ffprobe are located at: " + str(self.context.install_prefix / "bin") + "/")

    def run(self) -> None:
        starttime = time.time()
        self.preflight()
        self.resolve_system_dependencies()
        self.prepare_workspace()
        self.build_targets()
        self.report()
        status_update("Total time:", int(time.time() - starttime), "seconds")

    def execute(self) -> BuildResult:
        try:
            self.run()
        except BuildError as e:
            return BuildResult(error=e, completed_targets=self.completed_targets)
        return BuildResult(completed_targets=self.completed_targets)
