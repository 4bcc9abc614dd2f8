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
import time
import typing
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from .repository import GitRepository, SourceRepository
from ..config.config_loader_base import ComputedDefaultValue, ConfigLoaderBase
from ..config.ffbuildconfig import FFBuildConfig
from ..filesystemutils import FileSystemUtils
from ..processutils import check_required_command, commandline_to_str, run_command, set_env
from ..targets import Target, target_manager
from ..utils import (BuildStepError, InstallInstructions, OSInfo, ToolchainError, remove_duplicates, status_update,
                     warning_message)

if typing.TYPE_CHECKING:
    from ..pipeline import BuildContext

__all__ = ["AutotoolsProject", "CMakeProject", "GitRepository", "MakeCommandKind", "MakeOptions",  # no-combine
           "MesonProject", "Project"]  # no-combine

T = typing.TypeVar("T")


class MakeCommandKind(Enum):
    GnuMake = "GNU make"
    Ninja = "ninja"


class MakeOptions:
    def __init__(self, kind: MakeCommandKind, **kwargs) -> None:
        self._vars: "typing.OrderedDict[str, str]" = OrderedDict()
        self.env_vars: "dict[str, str]" = {}
        self.set(**kwargs)
        self.kind = kind

    @staticmethod
    def __do_set(target_dict: "dict[str, str]", **kwargs) -> None:
        for k, v in kwargs.items():
            if isinstance(v, bool):
                v = "1" if v else "0"
            if isinstance(v, (Path, int)):
                v = str(v)
            assert isinstance(v, str), "Should only pass int/bool/str/Path here and not " + str(type(v))
            target_dict[k] = v

    def set(self, **kwargs) -> None:
        self.__do_set(self._vars, **kwargs)

    def set_env(self, **kwargs) -> None:
        self.__do_set(self.env_vars, **kwargs)

    @property
    def command(self) -> str:
        if self.kind == MakeCommandKind.Ninja:
            return "ninja"
        assert self.kind == MakeCommandKind.GnuMake
        return "make"

    def get_commandline_args(self, *, targets: "Optional[list[str]]" = None, jobs: "Optional[int]" = None,
                             verbose: bool = False) -> "list[str]":
        result = []
        if jobs:
            result.append("-j" + str(jobs))
        # ninja has an explicit verbose flag, make uses variables instead
        if verbose and self.kind == MakeCommandKind.Ninja:
            result.append("-v")
        if targets:
            assert all(isinstance(t, str) and t for t in targets), "Invalid empty/non-string target name"
            result.extend(targets)
        # ninja doesn't accept VAR=value arguments
        if self._vars:
            assert self.kind != MakeCommandKind.Ninja, "Cannot pass variables to ninja: " + str(self._vars)
        for k, v in self._vars.items():
            result.append(k + "=" + v)
        return result

    def __repr__(self) -> str:
        return "<MakeOptions " + self.kind.name + " " + commandline_to_str(self.get_commandline_args()) + ">"


class ProjectSubclassDefinitionHook(type):
    def __init__(cls, name: str, bases, clsdict) -> None:
        super().__init__(name, bases, clsdict)
        if clsdict.get("do_not_add_to_targets") is not None:
            return  # if do_not_add_to_targets is defined within the class we skip it
        if "target" not in clsdict:
            raise RuntimeError(f"target attribute is missing in class {name}")
        target_manager.add_target(Target(clsdict["target"], cls))


class Project(FileSystemUtils, metaclass=ProjectSubclassDefinitionHook):
    """
    Base class for all build targets: clones the source repository into the build root, then runs the configure,
    compile and install steps. Subclasses select the build system by overriding those steps.
    """
    _config_loader: ConfigLoaderBase = None
    do_not_add_to_targets: bool = True

    target: str = ""
    repository: SourceRepository
    dependencies: "tuple[str, ...]" = ()
    # the directory inside the build root that the source is cloned to
    directory_name: "Optional[str]" = None
    make_kind: MakeCommandKind = MakeCommandKind.GnuMake
    # commands that need to exist before configure runs
    required_system_tools: "tuple[str, ...]" = ("make",)
    # Run the install step with -jN
    can_run_parallel_install: bool = False
    _commandline_option_group = None

    # per-target config options, set by setup_config_options()
    git_url: str
    git_branch: "Optional[str]"
    extra_configure_options: "list[str]"

    @classmethod
    def add_config_option(cls, name: str, *, kind: "Union[type[T], Callable[[str], T]]" = str,
                          default: "Union[ComputedDefaultValue[T], Callable[[FFBuildConfig, Project], T], T, None]"
                          = None, **kwargs) -> "Optional[T]":
        fullname = cls.target + "/" + name
        # check that the group was defined in the current class not a superclass
        if "_commandline_option_group" not in cls.__dict__:
            # If we are parsing command line arguments add a group for argparse
            if hasattr(cls._config_loader, "_parser"):
                # noinspection PyProtectedMember
                cls._commandline_option_group = cls._config_loader._parser.add_argument_group(
                    "Options for target '" + cls.target + "'")
            else:
                cls._commandline_option_group = None
        return cls._config_loader.add_option(fullname, type=kind, default=default, _owning_class=cls,
                                             group=cls._commandline_option_group, **kwargs)

    @classmethod
    def add_list_option(cls, name: str, *, default=None, **kwargs) -> "list[str]":
        return cls.add_config_option(name, kind=list, default=[] if default is None else default, **kwargs)

    @classmethod
    def setup_config_options(cls, **kwargs) -> None:
        assert isinstance(cls.repository, GitRepository), cls.repository
        repo = cls.repository
        cls.git_url = cls.add_config_option(
            "git-url", default=repo.url, metavar="URL", help="The URL to clone " + cls.target + " from")
        cls.git_branch = cls.add_config_option(
            "git-branch", default=repo.default_branch, metavar="BRANCH",
            help="The branch to clone (default: " + (repo.default_branch or "the remote HEAD") + ")")
        cls.extra_configure_options = cls.add_list_option(
            "configure-options", metavar="OPTIONS",
            help="Additional command line options to pass to the configure step")

    @classmethod
    def get_directory_name(cls) -> str:
        return cls.directory_name or cls.target

    def __init__(self, config: FFBuildConfig, context: "BuildContext") -> None:
        super().__init__(config)
        self.config = config
        self.context = context
        self.source_dir = context.build_root / self.get_directory_name()
        self.install_dir = context.install_prefix
        self.configure_command: "Optional[Union[str, Path]]" = None
        self.configure_args: "list[str]" = []
        self.configure_environment: "dict[str, str]" = {}
        self.make_args = MakeOptions(self.make_kind)
        self._setup_called = False

    @property
    def build_dir(self) -> Path:
        return self.source_dir

    @property
    def make_jobs(self) -> int:
        return self.context.make_jobs

    def setup(self) -> None:
        """Populate the configure arguments. Subclasses that override this must call super().setup() first."""
        self._setup_called = True

    def verbose_print(self, *args, **kwargs) -> None:
        if self.config.verbose:
            print(*args, **kwargs)

    def info(self, *args, **kwargs) -> None:
        if not self.config.quiet:
            print(*args, **kwargs)

    def warning(self, *args, **kwargs) -> None:
        warning_message(*args, **kwargs)

    def run_cmd(self, *args, capture_output=False, cwd: "Optional[Path]" = None, print_verbose_only=False,
                **kwargs) -> "subprocess.CompletedProcess[bytes]":
        return run_command(*args, capture_output=capture_output, cwd=cwd, print_verbose_only=print_verbose_only,
                           config=self.config, **kwargs)

    def set_env(self, *, print_verbose_only=True, **environ):
        return set_env(print_verbose_only=print_verbose_only, config=self.config, **environ)

    def check_required_system_tool(self, executable: str, instructions: "Optional[InstallInstructions]" = None,
                                   **kwargs) -> None:
        if instructions is None:
            instructions = OSInfo.install_instructions(executable, **kwargs)
        try:
            check_required_command(executable, instructions=instructions)
        except ToolchainError as e:
            if not self.config.pretend:
                raise
            # Allow --pretend to continue on hosts without the toolchain
            self.warning("Potential fatal error:", str(e), fixit_hint=e.fixit_hint)

    def check_system_dependencies(self) -> None:
        for tool in self.required_system_tools:
            self.check_required_system_tool(tool)

    def clone(self) -> None:
        self.repository.ensure_cloned(self, src_dir=self.source_dir)

    def run_make(self, make_target: "Optional[Union[str, list[str]]]" = None, *,
                 options: "Optional[MakeOptions]" = None, cwd: "Optional[Path]" = None, parallel: bool = True) -> None:
        if not options:
            options = self.make_args
        if not cwd:
            cwd = self.build_dir
        if make_target is None:
            targets = None
        elif isinstance(make_target, str):
            targets = [make_target]
        else:
            targets = make_target
        all_args = [options.command, *options.get_commandline_args(
            targets=targets, jobs=self.make_jobs if parallel else None, verbose=self.config.verbose)]
        starttime = time.time()
        self.run_cmd(all_args, cwd=cwd, env=options.env_vars)
        self.verbose_print("Running", options.command, "took", time.time() - starttime, "seconds")

    def configure(self, cwd: "Optional[Path]" = None, configure_path: "Optional[Union[str, Path]]" = None) -> None:
        if cwd is None:
            cwd = self.build_dir
        if configure_path is None:
            configure_path = self.configure_command
        if configure_path is None:
            self.verbose_print("No configure command specified, skipping configure step.")
            return
        self.run_cmd([str(configure_path), *self.all_configure_args()], cwd=cwd, env=self.configure_environment)

    def all_configure_args(self) -> "list[str]":
        return remove_duplicates([*self.configure_args, *self.extra_configure_options])

    def compile(self, cwd: "Optional[Path]" = None, parallel: bool = True) -> None:
        self.run_make(cwd=cwd, parallel=parallel)

    def install(self) -> None:
        self.run_make("install", parallel=self.can_run_parallel_install)

    def _run_step(self, stage: str, function: "Callable[[], None]") -> None:
        status_update(stage.capitalize(), self.target, "...")
        try:
            function()
        except subprocess.CalledProcessError as e:
            raise BuildStepError("Failed to", stage, self.target + ":", "command", commandline_to_str(e.cmd),
                                 "exited with code", e.returncode, target=self.target, stage=stage,
                                 command=[str(s) for s in e.cmd], returncode=e.returncode,
                                 cwd=getattr(e, "cwd", None)) from e

    def process(self) -> None:
        if not self._setup_called:
            self.setup()
        # Check for tools before cloning so that a missing compiler is reported as early as possible
        self.check_system_dependencies()
        self._run_step("clone", self.clone)
        self.makedirs(self.build_dir)
        self._run_step("configure", self.configure)
        self._run_step("compile", self.compile)
        self._run_step("install", self.install)

    def __str__(self) -> str:
        return self.target

    def __repr__(self) -> str:
        return "<" + self.__class__.__name__ + "(" + self.target + ") " + str(self.source_dir) + ">"


class CMakeProject(Project):
    """
    Like Project but automatically sets up the defaults for CMake projects
    Sets configure command to CMake, adds -DCMAKE_INSTALL_PREFIX=installdir
    and checks that CMake is installed
    """
    do_not_add_to_targets = True
    required_system_tools = ("cmake", "make")
    # the build directory relative to the source directory
    cmake_build_subdir: str = "build"
    default_build_type: str = "Release"

    @property
    def build_dir(self) -> Path:
        return self.source_dir / self.cmake_build_subdir

    def setup(self) -> None:
        super().setup()
        self.configure_command = "cmake"
        self.configure_args.append(str(self.source_dir))
        self.add_cmake_options(CMAKE_INSTALL_PREFIX=self.install_dir, CMAKE_BUILD_TYPE=self.default_build_type)
        if self.config.verbose:
            # the generated Makefiles only print the compiler command lines with VERBOSE=1
            self.make_args.set(VERBOSE=True)

    def add_cmake_options(self, **kwargs) -> None:
        for option, value in kwargs.items():
            if isinstance(value, bool):
                value = "ON" if value else "OFF"
            elif isinstance(value, (Path, int)):
                value = str(value)
            elif not isinstance(value, str):
                raise TypeError("Unsupported type " + str(type(value)) + ": " + str(value))
            # Replace an existing definition instead of passing the variable twice
            prefix = "-D" + option + "="
            self.configure_args = [a for a in self.configure_args if not a.startswith(prefix)]
            self.configure_args.append(prefix + value)


class AutotoolsProject(Project):
    do_not_add_to_targets = True
    # run ./autogen.sh even if configure already exists
    run_autogen: bool = False

    def setup(self) -> None:
        super().setup()
        self.configure_command = self.source_dir / "configure"
        self.configure_args.append("--prefix=" + str(self.install_dir))
        if self.config.verbose:
            # Most autotools-based projects enable verbose output by setting V=1
            self.make_args.set_env(V=1)

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        if self.run_autogen:
            for tool in ("autoconf", "automake", "libtoolize"):
                self.check_required_system_tool(tool, pacman="autoconf automake libtool",
                                                zypper="autoconf automake libtool")

    def run_autogen_script(self) -> None:
        autogen_script = self.source_dir / "autogen.sh"
        if not self.config.pretend and not autogen_script.exists():
            self.warning("Could not find", autogen_script, "-> trying autoreconf instead")
            self.run_cmd("autoreconf", "-fi", cwd=self.source_dir)
            return
        with self.set_env(NOCONFIGURE="1"):
            self.run_cmd(autogen_script, cwd=self.source_dir)

    def configure(self, **kwargs) -> None:
        assert isinstance(self.configure_command, Path)
        # With --pretend the configure script of a fresh checkout can never exist
        if self.run_autogen or (not self.config.pretend and not self.configure_command.exists()):
            self.run_autogen_script()
        super().configure(**kwargs)


class MesonProject(Project):
    do_not_add_to_targets = True
    make_kind = MakeCommandKind.Ninja
    required_system_tools = ("meson", "ninja")

    @property
    def build_dir(self) -> Path:
        return self.source_dir / "build"

    def setup(self) -> None:
        super().setup()
        self.configure_command = "meson"
        self.configure_args.extend(["setup", str(self.build_dir), str(self.source_dir),
                                    "--prefix=" + str(self.install_dir), "--buildtype=release"])

    def add_meson_options(self, **kwargs) -> None:
        for option, value in kwargs.items():
            if isinstance(value, bool):
                value = str(value).lower()
            elif isinstance(value, (Path, int)):
                value = str(value)
            elif not isinstance(value, str):
                raise TypeError("Unsupported type " + str(type(value)) + ": " + str(value))
            self.configure_args.append("-D" + option + "=" + value)

    def configure(self, **kwargs) -> None:
        super().configure(cwd=self.source_dir, **kwargs)
