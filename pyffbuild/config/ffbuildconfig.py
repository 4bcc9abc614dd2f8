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

import argparse
import os
import typing
from enum import Enum
from pathlib import Path

import argcomplete

from .config_loader_base import ComputedDefaultValue, ConfigLoaderBase
from .loader import JsonAndCommandLineConfigLoader
from ..processutils import find_program
from ..utils import ConfigBase, DoNotUseInIfStmt, default_make_jobs_count

__all__ = ["DistributionKind", "FFBuildAction", "FFBuildConfig", "DefaultFFBuildConfigLoader"]  # no-combine


class DistributionKind(Enum):
    AUTO = "auto"
    ARCHLINUX = "archlinux"
    OPENSUSE_TUMBLEWEED = "opensuse-tumbleweed"


class FFBuildAction(Enum):
    BUILD = ("--build", "Build and install the chosen targets (default)")
    LIST_TARGETS = ("--list-targets", "List all available targets and exit")
    DUMP_CONFIGURATION = ("--dump-configuration", "Print the current configuration as JSON. This can be saved to "
                                                  "~/.config/ffbuild.json to make it persistent")

    def __init__(self, option_name, help_message) -> None:
        self.option_name = option_name
        self.help_message = help_message


class DefaultFFBuildConfigLoader(JsonAndCommandLineConfigLoader):
    def finalize_options(self, available_targets: "list[str]") -> None:
        target_option = self._parser.add_argument("targets", metavar="TARGET", nargs=argparse.ZERO_OR_MORE,
                                                  help="The targets to build (default: all of " +
                                                       ", ".join(available_targets) + ")")
        if self.is_completing_arguments:
            target_option.completer = argcomplete.completers.ChoicesCompleter(available_targets)


class FFBuildConfig(ConfigBase):
    def __init__(self, loader: ConfigLoaderBase, available_targets: "list[str]") -> None:
        super().__init__(pretend=DoNotUseInIfStmt(), verbose=DoNotUseInIfStmt(), quiet=DoNotUseInIfStmt())
        loader._config = self
        self.loader = loader
        self.available_targets = available_targets
        self.pretend = loader.add_commandline_only_bool_option("pretend", "p",
                                                               help="Only print the commands instead of running them")
        self.action: "list[FFBuildAction]" = []
        for action in FFBuildAction:
            loader.action_group.add_argument(action.option_name, help=action.help_message, dest="action",
                                             action="append_const", const=action)
        self.get_config_option = loader.add_commandline_only_option(
            "get-config-option", type=str, metavar="KEY", group=loader.action_group,
            help="Print the value of config option KEY and exit")

        # boolean flags
        verbosity_group = loader.add_mutually_exclusive_group()
        self.quiet = loader.add_bool_option("quiet", "q", group=verbosity_group,
                                            help="Don't show stdout of the commands that are executed")
        self.verbose = loader.add_bool_option("verbose", "v", group=verbosity_group,
                                              help="Print all commands that are executed")
        self.allow_running_as_root = loader.add_bool_option("allow-running-as-root", default=False,
                                                            help="Allow running ffbuild as root (not recommended)")

        # configurable paths
        self.install_prefix = loader.add_path_option("install-prefix", default=Path(os.path.expanduser("~/.local")),
                                                     group=loader.path_group,
                                                     help="The directory to install FFmpeg and its libraries to. "
                                                          "It is created if missing and never deleted.")
        self.build_root = loader.add_path_option("build-root", default=Path("/tmp/ffmpeg_build_temp"),
                                                 group=loader.path_group,
                                                 help="The scratch directory for sources and builds. It is deleted "
                                                      "at the start of every run and kept afterwards for inspection.")
        self.clang_path = loader.add_path_option("clang-path", shortname="-cc-path", group=loader.path_group,
                                                 default=lambda c, _: find_program("clang"),
                                                 help="The C compiler to use for SVT-AV1 (default: clang in $PATH)")
        self.clang_plusplus_path = loader.add_path_option("clang++-path", shortname="-c++-path",
                                                          group=loader.path_group,
                                                          default=lambda c, _: find_program("clang++"),
                                                          help="The C++ compiler to use for SVT-AV1 "
                                                               "(default: clang++ in $PATH)")

        default_make_jobs = default_make_jobs_count()
        default_make_jobs_computed = ComputedDefaultValue(lambda p, cls: default_make_jobs,
                                                          as_string=str(default_make_jobs))
        self.make_jobs: int = loader.add_option("make-jobs", "j", type=int, default=default_make_jobs_computed,
                                                group=loader.build_group,
                                                help="Number of jobs to use for compiling")
        self.distribution = loader.add_option("distribution", type=DistributionKind, default=DistributionKind.AUTO,
                                              group=loader.build_group,
                                              help="The distribution recipe to use for installing system packages. "
                                                   "'auto' detects it from the host.")
        self.skip_system_dependencies = loader.add_bool_option(
            "skip-system-dependencies", group=loader.build_group,
            help="Don't query or install the required system packages")
        self.vaapi = loader.add_bool_option("vaapi", default=True, group=loader.build_group,
                                            help="Enable VAAPI hardware acceleration in FFmpeg if libva is found")
        self.targets: "list[str]" = []

    def load(self, args: "typing.Optional[list[str]]" = None) -> None:
        self.loader.load(args)
        self.targets = self.loader.targets()
        # the actions are not config options, read them directly
        # noinspection PyProtectedMember
        parsed_actions = getattr(self.loader._parsed_args, "action", None)
        self.action = list(parsed_actions) if parsed_actions else [FFBuildAction.BUILD]
        assert self._ensure_required_properties_set()

    def __getattribute__(self, item) -> "typing.Any":
        v = object.__getattribute__(self, item)
        if hasattr(v, "__get__") and hasattr(v, "load_option"):
            # noinspection PyCallingNonCallable
            return v.__get__(self, self.__class__)  # pytype: disable=attribute-error
        return v

    def _ensure_required_properties_set(self) -> bool:
        assert self.install_prefix.is_absolute(), self.install_prefix
        assert self.build_root.is_absolute(), self.build_root
        return True
