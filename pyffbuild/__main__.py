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

import json
import os
import sys
import traceback
import typing
from collections import OrderedDict

from .colour import AnsiColour, coloured
from .config.config_loader_base import ConfigOptionBase
from .config.ffbuildconfig import DefaultFFBuildConfigLoader, FFBuildAction, FFBuildConfig
from .config.loader import MyJsonEncoder
from .pipeline import BuildPipeline
from .processutils import commandline_to_str, run_and_kill_children_on_exit
from .projects import *  # noqa: F401, F403
from .projects.project import Project
from .targets import UnknownTargetError, target_manager
from .utils import (BuildError, BuildStepError, add_error_context, error_message, fatal_error, fixit_message,
                    init_global_config)


def check_not_root() -> None:
    if os.geteuid() == 0:
        fatal_error("You are running ffbuild as root. This is dangerous and the package installation step already "
                    "uses sudo. Please re-run as a non-root user.", pretend=False)


def get_config_option_value(option: ConfigOptionBase, config: FFBuildConfig) -> "typing.Any":
    if option._owning_class is not None:
        # per-target options don't have computed defaults and can be read from the class
        return option.__get__(None, option._owning_class)
    # otherwise it must be a config option on FFBuildConfig:
    return option.__get__(config, type(config))


def report_build_error(e: BuildError) -> None:
    if e.error_context is not None:
        with add_error_context(e.error_context):
            error_message(str(e))
    else:
        error_message(str(e))
    if isinstance(e, BuildStepError):
        print("  Target:", e.target, file=sys.stderr)
        print("  Stage:", e.stage, file=sys.stderr)
        if e.command:
            print("  Command:", commandline_to_str(e.command), file=sys.stderr)
        if e.cwd:
            print("  Working directory:", e.cwd, file=sys.stderr)
    if e.fixit_hint:
        fixit_message(e.fixit_hint)


def real_main(args: "typing.Optional[list[str]]" = None) -> int:
    config_loader = DefaultFFBuildConfigLoader()
    all_target_names = target_manager.target_names
    # Register all command line options
    config = FFBuildConfig(config_loader, all_target_names)
    Project._config_loader = config_loader
    target_manager.register_command_line_options()
    config_loader.finalize_options(all_target_names)
    # load them from JSON/cmd line
    config.load(args)
    if not config.allow_running_as_root:
        check_not_root()
    init_global_config(config)

    if FFBuildAction.LIST_TARGETS in config.action:
        names = target_manager.target_names
        print("There are", len(names), "available targets:\n ", "\n  ".join(names))
        return 0
    elif FFBuildAction.DUMP_CONFIGURATION in config.action:
        json_dict = OrderedDict()
        for v in config.loader.options.values():
            json_dict[v.full_option_name] = get_config_option_value(v, config)
        json.dump(json_dict, sys.stdout, sort_keys=True, cls=MyJsonEncoder, indent=4)
        print()
        return 0
    elif config.get_config_option:
        if config.get_config_option not in config_loader.options:
            fatal_error("Unknown config key", config.get_config_option, pretend=False)
        option = config_loader.options[config.get_config_option]
        print(get_config_option_value(option, config))
        return 0

    assert FFBuildAction.BUILD in config.action
    try:
        chosen_targets = target_manager.get_all_targets(config.targets)
    except UnknownTargetError as e:
        fatal_error(str(e), pretend=False)
        return 1
    if not config.quiet:
        print("Will build the following", len(chosen_targets), "targets:", " ".join(t.name for t in chosen_targets))
        print("Sources will be cloned to", config.build_root)
        print("Libraries and programs will be installed to", config.install_prefix)

    result = BuildPipeline(config, chosen_targets).execute()
    if not result.ok:
        assert result.error is not None
        report_build_error(result.error)
        if result.completed_targets:
            print("Completed targets:", ", ".join(result.completed_targets), file=sys.stderr)
        print(coloured(AnsiColour.red, "FFmpeg build failed!"), file=sys.stderr)
    return result.exit_code


def main() -> None:
    exit_code = 0

    def run() -> None:
        nonlocal exit_code
        exit_code = real_main()

    try:
        run_and_kill_children_on_exit(run)
    except Exception as e:
        # If we are currently debugging, raise the exception to allow e.g. PyCharm's
        # "break on exception that terminates execution" feature works.
        debugger_attached = getattr(sys, "gettrace", lambda: None)() is not None
        if debugger_attached:
            raise e
        else:
            traceback.print_exc()
            fatal_error("Unhandled exception:", e, pretend=False)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
