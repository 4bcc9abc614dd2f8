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

import contextlib
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
import typing
from pathlib import Path
from subprocess import CompletedProcess
from typing import Callable, Optional, Union

from .colour import AnsiColour, coloured
from .utils import ConfigBase, InstallInstructions, OSInfo, ToolchainError, fatal_error

__all__ = ["print_command", "run_command", "commandline_to_str", "set_env", "find_program",  # no-combine
           "check_required_command", "run_and_kill_children_on_exit"]  # no-combine


def __filter_env(env: "dict[str, str]") -> "dict[str, str]":
    result: "dict[str, str]" = dict()
    for k, v in env.items():
        if k not in os.environ or os.environ[k] != v:
            result[k] = v
    return result


@contextlib.contextmanager
def set_env(*, print_verbose_only=True, config: ConfigBase, **environ):
    """
    Temporarily set the process environment variables.

    >>> with set_env(PKG_CONFIG_PATH='/opt/lib/pkgconfig', config=config):
    ...   "PKG_CONFIG_PATH" in os.environ
    True

    """
    changed_values: "dict[str, Optional[str]]" = dict()
    if environ:
        should_print_update = not print_verbose_only or config.verbose
        for k, v in environ.items():
            # make sure all environment variables are converted to string
            new_value = str(v)
            old_value = os.getenv(k, None)
            if should_print_update:
                print_command("export", k + "=" + new_value, print_verbose_only=print_verbose_only, config=config)
            if new_value != old_value:
                changed_values[k] = old_value
                os.environ[k] = new_value
    try:
        yield
    finally:
        for var, prev_value in changed_values.items():
            if prev_value is None:
                del os.environ[var]
            else:
                os.environ[var] = prev_value


def print_command(arg1: "Union[str, typing.Sequence[typing.Any]]", *remaining_args, output_file=None,
                  colour=AnsiColour.yellow, cwd=None, env=None, sep=" ", print_verbose_only=False,
                  config: ConfigBase, **kwargs):
    if config.quiet or (print_verbose_only and not config.verbose):
        return
    # also allow passing a single string
    if not isinstance(arg1, str):
        all_args = arg1
        arg1 = all_args[0]
        remaining_args = all_args[1:]
    prefix = ("cd", shlex.quote(str(cwd)), "&&") if cwd else tuple()
    if env:
        # only print the changed environment entries
        new_env_vars = __filter_env(env)
        if new_env_vars:
            envvars = coloured(AnsiColour.cyan, commandline_to_str(k + "=" + str(v) for k, v in new_env_vars.items()))
            prefix += ("env", envvars)
    # comma in tuple is required otherwise it creates a tuple of string chars
    new_args = (shlex.quote(str(arg1)), *tuple(map(shlex.quote, map(str, remaining_args))))
    if output_file:
        new_args += (">", str(output_file))
    # Avoid a space before the actual command if there is no prefix:
    if not prefix:
        print(coloured(colour, new_args, sep=sep), flush=True, **kwargs)
    else:
        print(coloured(colour, prefix, sep=sep), coloured(colour, new_args, sep=sep), flush=True, **kwargs)


def _make_called_process_error(retcode, args, *, stdout=None, stderr=None, cwd=None) -> subprocess.CalledProcessError:
    err = subprocess.CalledProcessError(retcode, args, output=stdout, stderr=stderr)
    err.cwd = cwd
    return err


def popen_handle_noexec(cmdline: "list[str]", **kwargs) -> subprocess.Popen:
    try:
        return subprocess.Popen(cmdline, **kwargs)
    except (PermissionError, FileNotFoundError) as e:
        raise _make_called_process_error(e.errno, cmdline, cwd=kwargs.get("cwd", None),
                                         stderr=str(e).encode("utf-8")) from e


def run_command(*args, capture_output=False, capture_error=False, print_verbose_only=False, run_in_pretend_mode=False,
                allow_unexpected_returncode=False, config: ConfigBase, env: "Optional[dict[str, str]]" = None,
                **kwargs) -> "CompletedProcess[bytes]":
    if len(args) == 1 and isinstance(args[0], (list, tuple)):
        cmdline = args[0]  # list with parameters was passed
    else:
        cmdline = args
    assert "_ARGCOMPLETE" not in os.environ, "Should not execute any programs as part of bash completion!"
    cmdline = list(map(str, cmdline))  # ensure it's all strings so that subprocess can handle it
    print_command(cmdline, cwd=kwargs.get("cwd"), env=env, print_verbose_only=print_verbose_only, config=config)
    if "cwd" in kwargs:
        kwargs["cwd"] = str(kwargs["cwd"])
    else:
        # os.getcwd() raises an exception if the cwd was deleted
        try:
            kwargs["cwd"] = os.getcwd()
        except FileNotFoundError:
            kwargs["cwd"] = tempfile.gettempdir()
    if not run_in_pretend_mode and config.pretend:
        return CompletedProcess(args=cmdline, returncode=0, stdout=b"", stderr=b"")
    # actually run the process now:
    if capture_output:
        assert "stdout" not in kwargs  # we need to use stdout here
        kwargs["stdout"] = subprocess.PIPE
    elif config.quiet and "stdout" not in kwargs:
        kwargs["stdout"] = subprocess.DEVNULL
    if capture_error:
        assert "stderr" not in kwargs  # we need to use stderr here
        kwargs["stderr"] = subprocess.PIPE

    if env is not None:
        new_env = os.environ.copy()
        new_env.update({k: str(v) for k, v in env.items()})  # make sure everything is a string
        kwargs["env"] = new_env
    with popen_handle_noexec(cmdline, **kwargs) as process:
        try:
            stdout, stderr = process.communicate()
        except BaseException:
            process.kill()
            process.wait()
            raise
        retcode = process.poll()
        if retcode != 0 and not allow_unexpected_returncode:
            raise _make_called_process_error(retcode, process.args, stdout=stdout, stderr=stderr, cwd=kwargs["cwd"])
        return CompletedProcess(process.args, retcode, typing.cast(bytes, stdout), typing.cast(bytes, stderr))


def _quote(s) -> str:
    return shlex.quote(str(s))


def commandline_to_str(args: "typing.Iterable[Union[str, Path]]") -> str:
    return " ".join(_quote(s) for s in args)


def find_program(name: "Union[str, Path]") -> "Optional[Path]":
    result = shutil.which(str(name))
    return Path(result) if result else None


def check_required_command(name: str, *, instructions: "Optional[InstallInstructions]" = None, **kwargs) -> Path:
    path = find_program(name)
    if path is None:
        if instructions is None:
            instructions = OSInfo.install_instructions(name, **kwargs)
        raise ToolchainError("Required command '" + name + "' not found", fixit_hint=instructions.fixit_hint())
    return path


def run_and_kill_children_on_exit(fn: "Callable[[], typing.Any]"):
    # run_command() kills the running child process if an exception (including Ctrl+C) is raised while waiting
    try:
        fn()
    except KeyboardInterrupt:
        sys.exit("Exiting due to Ctrl+C")
    except subprocess.CalledProcessError as err:
        extra_msg = (". Working directory was ", err.cwd) if hasattr(err, "cwd") else ()
        if err.stderr is not None:
            extra_msg += ("\nStandard error was:\n", err.stderr.decode("utf-8"))
        fatal_error("Command ", "`" + commandline_to_str(err.cmd) + "` failed with non-zero exit code ",
                    err.returncode, *extra_msg, sep="", pretend=False)
