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
import sys
import time
import typing
from pathlib import Path

from .colour import AnsiColour, coloured

# reduce the number of import statements per module  # no-combine
__all__ = ["typing", "Type_T", "init_global_config", "status_update", "fatal_error",  # no-combine
           "coloured", "AnsiColour", "warning_message", "error_message", "fixit_message",  # no-combine
           "DoNotUseInIfStmt", "InstallInstructions", "ConfigBase", "add_error_context", "OSInfo",  # no-combine
           "default_make_jobs_count", "remove_duplicates", "BuildError", "UnsupportedPlatformError",  # no-combine
           "ToolchainError",  # no-combine
           "DependencyInstallError", "BuildStepError"]  # no-combine

if sys.version_info < (3, 9, 0):
    sys.exit("This script requires at least Python 3.9.0")

Type_T = typing.TypeVar("Type_T")


# Placeholder until config has been initialized.
class DoNotUseInIfStmt(bool if typing.TYPE_CHECKING else object):
    def __bool__(self) -> "typing.NoReturn":
        raise ValueError("Should not be used")

    def __len__(self) -> "typing.NoReturn":
        raise ValueError("Should not be used")


class ConfigBase:
    def __init__(self, *, pretend: bool, verbose: bool, quiet: bool) -> None:
        self.quiet = quiet
        self.verbose = verbose
        self.pretend = pretend


GlobalConfig: ConfigBase = ConfigBase(pretend=DoNotUseInIfStmt(), verbose=DoNotUseInIfStmt(), quiet=DoNotUseInIfStmt())


def init_global_config(config: ConfigBase) -> None:
    global GlobalConfig
    GlobalConfig = config
    assert not (GlobalConfig.verbose and GlobalConfig.quiet), "mutually exclusive"


class BuildError(Exception):
    """Base class for all errors that abort a build run. The process exit code is always 1."""
    exit_code: int = 1

    def __init__(self, *args, fixit_hint: "typing.Optional[str]" = None) -> None:
        super().__init__(" ".join(map(str, args)))
        self.fixit_hint = fixit_hint
        # the innermost add_error_context() that was active when the error was raised
        self.error_context: "typing.Optional[str]" = None


class UnsupportedPlatformError(BuildError):
    pass


class ToolchainError(BuildError):
    pass


class DependencyInstallError(BuildError):
    def __init__(self, *args, packages: "typing.Sequence[str]" = (), fixit_hint: "typing.Optional[str]" = None):
        self.packages = list(packages)
        if fixit_hint is None and self.packages:
            fixit_hint = "Install the following packages manually: " + " ".join(self.packages)
        super().__init__(*args, fixit_hint=fixit_hint)


class BuildStepError(BuildError):
    def __init__(self, *args, target: str, stage: str, command: "typing.Sequence[str]" = (),
                 returncode: "typing.Optional[int]" = None, cwd: "typing.Optional[str]" = None) -> None:
        super().__init__(*args)
        self.target = target
        self.stage = stage
        self.command = list(command)
        self.returncode = returncode
        self.cwd = cwd


def default_make_jobs_count() -> int:
    return os.cpu_count() or 1


def maybe_add_space(msg, sep) -> tuple:
    if sep == "":
        return msg, " "
    return msg,


def _timestamp() -> str:
    return time.strftime("[%Y-%m-%d %H:%M:%S]")


def status_update(*args, sep=" ", **kwargs) -> None:
    print(coloured(AnsiColour.cyan, maybe_add_space(_timestamp(), sep) + args, sep=sep), **kwargs)


def fixit_message(*args, sep=" ") -> None:
    print(coloured(AnsiColour.blue, maybe_add_space("Possible solution:", sep) + args, sep=sep), file=sys.stderr,
          flush=True)


def warning_message(*args, sep=" ", fixit_hint=None) -> None:
    print(coloured(AnsiColour.magenta, maybe_add_space("Warning:", sep) + args, sep=sep), file=sys.stderr, flush=True)
    if fixit_hint:
        fixit_message(fixit_hint)


_ERROR_CONTEXT: "list[str]" = []


@contextlib.contextmanager
def add_error_context(context: str):
    _ERROR_CONTEXT.append(context)
    try:
        yield
    except BuildError as e:
        # The stack is unwound before the error is reported so store the context on the error itself
        if e.error_context is None:
            e.error_context = context
        raise
    finally:
        _ERROR_CONTEXT.pop()


def _add_error_context(prefix, args, sep) -> str:
    if _ERROR_CONTEXT:
        # _ERROR_CONTEXT might contain escape sequences so we have to reset to red afterwards
        return coloured(AnsiColour.red, maybe_add_space(prefix + " " + _ERROR_CONTEXT[-1] +
                                                        AnsiColour.red.escape_sequence() + ":", sep) + args, sep=sep)
    return coloured(AnsiColour.red, maybe_add_space(prefix + ":", sep) + args, sep=sep)


def error_message(*args, sep=" ", fixit_hint=None) -> None:
    print(_add_error_context("Error", args, sep=sep), file=sys.stderr, flush=True)
    if fixit_hint:
        fixit_message(fixit_hint)


def fatal_error(*args, sep=" ", fixit_hint=None, exit_code=1, pretend: "typing.Optional[bool]" = None) -> None:
    if pretend is None:
        pretend = GlobalConfig.pretend
    # we ignore fatal errors when simulating a run
    if pretend:
        print(_add_error_context("Potential fatal error", args, sep=sep), file=sys.stderr, flush=True)
        if fixit_hint:
            fixit_message(fixit_hint)
    else:
        print(_add_error_context("Fatal error", args, sep=sep), file=sys.stderr, flush=True)
        if fixit_hint:
            fixit_message(fixit_hint)
        sys.exit(exit_code)


class InstallInstructions:
    def __init__(self, message: "typing.Union[str, typing.Callable[[], str]]",
                 alternative: "typing.Optional[str]" = None):
        self._message = message
        self.alternative = alternative

    def fixit_hint(self) -> str:
        if callable(self._message):
            result = self._message()
        else:
            result = self._message
        if self.alternative:
            assert result, "Can't have an alternative without a default option!"
            result += "\nAlternatively " + self.alternative
        return result


class OSInfo(object):
    __os_release_cache: "typing.Optional[dict[str, str]]" = None

    @staticmethod
    def kernel_name() -> str:
        return os.uname().sysname

    @classmethod
    def is_arch_linux(cls, root: Path = Path("/")) -> bool:
        return (root / "etc/arch-release").exists() or (root / "etc/pacman.d").is_dir()

    @classmethod
    def is_suse(cls, root: Path = Path("/")) -> bool:
        os_release = cls.etc_os_release(root)
        return "suse" in os_release.get("ID", "") or "suse" in os_release.get("ID_LIKE", "").split()

    @classmethod
    def etc_os_release(cls, root: Path = Path("/")) -> "dict[str, str]":
        if root != Path("/"):
            return cls.parse_os_release(root / "etc/os-release")
        if OSInfo.__os_release_cache is None:
            OSInfo.__os_release_cache = cls.parse_os_release(Path("/etc/os-release"))
        return OSInfo.__os_release_cache

    @staticmethod
    def parse_os_release(path: Path) -> "dict[str, str]":
        if not path.exists():
            return {}
        with path.open(encoding="utf-8") as f:
            d = {}
            for line in f:
                line = line.strip()
                if line == "" or line[0] == "#" or "=" not in line:
                    continue
                k, v = line.split("=", maxsplit=1)
                # .strip('"') will remove if there or else do nothing
                d[k] = v.strip('"').strip("'")
        return d

    @classmethod
    def package_manager(cls, root: Path = Path("/")) -> str:
        if cls.is_arch_linux(root):
            return "pacman"
        elif cls.is_suse(root):
            return "zypper"
        return "<system package manager>"

    @classmethod
    def install_instructions(cls, name, *, default=None, pacman=None, zypper=None,
                             alternative=None) -> InstallInstructions:
        if cls.is_arch_linux():
            install_name, install_cmd = pacman, "pacman -S"
        elif cls.is_suse():
            install_name, install_cmd = zypper, "zypper install"
        else:
            install_name, install_cmd = None, cls.package_manager() + " install"
        if install_name is None:
            install_name = default
        if install_name is None:
            # not sure if the package name is correct:
            return InstallInstructions("Possibly running `" + install_cmd + " " + name +
                                       "` fixes this. Note: package name may not be correct.", alternative)
        return InstallInstructions("Run `" + install_cmd + " " + install_name + "`", alternative)


def remove_duplicates(items: "typing.Iterable[Type_T]") -> "list[Type_T]":
    # Convert to a dict to remove duplicates (retains order since python 3.6)
    return list(dict.fromkeys(items))
