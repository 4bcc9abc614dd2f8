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

import collections.abc
import os
import shlex
import sys
import typing
from abc import ABC, ABCMeta, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..utils import ConfigBase, fatal_error, warning_message

T = typing.TypeVar("T")

if typing.TYPE_CHECKING:
    import argparse

__all__ = ["ComputedDefaultValue", "ConfigLoaderBase", "ConfigOptionBase", "_LoadedConfigValue"]  # no-combine


class ComputedDefaultValue(typing.Generic[T]):
    """A default value that is only computed when the option is first read. as_string is used for --help output."""

    def __init__(self, function: "Callable[[ConfigBase, Any], T]", as_string: "Union[str, Callable[[Any], str]]"):
        assert function is not None, "Must provide function"
        self.function = function
        self.as_string = as_string

    def __call__(self, config, obj) -> T:
        return self.function(config, obj)

    def __repr__(self) -> str:
        return "{ComputedDefault:" + str(self.as_string) + "}"


class _LoadedConfigValue:
    """A simple class to hold the loaded value as well as the source (to handle relative paths correctly)"""

    def __init__(self, value, loaded_from: "Optional[Path]", used_key: "Optional[str]" = None):
        self.value = value
        self.loaded_from = loaded_from
        self.used_key = used_key

    def is_nested_dict(self) -> bool:
        return isinstance(self.value, dict)

    def __eq__(self, other) -> bool:
        if isinstance(other, _LoadedConfigValue):
            return self.value == other.value
        return self.value == other

    def __repr__(self) -> str:
        return repr(self.value)


class ConfigLoaderBase(ABC):
    # will be set later...
    _config: ConfigBase

    is_completing_arguments: bool = "_ARGCOMPLETE" in os.environ
    is_running_unit_tests: bool = False

    def __init__(self, *, option_cls: "type[ConfigOptionBase]",
                 command_line_only_options_cls: "type[ConfigOptionBase]"):
        self.__option_cls: "type[ConfigOptionBase]" = option_cls
        self.__command_line_only_options_cls: "type[ConfigOptionBase]" = command_line_only_options_cls
        self.options: "dict[str, ConfigOptionBase]" = {}
        self._json: "dict[str, _LoadedConfigValue]" = {}
        self.unknown_config_option_is_error = False
        # Add argparse groups
        self.action_group = self.add_argument_group("Actions to be performed")
        self.path_group = self.add_argument_group("Configuration of default paths")
        self.build_group = self.add_argument_group("Build configuration")

    # noinspection PyShadowingBuiltins
    def add_commandline_only_option(self, *args, type: "Callable[[str], T]" = str, **kwargs) -> T:
        """
        :return: A config option that is always loaded from the command line no matter what the default is
        """
        return self.add_option(*args, type=type, option_cls=self.__command_line_only_options_cls, **kwargs)

    def add_commandline_only_bool_option(self, *args, default=False, **kwargs) -> bool:
        assert default is False or kwargs.get("negatable") is True
        return self.add_option(*args, option_cls=self.__command_line_only_options_cls, default=default,
                               negatable=kwargs.pop("negatable", False), type=bool, **kwargs)

    # noinspection PyShadowingBuiltins
    def add_option(self, name: str, shortname=None, *, type: "Union[type[T], Callable[[str], T]]" = str,
                   default: "Union[ComputedDefaultValue[T], Optional[T], Callable[[ConfigBase, Any], T]]" = None,
                   _owning_class: "Optional[type]" = None, option_cls: "Optional[type[ConfigOptionBase[T]]]" = None,
                   **kwargs) -> T:
        if option_cls is None:
            option_cls = self.__option_cls
        assert name not in self.options, "Option " + name + " added twice"
        option = option_cls(name, shortname, default, type, _owning_class, _loader=self, **kwargs)
        self.options[name] = option
        return typing.cast(T, option)

    def add_bool_option(self, name: str, shortname=None, default=False, **kwargs) -> bool:
        # noinspection PyTypeChecker
        return self.add_option(name, shortname, default=default, type=bool, **kwargs)

    def add_path_option(self, name: str, *,
                        default: "Union[ComputedDefaultValue[Path], Path, Callable[[ConfigBase, Any], Path], None]",
                        shortname=None, **kwargs) -> Path:
        # we have to make sure we resolve this to an absolute path because otherwise steps where CWD is different fail!
        return typing.cast(Path, self.add_option(name, shortname, type=Path, default=default, **kwargs))

    @abstractmethod
    def load(self) -> None: ...

    def reset(self) -> None:
        for option in self.options.values():
            option._cached = None

    def debug_msg(self, *args, sep=" ", **kwargs) -> None:
        pass

    # noinspection PyUnresolvedReferences,PyProtectedMember
    @abstractmethod
    def add_argument_group(self, description: str) -> "Optional[argparse._ArgumentGroup]": ...

    # noinspection PyUnresolvedReferences,PyProtectedMember
    @abstractmethod
    def add_mutually_exclusive_group(self) -> "Optional[argparse._MutuallyExclusiveGroup]": ...

    @abstractmethod
    def targets(self) -> "list[str]": ...


class ConfigOptionBase(typing.Generic[T], metaclass=ABCMeta):
    def __init__(self, name: str, shortname: Optional[str], default,
                 value_type: "Union[type[T], Callable[[Any], T]]", _owning_class=None, *,
                 _loader: "Optional[ConfigLoaderBase]" = None):
        self.name = name
        self.shortname = shortname
        self.default = default
        self.value_type = value_type
        self._cached: "Optional[T]" = None
        self._loader = _loader
        # if none it means the global config is the class containing this option
        self._owning_class = _owning_class

    def load_option(self, config: "ConfigBase", instance: "Optional[object]", _: type) -> T:
        result = self._load_option_impl(config, self.full_option_name)
        if result is None:  # If no option is set fall back to the default
            result = self._get_default_value(config, instance)
            if result is not None:
                result = _LoadedConfigValue(result, None)
        # Now convert it to the right type
        try:
            result = self._convert_type(result)
        except ValueError as e:
            fatal_error("Invalid value for option '", self.full_option_name, "': could not convert '", result, "': ",
                        str(e), sep="", pretend=False)
            sys.exit()
        return result

    @abstractmethod
    def _load_option_impl(self, config: "ConfigBase", target_option_name) -> "Optional[_LoadedConfigValue]": ...

    @property
    def full_option_name(self) -> str:
        return self.name

    def __get__(self, instance, owner) -> T:
        assert instance is not None or not callable(self.default), (
            f"Tried to access read config option {self.full_option_name} without an object instance. "
            f"Config options using computed defaults can only be used with an object instance. Owner = {owner}")
        assert not self._owning_class or issubclass(owner, self._owning_class)
        if self._cached is None:
            # noinspection PyProtectedMember
            self._cached = self.load_option(self._loader._config, instance, owner)
        return self._cached

    def _get_default_value(self, config: "ConfigBase", instance: "Optional[object]" = None):
        if callable(self.default):
            return self.default(config, instance)
        else:
            return self.default

    def _convert_type(self, loaded_result: "Optional[_LoadedConfigValue]") -> "Optional[T]":
        # check for None to make sure we don't call str(None) which would result in "None"
        if loaded_result is None:
            return None
        result = loaded_result.value
        # if the requested type is list, tuple, etc. use shlex.split() to convert strings to lists
        if self.value_type is not str and isinstance(result, str):
            if isinstance(self.value_type, type) and issubclass(self.value_type, collections.abc.Sequence):
                string_value = result
                result = shlex.split(string_value)
                if loaded_result.loaded_from is not None:
                    warning_message("Config option ", self.full_option_name, " (", string_value, ") should be a list, ",
                                    "got a string instead -> assuming the correct value is ", result, sep="")
        if isinstance(self.value_type, type) and issubclass(self.value_type, Path):
            expanded = os.path.expanduser(os.path.expandvars(str(result)))
            while expanded.startswith("//"):
                expanded = expanded[1:]  # normpath doesn't remove multiple '/' characters at the start
            if loaded_result.loaded_from is not None:
                assert loaded_result.loaded_from.is_absolute()
                # Make paths relative to the config file
                result = Path(os.path.normpath(str(loaded_result.loaded_from.parent / expanded)))
            else:
                # Note: os.path.abspath also performs the normpath changes
                result = Path(os.path.abspath(expanded))  # relative to CWD if it was not loaded from the config file
            assert result.is_absolute(), result
        else:
            result = self.value_type(result)  # make sure it has the right type (e.g. Path, int, bool, str)
        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.name}) type={self.value_type} cached={self._cached}>"
