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
import builtins
import difflib
import json
import os
import shutil
import sys
import typing
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

import argcomplete

from .config_loader_base import ComputedDefaultValue, ConfigLoaderBase, ConfigOptionBase, _LoadedConfigValue
from ..colour import AnsiColour, coloured
from ..utils import ConfigBase, error_message, status_update

T = typing.TypeVar("T")
EnumTy = typing.TypeVar("EnumTy", bound=Enum)

__all__ = ["CommandLineConfigLoader", "CommandLineConfigOption", "JsonAndCommandLineConfigLoader",  # no-combine
           "JsonAndCommandLineConfigOption", "MyJsonEncoder", "dict_raise_on_duplicates_and_store_src"]  # no-combine


# From https://bugs.python.org/issue25061
class _EnumArgparseType(typing.Generic[EnumTy]):
    """Factory for creating enum object types
    """

    def __init__(self, enumclass: "type[EnumTy]"):
        self.enums: "type[EnumTy]" = enumclass
        # Validate that all enum keys match the expected format
        for member in enumclass:
            # only upppercase letters, numbers and _ allowed
            for c in member.name:
                if c.isdigit() or c == "_":
                    continue
                if c.isalpha() and c.isupper():
                    continue
                raise RuntimeError("Invalid character '" + c + "' found in enum " + str(enumclass) +
                                   " member " + member.name + ": must all be upper case letters or _ or digits.")

    def __call__(self, astring: "Union[str, EnumTy]") -> EnumTy:
        if isinstance(astring, self.enums):
            return typing.cast(EnumTy, astring)  # Allow passing an enum instance
        name = self.enums.__name__
        try:
            for e in self.enums:
                if e.value == astring:
                    return e
            # convert the passed value to the enum name
            enum_value_name: str = astring.upper().replace("-", "_")
            v = self.enums[enum_value_name]
        except KeyError:
            msg = ", ".join([t.name.lower().replace("_", "-") for t in self.enums])
            msg = "%s: use one of {%s}" % (name, msg)
            raise argparse.ArgumentTypeError(msg)
        return v

    def __repr__(self) -> str:
        astr = ", ".join([t.name.lower() for t in self.enums])
        return "%s(%s)" % (self.enums.__name__, astr)


# custom encoder to handle pathlib.Path and _LoadedConfigValue objects
class MyJsonEncoder(json.JSONEncoder):
    def default(self, o) -> Any:
        if isinstance(o, Path):
            return str(o)
        if isinstance(o, _LoadedConfigValue):
            return o.value
        if isinstance(o, Enum):
            if isinstance(o.value, str):
                return o.value
            return o.name.lower().replace("_", "-")
        return super().default(o)


# When tab-completing, argparse spends a lot of time printing the help message
# Avoid this by providing a no-op help formatter
class NoOpHelpFormatter(argparse.HelpFormatter):
    def format_help(self) -> str:
        return "TAB-COMPLETING, THIS STRING SHOULD NOT BE VISIBLE"


# Based on Python 3.9 BooleanOptionalAction, but places the "no" after the first /
class BooleanNegatableAction(argparse.Action):
    # noinspection PyShadowingBuiltins
    def __init__(self, option_strings: "list[str]", dest, default=None, type=None, choices=None, required=False,
                 help=None, metavar=None):
        # Add the negated option, placing the "no" after the / instead of the start -> --ffmpeg/no-foo
        all_option_strings = []
        self._negated_option_strings = []
        for opt in option_strings:
            all_option_strings.append(opt)
            if opt.startswith("--"):
                slash_index = opt.rfind("/")
                if slash_index == -1:
                    negated_opt = "--no-" + opt[2:]
                else:
                    negated_opt = opt[:slash_index + 1] + "no-" + opt[slash_index + 1:]
                all_option_strings.append(negated_opt)
                self._negated_option_strings.append(negated_opt)
        super().__init__(option_strings=all_option_strings, dest=dest, nargs=0,
                         default=default, type=type, choices=choices, required=required, help=help, metavar=metavar)

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        if option_string in self.option_strings:
            setattr(namespace, self.dest, option_string not in self._negated_option_strings)

    def format_usage(self) -> str:
        return " | ".join(self.option_strings)


class CommandLineConfigOption(ConfigOptionBase[T]):
    _loader: "CommandLineConfigLoader"

    # noinspection PyProtectedMember,PyUnresolvedReferences
    def __init__(self, name: str, shortname: "Optional[str]", default,
                 value_type: "Union[type[T], Callable[[Any], T]]", _owning_class, *,
                 _loader: "CommandLineConfigLoader", group: "Optional[argparse._ArgumentGroup]" = None,
                 **kwargs):
        super().__init__(name, shortname, default, value_type, _owning_class, _loader=_loader)
        self.default_str: "Optional[str]" = None
        if isinstance(default, ComputedDefaultValue):
            if callable(default.as_string):
                self.default_str = default.as_string(_owning_class)
            else:
                self.default_str = str(default.as_string)
        elif default is not None and not callable(default):
            if isinstance(default, Enum):
                assert isinstance(value_type, _EnumArgparseType), "default is enum but value type isn't: " + str(
                    value_type)
                self.default_str = default.name.lower().replace("_", "-")
            else:
                self.default_str = str(default)
        self.action = self._add_argparse_action(name, shortname, group, **kwargs)

    def _add_argparse_action(self, name, shortname, group, **kwargs) -> "argparse.Action":
        assert "default" not in kwargs  # Should be handled manually
        # noinspection PyProtectedMember
        parser_obj = group if group else self._loader._parser
        kwargs["dest"] = name
        if self.value_type is bool:
            if kwargs.pop("negatable", None) is False:
                kwargs["action"] = "store_true"
            else:
                assert "action" not in kwargs
                kwargs["action"] = BooleanNegatableAction
        else:
            action_kind = kwargs.get("action", None)
            assert action_kind is None or action_kind == "append", "Unhandled action " + str(action_kind)
        if shortname:
            action = parser_obj.add_argument("--" + name, "-" + shortname, **kwargs)
        else:
            action = parser_obj.add_argument("--" + name, **kwargs)
        if self.default_str is not None and action.help is not None and action.help != argparse.SUPPRESS:
            action.help = action.help + " (default: '" + self.default_str + "')"
        action.default = None  # we don't want argparse default values!
        assert not action.type  # we handle the type of the value manually
        return action

    def _load_option_impl(self, config: ConfigBase, target_option_name: str) -> "Optional[_LoadedConfigValue]":
        return self._load_from_commandline()

    # noinspection PyProtectedMember
    def _load_from_commandline(self) -> "Optional[_LoadedConfigValue]":
        assert self._loader._parsed_args is not None  # load() must have been called before using this object
        assert hasattr(self._loader._parsed_args, self.action.dest)
        result = getattr(self._loader._parsed_args, self.action.dest)  # from command line
        if result is None:
            return None
        return _LoadedConfigValue(result, None)


# noinspection PyProtectedMember
class JsonAndCommandLineConfigOption(CommandLineConfigOption[T]):
    def _load_option_impl(self, config: ConfigBase, target_option_name: str):
        # First check the value specified on the command line, then load JSON and then fallback to the default
        from_cmd_line = self._load_from_commandline()
        if from_cmd_line is not None:
            return from_cmd_line
        # try loading it from the JSON file:
        from_json = self._lookup_key_in_json(target_option_name)
        if from_json is not None:
            status_update("Overriding default value for", target_option_name, "with value from JSON key",
                          from_json.used_key, "->", from_json.value, file=sys.stderr)
            return from_json
        return None  # not found -> fall back to default

    def _lookup_key_in_json(self, full_option_name: str) -> "Optional[_LoadedConfigValue]":
        if full_option_name in self._loader._json:
            return self._loader._json[full_option_name]
        # if there are any / characters treat these as an object reference
        json_path = full_option_name.split(sep="/")
        json_key = json_path[-1]  # last item is the key (e.g. ffmpeg/git-url -> git-url)
        json_path = json_path[:-1]  # all but the last item is the path (e.g. ffmpeg/git-url -> ffmpeg)
        json_object = self._loader._json
        for obj_ref in json_path:
            # Return an empty dict if it is not found
            json_object = json_object.get(obj_ref, None)
            if json_object is None:
                return None
            json_object = json_object.value
            if not isinstance(json_object, dict):
                return None
        return json_object.get(json_key, None)


# https://stackoverflow.com/a/14902564/894271
def dict_raise_on_duplicates_and_store_src(ordered_pairs, src_file) -> "dict[Any, _LoadedConfigValue]":
    """Reject duplicate keys."""
    d = {}
    for k, v in ordered_pairs:
        if k in d:
            raise SyntaxError("duplicate key: %r" % (k,))
        else:
            # Ensure all values store the source file
            d[k] = _LoadedConfigValue(v, src_file, used_key=k)
    return d


# https://stackoverflow.com/a/50936474
class ArgparseSetGivenAction(argparse.Action):
    def __call__(self, parser, namespace, values, option_string=None) -> None:
        setattr(namespace, self.dest, values)
        setattr(namespace, self.dest + "_given", True)


class CommandLineConfigLoader(ConfigLoaderBase):
    _parsed_args: "Optional[argparse.Namespace]" = None

    def __init__(self, argparser_class: "type[argparse.ArgumentParser]" = argparse.ArgumentParser, *,
                 option_cls=CommandLineConfigOption, command_line_only_options_cls=CommandLineConfigOption):
        if self.is_completing_arguments or self.is_running_unit_tests:
            self._parser = argparser_class(formatter_class=NoOpHelpFormatter)
        else:
            terminal_width = shutil.get_terminal_size(fallback=(120, 24))[0]
            self._parser = argparser_class(
                formatter_class=lambda prog: argparse.HelpFormatter(prog, width=terminal_width))
        super().__init__(option_cls=option_cls, command_line_only_options_cls=command_line_only_options_cls)

    # noinspection PyShadowingBuiltins
    def add_option(self, name: str, shortname=None, *, type: "Union[type[T], Callable[[str], T]]" = str,
                   default: "Union[ComputedDefaultValue[T], T, None]" = None, group=None, **kwargs) -> T:
        if isinstance(type, builtins.type) and issubclass(type, Enum):
            # Handle enums as the argparse type
            assert "action" not in kwargs, "action should be none for Enum options"
            assert "choices" not in kwargs, "for enum options choices are the enum names!"
            # noinspection PyTypeChecker
            kwargs["choices"] = tuple(t.name.lower().replace("_", "-") for t in type)
            type = _EnumArgparseType(type)
        return super().add_option(name, shortname, default=default, type=type, group=group, **kwargs)

    def debug_msg(self, *args, sep=" ", **kwargs) -> None:
        if self._parsed_args and getattr(self._parsed_args, "verbose", None) is True:
            print(coloured(AnsiColour.cyan, *args, sep=sep), file=sys.stderr, **kwargs)

    def _load_command_line_args(self, args: "Optional[list[str]]" = None) -> None:
        if self.is_completing_arguments:
            argcomplete.autocomplete(
                self._parser,
                always_complete_options=None,  # don't print -/-- by default
                print_suppressed=True,  # also include target-specific options
            )
        self._parsed_args, trailing = self._parser.parse_known_args(args)
        for x in trailing:
            # filter out unknown options (like -b)
            if x.startswith("-"):
                all_options = getattr(self._parser, "_option_string_actions", {}).keys()
                suggestions = difflib.get_close_matches(x, all_options)
                errmsg = "unknown argument '" + x + "'"
                if suggestions:
                    errmsg += ". Did you mean " + " or ".join(suggestions) + "?"
                self._parser.error(errmsg)
        self._parsed_args.targets += trailing

    def targets(self) -> "list[str]":
        return self._parsed_args.targets

    # noinspection PyUnresolvedReferences,PyProtectedMember
    def add_argument_group(self, description: str) -> "argparse._ArgumentGroup":
        return self._parser.add_argument_group(description)

    # noinspection PyUnresolvedReferences,PyProtectedMember
    def add_mutually_exclusive_group(self) -> "argparse._MutuallyExclusiveGroup":
        return self._parser.add_mutually_exclusive_group()

    def load(self, args: "Optional[list[str]]" = None) -> None:
        self._load_command_line_args(args)


class JsonAndCommandLineConfigLoader(CommandLineConfigLoader):
    def __init__(self, argparser_class: "type[argparse.ArgumentParser]" = argparse.ArgumentParser, *,
                 option_cls=JsonAndCommandLineConfigOption, command_line_only_options_cls=CommandLineConfigOption):
        super().__init__(argparser_class, option_cls=option_cls,
                         command_line_only_options_cls=command_line_only_options_cls)
        self._config_path: "Optional[Path]" = None
        configdir = os.getenv("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
        self.default_config_path = Path(configdir, "ffbuild.json")
        self.path_group.add_argument("--config-file", metavar="FILE", type=str, default=str(self.default_config_path),
                                     action=ArgparseSetGivenAction,
                                     help="The config file that is used to load the default settings (default: '" +
                                          str(self.default_config_path) + "')")

    def __load_json_with_comments(self, config_path: Path) -> "dict[str, Any]":
        """
        Loads a JSON file ignoring any lines that start with '#' or '//'
        :param config_path: path to the json file
        :return: a parsed json dict
        """
        with config_path.open("r", encoding="utf-8") as f:
            json_lines = []
            for line in f.readlines():
                stripped = line.strip()
                if not stripped.startswith("#") and not stripped.startswith("//"):
                    json_lines.append(line)
            if not json_lines:
                result = dict()
                self.debug_msg("JSON config file", config_path, "was empty.")
            else:
                result = json.loads("".join(json_lines),
                                    object_pairs_hook=lambda o: dict_raise_on_duplicates_and_store_src(o, config_path))
            self.debug_msg("Parsed", config_path, "as",
                           coloured(AnsiColour.cyan, json.dumps(result, cls=MyJsonEncoder)))
            return result

    # Based on https://stackoverflow.com/a/7205107/894271
    def merge_dict_recursive(self, a: "dict[str, _LoadedConfigValue]", b: "dict[str, _LoadedConfigValue]",
                             included_file: Path, base_file: Path, path=None) -> dict:
        """merges b into a"""
        if path is None:
            path = []
        for key in b:
            if key == "#include":
                continue
            if key in a:
                if a[key].is_nested_dict() and b[key].is_nested_dict():
                    self.merge_dict_recursive(a[key].value, b[key].value, included_file, base_file, path + [str(key)])
                elif a[key] != b[key]:
                    self.debug_msg("Overriding '" + ".".join(path + [str(key)]) + "' value", b[key], " from",
                                   included_file, "with value ", a[key], "from", base_file)
            else:
                a[key] = b[key]
        return a

    def __load_json_with_includes(self, config_path: Path):
        try:
            result = self.__load_json_with_comments(config_path)
        except Exception as e:
            error_message("Could not load config file ", config_path, ": ", e, sep="")
            raise
        include_value = result.get("#include")
        if include_value:
            included_path = config_path.parent / include_value.value
            included_json = self.__load_json_with_includes(included_path)
            del result["#include"]
            result = self.merge_dict_recursive(result, included_json, included_path, config_path)
            self.debug_msg(coloured(AnsiColour.cyan, "Merging JSON config file", included_path))
        return result

    def _load_json_config_file(self) -> None:
        self._json = {}
        if not self._config_path:
            self._config_path = Path(os.path.expanduser(self._parsed_args.config_file)).absolute()
        if self._config_path.exists():
            self._json = self.__load_json_with_includes(self._config_path)
        elif hasattr(self._parsed_args, "config_file_given"):
            error_message("Configuration file", self._config_path, "does not exist.")
            raise FileNotFoundError(self._parsed_args.config_file)
        elif not self.is_completing_arguments:
            self.debug_msg("Note: Configuration file", self._config_path,
                           "does not exist, using only command line arguments.")

    def load(self, args: "Optional[list[str]]" = None) -> None:
        super().load(args)
        self._load_json_config_file()
        # Now validate the config file
        self._validate_config_file()

    def __validate(self, prefix: str, key: str, lcv: _LoadedConfigValue) -> bool:
        fullname = prefix + key
        if fullname == "#include":
            return True
        found_option = self.options.get(fullname)
        if found_option is None and isinstance(lcv.value, dict):
            for k, v in lcv.value.items():
                self.__validate(fullname + "/", k, v)
            return True

        if found_option is not None:
            # Found an option, now verify that it's not a command-line only option
            if not isinstance(found_option, JsonAndCommandLineConfigOption):
                errmsg = "Option '" + fullname + "' cannot be used in the config file"
                error_message(errmsg)
                raise ValueError(errmsg)
            return True
        error_message("Unknown config option '", fullname, "' in ", self._config_path, sep="")
        if self.unknown_config_option_is_error:
            raise ValueError("Unknown config option '" + fullname + "'")
        return False

    def _validate_config_file(self) -> None:
        for k, v in self._json.items():
            self.__validate("", k, v)

    def reset(self) -> None:
        super().reset()
        self._load_json_config_file()
