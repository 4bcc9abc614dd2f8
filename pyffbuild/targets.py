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
from collections import OrderedDict

from .colour import AnsiColour, coloured
from .utils import add_error_context, status_update, warning_message

if typing.TYPE_CHECKING:  # no-combine
    from .config.ffbuildconfig import FFBuildConfig  # no-combine
    from .pipeline import BuildContext  # no-combine
    from .projects.project import Project  # no-combine

__all__ = ["Target", "TargetManager", "UnknownTargetError", "target_manager"]  # no-combine


class UnknownTargetError(KeyError):
    def __init__(self, name: str, available: "typing.Iterable[str]") -> None:
        super().__init__(name)
        self.name = name
        self.available = list(available)

    def __str__(self) -> str:
        return "Target " + self.name + " does not exist. Valid choices are " + ", ".join(self.available)


class Target(object):
    def __init__(self, name: str, _project_class: "type[Project]") -> None:
        self.name = name
        self._project_class = _project_class
        self.__project: "typing.Optional[Project]" = None
        self._completed = False

    @property
    def project_class(self) -> "type[Project]":
        return self._project_class

    @property
    def dependencies(self) -> "tuple[str, ...]":
        return self._project_class.dependencies

    @property
    def project(self) -> "typing.Optional[Project]":
        return self.__project

    def create_project(self, config: "FFBuildConfig", context: "BuildContext") -> "Project":
        return self.project_class(config, context)

    def execute(self, config: "FFBuildConfig", context: "BuildContext") -> "Project":
        if self._completed:
            warning_message(self.name, "has already been executed!")
            assert self.__project is not None
            return self.__project
        starttime = time.time()
        with add_error_context(coloured(AnsiColour.yellow, "(in target ", self.name, ")", sep="")):
            self.__project = self.create_project(config, context)
            self.__project.setup()
            # noinspection PyProtectedMember
            assert self.__project._setup_called, str(self._project_class) + ": forgot to call super().setup()?"
            self.__project.process()
        status_update("Built target '" + self.name + "' in", int(time.time() - starttime), "seconds")
        self._completed = True
        return self.__project

    def reset(self) -> None:
        # For unit tests to get a fresh instance
        self._completed = False
        self.__project = None

    def __repr__(self) -> str:
        return "<Target " + self.name + ">"


class TargetManager(object):
    """Registry of all buildable targets in registration order. Project classes add themselves on definition."""

    def __init__(self) -> None:
        self._all_targets: "typing.OrderedDict[str, Target]" = OrderedDict()

    def add_target(self, target: Target) -> None:
        assert target.name not in self._all_targets, "Duplicate target " + target.name
        self._all_targets[target.name] = target

    def register_command_line_options(self) -> None:
        # this cannot be done in the Project metaclass as otherwise we get
        # RuntimeError: super(): empty __class__ cell
        for tgt in self._all_targets.values():
            tgt.project_class.setup_config_options()

    @property
    def target_names(self) -> "list[str]":
        return list(self._all_targets.keys())

    @property
    def targets(self) -> "list[Target]":
        return list(self._all_targets.values())

    def get_target(self, name: str) -> Target:
        target = self._all_targets.get(name)
        if target is None:
            raise UnknownTargetError(name, self.target_names)
        return target

    def get_all_targets(self, names: "typing.Iterable[str]") -> "list[Target]":
        """
        :param names: the targets that were selected (an empty list selects all targets)
        :return: the selected targets with each one ordered after the selected targets it depends on. Targets
         that don't depend on each other keep the registration order.
        """
        selected = {self.get_target(n).name for n in names} if names else set(self.target_names)
        result: "list[Target]" = []
        visiting: "set[str]" = set()

        def add_with_dependencies(target: Target) -> None:
            if target in result:
                return
            assert target.name not in visiting, "Dependency cycle involving " + target.name
            visiting.add(target.name)
            for dep in target.dependencies:
                if dep in selected:
                    add_with_dependencies(self.get_target(dep))
            visiting.remove(target.name)
            result.append(target)

        for tgt in self._all_targets.values():
            if tgt.name in selected:
                add_with_dependencies(tgt)
        return result

    def reset(self) -> None:
        for tgt in self._all_targets.values():
            tgt.reset()


target_manager = TargetManager()
