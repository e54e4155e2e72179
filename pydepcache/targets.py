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
import difflib
import os
import sys
import time
import typing

from .utils import AnsiColour, ConfigBase, add_error_context, coloured, status_update, warning_message

if typing.TYPE_CHECKING:
    from .config.depconfig import DepcacheConfig
    from .projects.simple_project import SimpleProject

__all__ = ["SimpleTargetAlias", "Target", "TargetManager", "target_manager"]


class Target:
    """A name on the command line together with the project class that implements it"""
    # Projects may only be created once the chosen targets are known (unit tests turn this off)
    instantiating_targets_should_warn: bool = True

    def __init__(self, name: str, project_class: "type[SimpleProject]") -> None:
        self.name = name
        self.project_class = project_class
        self._project: "typing.Optional[SimpleProject]" = None
        self._completed = False

    def get_real_target(self, config: "typing.Optional[ConfigBase]") -> "Target":
        return self

    def get_or_create_project(self, config: "DepcacheConfig") -> "SimpleProject":
        if self._project is None:
            if self.instantiating_targets_should_warn:
                raise RuntimeError(coloured(AnsiColour.magenta, "Instantiating target", self.name, "before run()!"))
            self._project = self.project_class(config)
        return self._project

    def get_dependencies(self, config: "DepcacheConfig") -> "list[Target]":
        return self.project_class.recursive_dependencies(config)

    def check_system_deps(self, config: "DepcacheConfig") -> None:
        """Checks the required tools of every chosen target before the first one is built"""
        if self._completed:
            return
        project = self.get_or_create_project(config)
        if project.can_skip_build():
            # a cached library is only registered, its build tools are not needed
            return
        project.check_system_dependencies()

    def execute(self, config: "DepcacheConfig") -> None:
        if self._completed:
            warning_message(self.name, "has already been executed!")
            return
        start = time.time()
        with add_error_context(coloured(AnsiColour.yellow, "(in target " + self.name + ")")):
            project = self.get_or_create_project(config)
            # noinspection PyProtectedMember
            if not project._setup_called:
                project.setup()
            assert project._setup_called, type(project).__name__ + ".setup() must call super().setup()"
            project.process()
        self._completed = True
        status_update("Processed target '" + self.name + "' in", "%.2f" % (time.time() - start), "seconds")

    def reset(self) -> None:
        self._completed = False
        self._project = None
        self.project_class.targets_reset()

    def __repr__(self) -> str:
        return "<Target " + self.name + ">"


class SimpleTargetAlias(Target):
    """Another name for a target, e.g. "sqlite" for "sqlite3". It shares the project instance of the real target."""

    def __init__(self, name: str, real_target: Target) -> None:
        assert not isinstance(real_target, SimpleTargetAlias), "Aliases must point at a real target"
        super().__init__(name, real_target.project_class)
        self.real_target = real_target

    def get_real_target(self, config: "typing.Optional[ConfigBase]") -> Target:
        return self.real_target

    def get_or_create_project(self, config: "DepcacheConfig") -> "SimpleProject":
        return self.real_target.get_or_create_project(config)

    def check_system_deps(self, config: "DepcacheConfig") -> None:
        self.real_target.check_system_deps(config)

    def execute(self, config: "DepcacheConfig") -> None:
        self.real_target.execute(config)

    def __repr__(self) -> str:
        return "<Target alias " + self.name + " for " + self.real_target.name + ">"


class TargetManager:
    def __init__(self) -> None:
        self._all_targets: "dict[str, Target]" = {}

    def add_target(self, target: Target) -> None:
        assert target.name not in self._all_targets, "Duplicate target " + target.name
        self._all_targets[target.name] = target

    def add_target_alias(self, name: str, real_target_name: str) -> None:
        self.add_target(SimpleTargetAlias(name, self._all_targets[real_target_name]))

    def register_command_line_options(self) -> None:
        # Called once all project classes exist, super() does not work inside the metaclass
        for target in self.targets():
            if not isinstance(target, SimpleTargetAlias):
                target.project_class.setup_config_options()

    @property
    def target_names(self) -> "list[str]":
        return list(self._all_targets)

    def non_alias_target_names(self) -> "list[str]":
        return [name for name, t in self._all_targets.items() if not isinstance(t, SimpleTargetAlias)]

    def targets(self) -> "list[Target]":
        return list(self._all_targets.values())

    def get_target_raw(self, name: str) -> Target:
        return self._all_targets[name]

    def get_target(self, name: str, config: "typing.Optional[ConfigBase]" = None) -> Target:
        return self._all_targets[name].get_real_target(config)

    @staticmethod
    def sort_in_dependency_order(targets: "typing.Iterable[Target]") -> "list[Target]":
        """
        Orders targets so that every target comes after those of its dependencies that are in the list. The requested
        order is kept wherever the dependencies allow it.
        """
        remaining = list(dict.fromkeys(targets))
        result: "list[Target]" = []
        while remaining:
            ready = next((t for t in remaining
                          if not any(dep in remaining for dep in t.project_class.cached_full_dependencies())), None)
            if ready is None:
                raise ValueError("Cannot order targets with cyclic dependencies: " + str(remaining))
            result.append(ready)
            remaining.remove(ready)
        return result

    def get_all_targets(self, explicit_targets: "list[Target]", config: "DepcacheConfig") -> "list[Target]":
        chosen: "list[Target]" = []
        for target in explicit_targets:
            target = target.get_real_target(config)
            extra = target.get_dependencies(config) if config.include_dependencies or \
                target.project_class.is_alias else []
            for t in [target, *extra]:
                if t not in chosen:
                    chosen.append(t)
        for target in chosen:
            target.project_class.cache_full_dependencies(config)
        return self.sort_in_dependency_order(chosen)

    def get_all_chosen_targets(self, config: "DepcacheConfig") -> "list[Target]":
        explicit = []
        for name in config.targets:
            if name not in self._all_targets:
                message = coloured(AnsiColour.red, "Target", name, "does not exist.")
                suggestions = difflib.get_close_matches(name, self._all_targets)
                if suggestions:
                    message += " Did you mean " + " or ".join(coloured(AnsiColour.blue, s) for s in suggestions) + "?"
                else:
                    message += " See " + coloured(AnsiColour.yellow, os.path.basename(sys.argv[0]),
                                                  "--list-targets") + " for the list of available targets."
                sys.exit(message)
            explicit.append(self.get_target(name, config))
        result = self.get_all_targets(explicit, config)
        Target.instantiating_targets_should_warn = False
        return result

    def run(self, config: "DepcacheConfig", chosen_targets: "typing.Optional[list[Target]]" = None) -> None:
        if chosen_targets is None:
            chosen_targets = self.get_all_chosen_targets(config)
        # fail before building anything if a tool is missing
        for target in chosen_targets:
            target.check_system_deps(config)
        for target in chosen_targets:
            target.execute(config)

    def reset(self) -> None:
        for target in self.targets():
            if not isinstance(target, SimpleTargetAlias):
                target.reset()


target_manager = TargetManager()
