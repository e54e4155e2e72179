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
import os
import typing
from enum import Enum
from pathlib import Path
from typing import Optional

from .config_loader_base import ConfigLoaderBase
from ..utils import ConfigBase, have_working_internet_connection, warning_message

__all__ = ["BuildType", "DepcacheConfig"]


class BuildType(Enum):
    DEBUG = "Debug"
    RELEASE = "Release"
    RELWITHDEBINFO = "RelWithDebInfo"
    MINSIZEREL = "MinSizeRel"

    @property
    def is_release(self) -> bool:
        return self is not BuildType.DEBUG


class DepcacheConfig(ConfigBase):
    """
    The global settings. Most attributes start out as ConfigOptionBase descriptors that are stored on the instance
    and __getattribute__ resolves them on access, tests replace them with plain values.
    """

    def __init__(self, loader: ConfigLoaderBase, action_class: "type[Enum]") -> None:
        super().__init__()
        loader._depcache_config = self
        self.loader = loader
        self.pretend = loader.add_commandline_only_bool_option("pretend", "p",
                                                               help="Only print the commands instead of running them")
        self.action = loader.add_option("action", default=[], action="append", type=action_class, help_hidden=True,
                                        group=loader.action_group, help="The action to perform")
        self.default_action: "Optional[Enum]" = None
        # --list-targets is a shortcut for --action=list-targets
        for action in action_class:
            loader.action_group.add_argument(action.option_name, dest="action", action="append_const",
                                             const=action.actions, help=action.help_message)
        self.print_targets_only = loader.add_commandline_only_bool_option(
            "print-targets-only", group=loader.action_group,
            help="Only print the targets that would be built (implies --pretend)")
        self.debug_output = loader.add_commandline_only_bool_option("debug-output", "vv",
                                                                    help="Extremely verbose output")
        self.build_type = loader.add_option("build-type", default=BuildType.RELEASE, type=BuildType,
                                            group=loader.build_group,
                                            help="The CMake build type used for all CMake-based dependencies")
        self.force_rebuild = loader.add_bool_option("force-rebuild", group=loader.build_group,
                                                    help="Ignore cached artifacts and rebuild all chosen targets")
        self.defines = loader.add_commandline_only_option(
            "define", "D", metavar="NAME[=VALUE]", action="append", default=[], type=list,
            help="A compile definition to report in the --diagnostics output (e.g. -D MSG1=hello)")

        # Added by DefaultDepcacheConfig
        self.include_dependencies: "Optional[bool]" = None
        self.skip_update: "Optional[bool]" = None
        self.clean: "Optional[bool]" = None
        self.write_logfile: "Optional[bool]" = None
        self.make_jobs: "Optional[int]" = None
        self.download_root: "Optional[Path]" = None
        self.get_config_option: "Optional[str]" = None
        self.targets: "Optional[list[str]]" = None
        self._may_be_none = ("get_config_option", "default_action", "_may_be_none")

    def load(self) -> None:
        self.loader.load()
        if self.print_targets_only:
            self.pretend = True
        if self.debug_output:
            self.verbose = True
        self.targets = self.loader.targets()
        actions = []
        for action in self.action or [self.default_action]:
            # the --<action> shortcuts append lists
            actions.extend(action if isinstance(action, list) else [action])
        assert all(a is not None for a in actions), "No default action set"
        self.action = actions

        # cloning and downloading would fail anyway
        if not self.skip_update and not have_working_internet_connection(self):
            warning_message("No internet connection detected, will skip git updates!")
            self.skip_update = True
        # CLICOLOR=1 changes the output of some configure checks
        os.environ.pop("CLICOLOR", None)

    def _ensure_required_properties_set(self) -> bool:
        for key, value in vars(self).items():
            if value is None and key not in self._may_be_none:
                raise RuntimeError("Required property " + key + " is not set!")
        assert self.download_root.is_absolute(), self.download_root
        return True

    def __getattribute__(self, item) -> "typing.Any":
        value = object.__getattribute__(self, item)
        if hasattr(value, "__get__"):
            return value.__get__(self, type(self))
        return value
