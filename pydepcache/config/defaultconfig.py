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
from enum import Enum
from pathlib import Path

import argcomplete

from .config_loader_base import ComputedDefaultValue, ConfigLoaderBase
from .depconfig import DepcacheConfig
from .loader import JsonAndCommandLineConfigLoader
from ..utils import DEFAULT_MAKE_JOBS

__all__ = ["DefaultDepcacheConfig", "DefaultDepcacheConfigLoader", "DepcacheAction"]


class DepcacheAction(Enum):
    BUILD = ("--build", "Fetch, build and register the chosen targets (default)")
    LIST_TARGETS = ("--list-targets", "List all available targets and exit")
    DUMP_CONFIGURATION = ("--dump-configuration", "Print the current configuration as JSON. Saving the output as "
                                                  "~/.config/depcache.json makes it the default")
    DIAGNOSTICS = ("--diagnostics", "Print compiler and platform diagnostics and exit")

    def __init__(self, option_name: str, help_message: str) -> None:
        self.option_name = option_name
        self.help_message = help_message

    @property
    def actions(self) -> "list[DepcacheAction]":
        return [self]


class DefaultDepcacheConfigLoader(JsonAndCommandLineConfigLoader):
    def finalize_options(self, available_targets: "list[str]", **kwargs) -> None:
        targets = self._parser.add_argument("targets", metavar="TARGET", nargs=argparse.ZERO_OR_MORE,
                                            help="The targets to build")
        if self.is_completing_arguments:
            targets.completer = argcomplete.completers.ChoicesCompleter([t for t in available_targets if t != "all"])


class DefaultDepcacheConfig(DepcacheConfig):
    def __init__(self, loader: ConfigLoaderBase, available_targets: "list[str]") -> None:
        super().__init__(loader, action_class=DepcacheAction)
        self.default_action = DepcacheAction.BUILD
        self.get_config_option = loader.add_option("get-config-option", metavar="KEY", group=loader.action_group,
                                                   help="Print the value of config option KEY and exit")
        self.quiet = loader.add_bool_option("quiet", "q", help="Don't show the output of the build commands")
        self.verbose = loader.add_bool_option("verbose", "v", help="Print all commands that are executed")
        self.clean = loader.add_bool_option("clean", "c", help="Remove the build directory before building")
        self.force = loader.add_bool_option("force", "f", help="Don't prompt for user input but use the default action")
        self.write_logfile = loader.add_bool_option("logfile", help="Write the output of each build step to "
                                                                    "<build-dir>/<step>.log")
        self.skip_update = loader.add_bool_option("skip-update", help="Never download or clone sources. Targets with "
                                                                      "missing sources fail instead")
        self.include_dependencies = loader.add_commandline_only_bool_option(
            "include-dependencies", "d", group=loader.dependencies_group,
            help="Also build the dependencies of the targets passed on the command line (dependencies first)")
        self.make_jobs = loader.add_option("make-jobs", "j", type=int, help="Number of jobs to use for compiling",
                                           default=ComputedDefaultValue(lambda config, _: DEFAULT_MAKE_JOBS,
                                                                        as_string=str(DEFAULT_MAKE_JOBS)))
        self.download_root = loader.add_path_option("download-root", default=Path("download"), group=loader.path_group,
                                                    help="The directory that holds all sources, builds and installed "
                                                         "dependencies")
        loader.finalize_options(available_targets)

    def load(self) -> None:
        super().load()
        assert self._ensure_required_properties_set()
