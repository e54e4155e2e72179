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
import fcntl
import json
import os
import sys
import traceback

from .config.defaultconfig import DefaultDepcacheConfig, DefaultDepcacheConfigLoader, DepcacheAction
from .config.loader import ConfigJsonEncoder, ConfigOptionBase
from .diagnostics import print_diagnostics
from .processutils import print_command, run_and_kill_children_on_exit

# importing the recipes fills target_manager
# noinspection PyUnresolvedReferences
from .projects import *  # noqa: F401, F403, RUF100
from .projects.simple_project import SimpleProject
from .targets import Target, target_manager
from .utils import AnsiColour, coloured, fatal_error, status_update


def ensure_fd_is_blocking(fd: int) -> None:
    flags = fcntl.fcntl(fd, fcntl.F_GETFL)
    if not flags & os.O_NONBLOCK:
        return
    # seen with some macOS terminals
    fcntl.fcntl(fd, fcntl.F_SETFL, flags & ~os.O_NONBLOCK)
    if fcntl.fcntl(fd, fcntl.F_GETFL) & os.O_NONBLOCK:
        fatal_error("Could not make fd", fd, "blocking", pretend=False)


# noinspection PyProtectedMember
def config_option_value(option: ConfigOptionBase, config: DefaultDepcacheConfig):
    owner = option._owning_class
    if owner is None:
        return option.__get__(config, type(config))
    # per-target options are read from an instance of the recipe
    Target.instantiating_targets_should_warn = False
    project = target_manager.get_target(owner.target, config).get_or_create_project(config)
    return option.__get__(project, owner)


def print_chosen_targets(config: DefaultDepcacheConfig, chosen_targets: "list[Target]") -> None:
    print("Will execute the following", len(chosen_targets), "targets:")
    for target in chosen_targets:
        print("  ", target.name)
    if not config.verbose:
        return
    chosen_names = [t.name for t in chosen_targets]
    for target in chosen_targets:
        deps = list(target.project_class.direct_dependency_names(config))
        users = [t.name for t in chosen_targets if target.name in t.project_class.direct_dependency_names(config)]
        status_update("Will build target", coloured(AnsiColour.yellow, target.name))
        print("    Needed by:", [name for name in chosen_names if name in users])
        print("    Direct dependencies:", deps)


def dump_configuration(config: DefaultDepcacheConfig) -> None:
    config.pretend = True
    config.quiet = True
    values = {name: config_option_value(option, config) for name, option in config.loader.options.items()}
    json.dump(values, sys.stdout, sort_keys=True, cls=ConfigJsonEncoder, indent=4)


def real_main() -> None:
    for stream in (sys.stdin, sys.stdout, sys.stderr):
        ensure_fd_is_blocking(stream.fileno())

    loader = DefaultDepcacheConfigLoader()
    config = DefaultDepcacheConfig(loader, sorted(target_manager.target_names))
    SimpleProject._config_loader = loader
    # the per-target options have to exist before the command line is parsed
    target_manager.register_command_line_options()
    config.load()

    if DepcacheAction.LIST_TARGETS in config.action:
        names = target_manager.non_alias_target_names()
        print("There are", len(names), "available targets:")
        for name in names:
            print("  ", name)
        return
    if DepcacheAction.DUMP_CONFIGURATION in config.action:
        dump_configuration(config)
        return
    if config.get_config_option:
        option = loader.options.get(config.get_config_option)
        if option is None:
            fatal_error("Unknown config key", config.get_config_option, pretend=False)
            return
        config.pretend = True
        config.quiet = True
        print(config_option_value(option, config))
        return
    if DepcacheAction.DIAGNOSTICS in config.action:
        print_diagnostics(config)
        return

    assert DepcacheAction.BUILD in config.action
    if not config.targets:
        fatal_error("At least one target name is required (see --list-targets).", pretend=False)
    chosen_targets = target_manager.get_all_chosen_targets(config)
    if config.print_targets_only:
        print_chosen_targets(config, chosen_targets)
        return
    if not config.quiet:
        print("Sources, builds and installed libraries will be stored in", config.download_root)
    if not config.download_root.exists() and not config.pretend:
        print_command("mkdir", "-p", config.download_root, print_verbose_only=True, config=config)
        config.download_root.mkdir(parents=True, exist_ok=True)
    target_manager.run(config, chosen_targets)


def main() -> None:
    try:
        run_and_kill_children_on_exit(real_main)
    except Exception as e:
        # let a debugger break on the original exception
        if sys.gettrace() is not None:
            raise
        traceback.print_exc()
        fatal_error("Unhandled exception:", e, fatal_when_pretending=True, pretend=False)


if __name__ == "__main__":
    main()
