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
import inspect
import os
import shutil
import subprocess
import sys
import typing
from abc import ABCMeta, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Union

from ..config.config_loader_base import ComputedDefaultValue, ConfigLoaderBase, ConfigOptionBase
from ..config.depconfig import DepcacheConfig
from ..filesystemutils import FileSystemUtils
from ..processutils import commandline_to_str, print_command, run_command, set_env
from ..targets import Target, target_manager
from ..utils import InstallInstructions, OSInfo, fatal_error, status_update, warning_message

__all__ = ["BoolConfigOption", "SimpleProject", "TargetAlias", "TargetAliasWithDependencies"]

T = typing.TypeVar("T")


class ProjectRegistry(ABCMeta):
    """Adds a target for every project class unless the class body sets do_not_add_to_targets = True"""

    def __init__(cls, name: str, bases, clsdict) -> None:
        super().__init__(name, bases, clsdict)
        if clsdict.get("do_not_add_to_targets", False):
            return
        if typing.TYPE_CHECKING:
            assert issubclass(cls, SimpleProject)
        target_name = clsdict.get("target")
        if not target_name and name.startswith("Build"):
            # BuildGmp -> gmp, BuildLinq_For_Cpp -> linq-for-cpp
            target_name = name[len("Build"):].replace("_", "-").lower()
            cls.target = target_name
        if not target_name:
            sys.exit(inspect.getfile(cls) + ": error: cannot infer the target name of " + name +
                     ", set target= or do_not_add_to_targets=True")
        if "default_directory_basename" not in clsdict:
            cls.default_directory_basename = target_name
        if clsdict.get("dependencies_must_be_built") and not cls.dependencies:
            sys.exit("Target alias " + target_name + " must have dependencies")
        target_manager.add_target(Target(target_name, cls))


class PerProjectConfigOption:
    """
    A class attribute that becomes a --<target>/<name> option for every target that inherits it. The placeholder is
    replaced with the real option descriptor by SimpleProject.setup_config_options().
    """

    def __init__(self, name: str, help: str, default: "typing.Any", **kwargs) -> None:
        self.name = name
        self.help = help
        self.default = default
        self.kwargs = kwargs

    def register_config_option(self, owner: "type[SimpleProject]") -> ConfigOptionBase:
        raise NotImplementedError()


if typing.TYPE_CHECKING:
    # noinspection PyPep8Naming
    def BoolConfigOption(name: str, help: str,  # noqa: N802
                         default: "Union[bool, ComputedDefaultValue[bool]]" = False, **kwargs) -> bool:
        return typing.cast(bool, default)
else:
    class BoolConfigOption(PerProjectConfigOption):
        def __init__(self, name: str, help: str, default: "Union[bool, ComputedDefaultValue[bool]]" = False,
                     **kwargs) -> None:
            super().__init__(name, help, default, **kwargs)

        def register_config_option(self, owner: "type[SimpleProject]") -> ConfigOptionBase:
            return typing.cast(ConfigOptionBase, owner.add_bool_option(self.name, default=self.default,
                                                                       help=self.help, **self.kwargs))


class SimpleProject(FileSystemUtils, metaclass=ABCMeta if typing.TYPE_CHECKING else ProjectRegistry):
    """The base of all targets: options, dependencies, output helpers and running build commands"""
    _config_loader: ConfigLoaderBase = None
    _option_group: typing.Any = None

    target: str = ""
    # Used to name the source, build and install directories, defaults to the target name
    default_directory_basename: Optional[str] = None
    dependencies: "Union[tuple[str, ...], Callable[[type, DepcacheConfig], tuple[str, ...]]]" = tuple()
    # Aliases like "all" always process their dependencies even without --include-dependencies
    dependencies_must_be_built: bool = False
    is_alias: bool = False
    hide_options_from_help: bool = False
    do_not_add_to_targets: bool = True
    source_dir: Optional[Path] = None
    build_dir: Optional[Path] = None
    install_dir: Optional[Path] = None

    # Both caches are per class, targets_reset() clears them
    _dependencies_cache: "Optional[list[Target]]" = None
    _full_dependencies_cache: "Optional[list[Target]]" = None
    _options_registered: "set[type]" = set()
    # Tools that have already been found in $PATH, shared by all projects
    _found_system_tools: "dict[str, InstallInstructions]" = {}

    with_clean = BoolConfigOption("clean", help="Override --clean/--no-clean for this target only",
                                  default=ComputedDefaultValue(lambda config, _: config.clean,
                                                               "the value of the global --clean option"))

    @classmethod
    def direct_dependency_names(cls, config: DepcacheConfig) -> "tuple[str, ...]":
        deps = cls.dependencies
        if callable(deps):
            deps = deps(config) if inspect.ismethod(deps) else deps(cls, config)
        assert isinstance(deps, tuple), "dependencies must be a tuple, got " + repr(deps)
        return deps

    @classmethod
    def _direct_dependencies(cls, config: DepcacheConfig) -> "list[Target]":
        result = []
        for name in cls.direct_dependency_names(config):
            try:
                dep = target_manager.get_target(name, config)
            except KeyError:
                fatal_error("Could not find target '", name, "' for ", cls.__name__, sep="", pretend=config.pretend,
                            fatal_when_pretending=True)
                raise
            if dep.project_class is not cls:
                result.append(dep)
        return result

    @classmethod
    def _collect_dependencies(cls, config: DepcacheConfig, chain: "tuple[type[SimpleProject], ...]" = ()
                              ) -> "list[Target]":
        """All transitive dependencies, fails with the offending chain if there is a cycle"""
        if cls in chain:
            cycle = [*chain[chain.index(cls):], cls]
            fatal_error("Cyclic dependency found:", " -> ".join(c.target for c in cycle), pretend=False)
        result: "list[Target]" = []
        for dep in cls._direct_dependencies(config):
            for t in [dep, *dep.project_class._collect_dependencies(config, (*chain, cls))]:
                if t not in result:
                    result.append(t)
        return result

    @classmethod
    def recursive_dependencies(cls, config: DepcacheConfig) -> "list[Target]":
        """The dependencies that are built along with this target: none unless --include-dependencies is set or this
        is an alias such as "all"."""
        # cls.__dict__ so that subclasses don't see the cache of their parent
        if cls.__dict__.get("_dependencies_cache") is None:
            built_too = config.include_dependencies or cls.dependencies_must_be_built
            cls._dependencies_cache = cls._collect_dependencies(config) if built_too else []
        return cls._dependencies_cache

    @classmethod
    def cache_full_dependencies(cls, config: DepcacheConfig) -> None:
        if cls.__dict__.get("_full_dependencies_cache") is None:
            cls._full_dependencies_cache = cls._collect_dependencies(config)

    @classmethod
    def cached_full_dependencies(cls) -> "list[Target]":
        cached = cls.__dict__.get("_full_dependencies_cache")
        if cached is None:
            raise ValueError("cache_full_dependencies() has not been called for " + cls.target)
        return cached

    @classmethod
    def targets_reset(cls) -> None:
        cls._dependencies_cache = None
        cls._full_dependencies_cache = None

    @classmethod
    def add_config_option(cls, name: str, *, show_help=False, kind: "Union[type[T], Callable[[str], T]]" = str,
                          default: "Union[ComputedDefaultValue[T], T, None]" = None, **kwargs) -> Optional[T]:
        """Adds the option --<target>/<name>, which can also be set as "<target>": {"<name>": ...} in the JSON file"""
        if "_option_group" not in cls.__dict__:
            parser = getattr(cls._config_loader, "_parser", None)
            cls._option_group = parser.add_argument_group("Options for target '" + cls.target + "'") if parser else None
        return cls._config_loader.add_option(cls.target + "/" + name, type=kind, default=default, _owning_class=cls,
                                             group=cls._option_group,
                                             help_hidden=not show_help or cls.hide_options_from_help, **kwargs)

    @classmethod
    def add_bool_option(cls, name: str, *, default: "Union[bool, ComputedDefaultValue[bool]]" = False,
                        **kwargs) -> bool:
        return typing.cast(bool, cls.add_config_option(name, kind=bool, default=default, **kwargs))

    @classmethod
    def add_list_option(cls, name: str, *, default: "Optional[list[str]]" = None, **kwargs) -> "list[str]":
        return typing.cast("list[str]", cls.add_config_option(name, kind=list, default=default or [], **kwargs))

    @classmethod
    def setup_config_options(cls, **kwargs) -> None:
        """Registers the per-target options, subclasses that add options must call super() first"""
        cls._options_registered.add(cls)
        for klass in cls.__mro__:
            for attr, value in list(vars(klass).items()):
                # skip placeholders that were already replaced or that a subclass overrides with a constant
                if isinstance(value, PerProjectConfigOption) and inspect.getattr_static(cls, attr) is value:
                    setattr(cls, attr, value.register_config_option(cls))

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.config: DepcacheConfig = config
        assert type(self) in self._options_registered, \
            type(self).__name__ + ".setup_config_options() was not called (missing super() call?)"
        self._system_deps_checked = False
        self._setup_called = False

    def setup(self) -> None:
        """Called right before process() once all dependencies have been processed"""
        assert not self._setup_called, "setup() called twice"
        self._setup_called = True

    def run_cmd(self, *args, **kwargs) -> "subprocess.CompletedProcess[bytes]":
        return run_command(*args, config=self.config, **kwargs)

    def set_env(self, *, print_verbose_only=True, **environ) -> "typing.ContextManager[None]":
        return set_env(print_verbose_only=print_verbose_only, config=self.config, **environ)

    def check_required_system_tool(self, executable: str, instructions: "Optional[InstallInstructions]" = None,
                                   default: "Optional[str]" = None, freebsd: "Optional[str]" = None,
                                   apt: "Optional[str]" = None, dnf: "Optional[str]" = None,
                                   homebrew: "Optional[str]" = None, depcache_target: "Optional[str]" = None,
                                   alternative_instructions: "Optional[str]" = None) -> None:
        if executable in self._found_system_tools:
            return
        if instructions is None:
            instructions = OSInfo.install_instructions(
                executable, is_lib=False, default=default, freebsd=freebsd, dnf=dnf, apt=apt, homebrew=homebrew,
                depcache_target=depcache_target, alternative=alternative_instructions)
        if not shutil.which(executable):
            self.dependency_error("Required program", executable, "is missing!", install_instructions=instructions)
            return
        self._found_system_tools[executable] = instructions

    def dependency_error(self, *args, problem="missing",
                         install_instructions: "Optional[InstallInstructions]" = None) -> None:
        self._system_deps_checked = True
        self.fatal("Dependency for", self.target, problem + ":", *args,
                   fixit_hint=install_instructions.fixit_hint() if install_instructions else None)

    def dependency_warning(self, *args, problem="missing",
                           install_instructions: "Optional[InstallInstructions]" = None) -> None:
        self.warning("Dependency for", self.target, problem + ":", *args,
                     fixit_hint=install_instructions.fixit_hint() if install_instructions else None)

    def check_system_dependencies(self) -> None:
        """Overridden to check for the programs and libraries the build needs, fails via dependency_error()"""
        self._system_deps_checked = True

    def can_skip_build(self) -> bool:
        """True if process() would not run any build tools, so missing tools are not an error"""
        return False

    @abstractmethod
    def process(self) -> None:
        ...

    # Filter for the output of the build steps, None shows everything
    _stdout_filter: Optional[Callable[[bytes], None]] = None

    def _show_line_stdout_filter(self, line: bytes) -> None:
        sys.stdout.buffer.write(line)
        sys.stdout.buffer.flush()

    def run_with_logfile(self, args: "typing.Sequence[typing.Any]", logfile_name: str, *,
                         stdout_filter: "Optional[Callable[[bytes], None]]" = None, cwd: "Optional[Path]" = None,
                         env: "Optional[typing.Mapping[str, typing.Any]]" = None, stdin=subprocess.DEVNULL) -> None:
        """
        Runs a build step (configure, make, ...) in cwd (default: the build directory).

        With --logfile the combined stdout and stderr go to <build_dir>/<logfile_name>.log as well. --quiet hides
        the output and --verbose disables stdout_filter. A non-zero exit status raises CalledProcessError.
        """
        if cwd is None:
            cwd = self.build_dir
        print_command(args, cwd=cwd, env=env, config=self.config)
        logfile_path = None
        if self.config.write_logfile:
            logfile_path = self.build_dir / (logfile_name + ".log")
            self.print("Saving build log to", logfile_path)
        if self.config.pretend:
            return
        args = [str(a) for a in args]
        if self.config.verbose:
            stdout_filter = None
        popen_env = {**os.environ, **{k: str(v) for k, v in env.items()}} if env else None
        capture = logfile_path is not None or stdout_filter is not None
        stdout = subprocess.PIPE if capture else (subprocess.DEVNULL if self.config.quiet else None)
        logfile = None
        if logfile_path is not None:
            self.makedirs(logfile_path.parent)
            logfile = logfile_path.open("wb")
            logfile.write(("cd " + commandline_to_str([cwd]) + " && " + commandline_to_str(args) + "\n\n").encode())
        try:
            with subprocess.Popen(args, cwd=str(cwd), env=popen_env, stdin=stdin, stdout=stdout,
                                  stderr=subprocess.STDOUT if logfile else None) as proc:
                for line in proc.stdout if capture else ():
                    if logfile:
                        logfile.write(line)
                    if self.config.quiet:
                        continue
                    if stdout_filter is not None:
                        stdout_filter(line)
                    else:
                        self._show_line_stdout_filter(line)
            returncode = proc.returncode
        except OSError as e:
            raise subprocess.CalledProcessError(e.errno or 127, args, stderr=str(e).encode("utf-8")) from e
        finally:
            if logfile:
                logfile.close()
        if returncode:
            details = ("See " + str(logfile_path) + " for details.").encode("utf-8") if logfile_path else None
            raise subprocess.CalledProcessError(returncode, args, stderr=details)

    def download_file(self, dest: Path, url: str, *, max_time: int = 300, inactivity_timeout: int = 60) -> None:
        """
        Downloads url to dest with curl (or wget). Gives up after max_time seconds or when no data arrived for
        inactivity_timeout seconds, which raises CalledProcessError (curl) or TimeoutExpired (wget).
        """
        self.makedirs(dest.parent)
        if shutil.which("curl"):
            # --fail: an HTTP error page must not end up as the downloaded file
            self.run_cmd("curl", "--location", "--fail", "--max-time", str(max_time), "--speed-limit", "1",
                         "--speed-time", str(inactivity_timeout), "-o", dest, url)
        elif shutil.which("wget"):
            self.run_cmd("wget", "--timeout=" + str(inactivity_timeout), "--tries=1", "-O", dest, url,
                         timeout=max_time)
        else:
            self.dependency_error("Cannot find a tool to download", url,
                                  install_instructions=InstallInstructions("Please install curl or wget"))

    def info(self, *args, **kwargs) -> None:
        if not self.config.quiet:
            status_update(*args, **kwargs)

    @staticmethod
    def warning(*args, **kwargs) -> None:
        warning_message(*args, **kwargs)

    def fatal(self, *args, sep=" ", fixit_hint=None, fatal_when_pretending=False) -> None:
        fatal_error(*args, sep=sep, fixit_hint=fixit_hint, fatal_when_pretending=fatal_when_pretending,
                    pretend=self.config.pretend)

    def print(self, *args, **kwargs) -> None:
        if not self.config.quiet:
            print(*args, **kwargs)

    def verbose_print(self, *args, **kwargs) -> None:
        if self.config.verbose:
            print(*args, **kwargs)

    def __repr__(self) -> str:
        return "<" + type(self).__name__ + " for target " + self.target + ">"


class TargetAlias(SimpleProject):
    """A name for one or more other targets, building it does not imply --include-dependencies"""
    do_not_add_to_targets: bool = True
    is_alias: bool = True

    def process(self) -> None:
        assert self.direct_dependency_names(self.config), "Expected non-empty dependencies for " + self.target


class TargetAliasWithDependencies(TargetAlias):
    """An alias whose dependencies are always built, e.g. "all" """
    do_not_add_to_targets: bool = True
    dependencies_must_be_built: bool = True
