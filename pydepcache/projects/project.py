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
import subprocess
import time
import typing
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from .repository import ExternallyManagedSourceRepository, SourceRepository
from .simple_project import SimpleProject
from ..config.depconfig import DepcacheConfig
from ..link_registry import LinkInfo, LinkRegistry
from ..utils import status_update

__all__ = ["AutotoolsProject", "HeaderOnlyProject", "MakeCommandKind", "MakefileProject", "MakeOptions",
           "ManualCompileProject", "Project", "PythonConfigureProject"]


class MakeCommandKind(Enum):
    DefaultMake = "make"
    CMake = "cmake"


class MakeOptions:
    """The arguments for the build tool: VAR=value assignments for make and the configuration for cmake --build"""

    def __init__(self, kind: MakeCommandKind, project: SimpleProject, **kwargs) -> None:
        self.kind = kind
        self._project = project
        self.variables: "dict[str, str]" = {}
        self.env_vars: "dict[str, str]" = {}
        # passed as cmake --build --config
        self.cmake_config: "Optional[str]" = None
        self.set(**kwargs)

    @staticmethod
    def _as_string(value: "Union[str, int, bool, Path]") -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        assert isinstance(value, (str, int, Path)), "Cannot pass " + repr(value) + " to make"
        return str(value)

    def set(self, **kwargs) -> None:
        """Adds VAR=value to the make command line"""
        self.variables.update((k, self._as_string(v)) for k, v in kwargs.items())

    def set_env(self, **kwargs) -> None:
        self.env_vars.update((k, self._as_string(v)) for k, v in kwargs.items())

    @property
    def command(self) -> str:
        if self.kind is MakeCommandKind.CMake:
            self._project.check_required_system_tool("cmake", default="cmake", homebrew="cmake", apt="cmake",
                                                     freebsd="cmake")
        else:
            self._project.check_required_system_tool("make")
        return self.kind.value

    def get_commandline_args(self, *, targets: "Optional[typing.Sequence[str]]" = None,
                             jobs: "Optional[int]" = None) -> "list[str]":
        assert all(isinstance(t, str) and t for t in targets or ()), "Invalid target names " + repr(targets)
        if self.kind is MakeCommandKind.CMake:
            args = ["--build", "."]
            if self.cmake_config:
                args += ["--config", self.cmake_config]
            if jobs:
                args += ["-j", str(jobs)]
            if targets:
                args += ["--target", *targets]
            return args
        return [*(targets or ()), *(["-j" + str(jobs)] if jobs else []),
                *(k + "=" + v for k, v in self.variables.items())]


class Project(SimpleProject):
    """
    A library that is fetched, built and installed below the download root:

    - sources in <download_root>/<name>
    - out-of-source builds in <download_root>/<name>-build
    - installed headers and libraries in <download_root>/<name>-install

    process() skips everything but the link registration if all cached_artifacts exist.
    """
    do_not_add_to_targets: bool = True
    repository: SourceRepository = ExternallyManagedSourceRepository()
    # A file relative to the source directory whose presence means the sources do not need to be fetched again
    source_marker: "Optional[str]" = None
    # Paths relative to the install directory that must all exist for the target to count as cached
    cached_artifacts: "typing.Sequence[str]" = tuple()
    # Libraries relative to the install directory in link order (defaults to the libraries in cached_artifacts)
    link_libraries: "Optional[typing.Sequence[str]]" = None
    build_in_source_dir: bool = False
    make_kind: MakeCommandKind = MakeCommandKind.DefaultMake
    # Targets passed to make/cmake --build by the default compile() step
    make_targets: "typing.Sequence[str]" = tuple()
    # C++ standard that consumers of this library need (None if the default is fine)
    cxx_standard: "Optional[int]" = None
    needs_threads: bool = False

    @classmethod
    def get_source_dir(cls, config: DepcacheConfig) -> Path:
        return config.download_root / cls.default_directory_basename

    @classmethod
    def get_build_dir(cls, config: DepcacheConfig) -> Path:
        if cls.build_in_source_dir:
            return cls.get_source_dir(config)
        return config.download_root / (cls.default_directory_basename + "-build")

    @classmethod
    def get_install_dir(cls, config: DepcacheConfig) -> Path:
        return config.download_root / (cls.default_directory_basename + "-install")

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.source_dir = self.get_source_dir(config)
        self.build_dir = self.get_build_dir(config)
        self.install_dir = self.get_install_dir(config)
        self.configure_command: "Optional[Union[str, Path]]" = None
        self.configure_args: "list[str]" = []
        self.configure_environment: "dict[str, str]" = {}
        self.make_args = MakeOptions(self.make_kind, self)
        self.link_registry = LinkRegistry(self, config.download_root)

    @property
    def display_name(self) -> str:
        return self.target

    @property
    def should_rebuild(self) -> bool:
        return bool(self.with_clean or self.config.force_rebuild)

    def missing_artifacts(self) -> "list[Path]":
        return [self.install_dir / a for a in self.cached_artifacts if not (self.install_dir / a).exists()]

    def is_cached(self) -> bool:
        return bool(self.cached_artifacts) and not self.missing_artifacts()

    def can_skip_build(self) -> bool:
        return self.is_cached() and not self.should_rebuild

    def sources_exist(self) -> bool:
        if self.source_marker is not None:
            return (self.source_dir / self.source_marker).exists()
        return self.repository.sources_exist(self, src_dir=self.source_dir)

    def update(self) -> None:
        if self.sources_exist():
            self.verbose_print("Sources for", self.target, "found in", self.source_dir, "-> not downloading")
        elif self.config.skip_update:
            self.fatal("Sources for", self.target, "are missing in", self.source_dir,
                       fixit_hint="Re-run without --skip-update to download them")
        else:
            self.repository.ensure_cloned(self, src_dir=self.source_dir)

    def clean(self) -> None:
        if not self.build_in_source_dir:
            self.clean_directory(self.build_dir, ensure_dir_exists=False)
        elif (self.build_dir / "Makefile").is_file():
            try:
                self.run_cmd(self.make_args.command, "distclean", cwd=self.build_dir)
            except subprocess.CalledProcessError as e:
                self.warning("Could not clean", self.build_dir, "(" + str(e) + ")")
        # a failed rebuild must not leave the old artifacts behind as a cache hit
        self.clean_directory(self.install_dir, ensure_dir_exists=False)

    def needs_configure(self) -> bool:
        return True

    def configure(self, cwd: "Optional[Path]" = None, configure_path: "Optional[Union[str, Path]]" = None) -> None:
        configure_path = configure_path or self.configure_command
        if configure_path is None:
            self.verbose_print("No configure command for", self.target, "-> skipping the configure step")
            return
        if isinstance(configure_path, Path) and not configure_path.exists() and not self.config.pretend:
            self.fatal("Configure command", configure_path, "does not exist!")
        self.run_with_logfile([configure_path, *self.configure_args], logfile_name="configure",
                              cwd=cwd or self.build_dir, env=self.configure_environment)

    def get_make_commandline(self, make_target: "Optional[Union[str, typing.Sequence[str]]]", *,
                             options: "Optional[MakeOptions]" = None, parallel: bool = True) -> "list[str]":
        options = options or self.make_args
        targets = [make_target] if isinstance(make_target, str) else make_target
        jobs = self.config.make_jobs if parallel else None
        return [options.command, *options.get_commandline_args(targets=targets, jobs=jobs)]

    def run_make(self, make_target: "Optional[Union[str, typing.Sequence[str]]]" = None, *,
                 options: "Optional[MakeOptions]" = None, logfile_name: "Optional[str]" = None,
                 cwd: "Optional[Path]" = None, parallel: bool = True,
                 stdout_filter: "Optional[Callable[[bytes], None]]" = None) -> None:
        options = options or self.make_args
        if not logfile_name:
            # e.g. build/make.install.log
            suffix = make_target if isinstance(make_target, str) else "_".join(make_target or ())
            logfile_name = options.kind.value + ("." + suffix if suffix else "")
        start = time.time()
        self.run_with_logfile(self.get_make_commandline(make_target, options=options, parallel=parallel),
                              logfile_name=logfile_name, stdout_filter=stdout_filter or self._stdout_filter,
                              cwd=cwd or self.build_dir, env=options.env_vars)
        self.verbose_print(options.kind.value, make_target or "", "took", "%.1f" % (time.time() - start), "seconds")

    def compile(self, cwd: "Optional[Path]" = None) -> None:
        self.run_make(list(self.make_targets) or None, cwd=cwd)

    def run_make_install(self, *, options: "Optional[MakeOptions]" = None, cwd: "Optional[Path]" = None,
                         target: "Union[str, list[str]]" = "install") -> None:
        # install rules are often not safe to run in parallel
        self.run_make(target, options=options, cwd=cwd, parallel=False)

    def install(self) -> None:
        self.run_make_install()

    def check_artifacts(self) -> None:
        missing = self.missing_artifacts()
        if missing and not self.config.pretend:
            self.fatal("Build of", self.target, "finished but the expected artifacts are missing:",
                       ", ".join(map(str, missing)))

    def link_info(self) -> LinkInfo:
        """What consumers need to link against this library, written to cmake/<target>-targets.cmake"""
        libs = self.link_libraries
        if libs is None:
            libs = [a for a in self.cached_artifacts if a.endswith((".a", ".so", ".dylib"))]
        return LinkInfo(self.target, self.install_dir, libraries=[self.install_dir / lib for lib in libs],
                        needs_threads=self.needs_threads, cxx_standard=self.cxx_standard)

    def register_link_target(self) -> None:
        self.link_registry.register(self.link_info())

    def process(self) -> None:
        self.verbose_print(self.target, " directories: source=", self.source_dir, " build=", self.build_dir,
                           " install=", self.install_dir, sep="")
        if self.can_skip_build():
            self.info("`" + self.target + "` is cached at `" + str(self.install_dir) + "`, skipping build")
            self.register_link_target()
            return
        self.update()
        if not self._system_deps_checked:
            self.check_system_dependencies()
        if self.should_rebuild:
            self.clean()
        self.makedirs(self.build_dir)
        if self.should_rebuild or self.needs_configure():
            status_update("Configuring", self.display_name, "... ")
            self.configure()
        status_update("Building", self.display_name, "... ")
        self.compile()
        status_update("Installing", self.display_name, "... ")
        self.makedirs(self.install_dir)
        self.install()
        self.check_artifacts()
        self.register_link_target()


class AutotoolsProject(Project):
    """Runs `./configure --prefix=<install dir> <configure_options>`, `make` and `make install` in the sources"""
    do_not_add_to_targets: bool = True
    build_in_source_dir: bool = True
    source_marker: "Optional[str]" = "configure"
    configure_options: "typing.Sequence[str]" = tuple()

    @classmethod
    def setup_config_options(cls, **kwargs) -> None:
        super().setup_config_options(**kwargs)
        cls.extra_configure_flags = cls.add_list_option("configure-options", metavar="OPTIONS",
                                                        help="Additional command line options to pass to configure")

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.configure_command = self.source_dir / "configure"

    def setup(self) -> None:
        super().setup()
        if self.config.verbose:
            # automake rules print the full compiler command lines with V=1
            self.make_args.set_env(V=1)

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        self.check_required_system_tool("make")

    def configure(self, **kwargs) -> None:
        self.configure_args += ["--prefix=" + str(self.install_dir), *self.configure_options,
                                *self.extra_configure_flags]
        script = typing.cast(Path, self.configure_command)
        # git checkouts only ship autogen.sh, NOCONFIGURE stops it from running configure itself
        if not script.exists() and (script.parent / "autogen.sh").is_file():
            self.info("No configure script found in", self.source_dir, "-> running autogen.sh")
            self.run_cmd("sh", "autogen.sh", cwd=script.parent, env={**self.configure_environment, "NOCONFIGURE": "1"})
        super().configure(**kwargs)

    def needs_configure(self) -> bool:
        return not (self.build_dir / "Makefile").exists()


class MakefileProject(Project):
    """A plain Makefile without a configure step, built in the source directory"""
    do_not_add_to_targets: bool = True
    build_in_source_dir: bool = True
    source_marker: "Optional[str]" = "Makefile"

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        self.check_required_system_tool("make")

    def needs_configure(self) -> bool:
        return False


class PythonConfigureProject(MakefileProject):
    """Configured with `python3 configure.py --prefix=<install dir>` which generates the Makefile (e.g. Botan)"""
    do_not_add_to_targets: bool = True
    source_marker: "Optional[str]" = "configure.py"
    configure_options: "typing.Sequence[str]" = tuple()

    @classmethod
    def setup_config_options(cls, **kwargs) -> None:
        super().setup_config_options(**kwargs)
        cls.extra_configure_flags = cls.add_list_option("configure-options", metavar="OPTIONS",
                                                        help="Additional command line options for configure.py")

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.configure_command = "python3"

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        self.check_required_system_tool("python3")

    def needs_configure(self) -> bool:
        return not (self.build_dir / "Makefile").exists()

    def configure(self, **kwargs) -> None:
        self.configure_args += [str(self.source_dir / "configure.py"), "--prefix=" + str(self.install_dir),
                                *self.configure_options, *self.extra_configure_flags]
        super().configure(**kwargs)


class ManualCompileProject(Project):
    """
    For sources without a usable build system: each selected source file is compiled on its own and the objects
    are archived into lib<library_name>.a with `ar rcs`.
    """
    do_not_add_to_targets: bool = True
    # relative to the source directory, holds the sources and the headers
    source_subdirectory: str = "src"
    source_glob: str = "*.cpp"
    header_glob: str = "*.h"
    # fnmatch patterns for sources that must not be compiled
    excluded_sources: "typing.Sequence[str]" = tuple()
    compile_flags: "typing.Sequence[str]" = ("-O2", "-fPIC", "-std=c++17")
    compiler_env_var: str = "CXX"
    default_compiler: str = "c++"
    library_name: str = ""

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.compiler = os.getenv(self.compiler_env_var, self.default_compiler)
        self.objects: "list[Path]" = []

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        self.check_required_system_tool(self.compiler)
        self.check_required_system_tool("ar", apt="binutils", dnf="binutils")

    @property
    def library_path(self) -> Path:
        return self.install_dir / "lib" / ("lib" + self.library_name + ".a")

    def source_files(self) -> "list[Path]":
        sources = []
        for f in sorted((self.source_dir / self.source_subdirectory).glob(self.source_glob)):
            if any(f.match(pattern) for pattern in self.excluded_sources):
                self.verbose_print("Not compiling", f.name)
            else:
                sources.append(f)
        return sources

    def needs_configure(self) -> bool:
        return False

    def compile(self, cwd: "Optional[Path]" = None) -> None:
        include_dir = self.source_dir / self.source_subdirectory
        sources = self.source_files()
        self.objects = [self.build_dir / (src.stem + ".o") for src in sources]
        for src, obj in zip(sources, self.objects):
            self.run_cmd(self.compiler, *self.compile_flags, "-I" + str(include_dir), "-c", src, "-o", obj,
                         cwd=self.build_dir)

    def install(self) -> None:
        self.makedirs(self.library_path.parent)
        # ar would add the objects to a stale archive
        self.delete_file(self.library_path, print_verbose_only=True)
        if self.objects or self.config.pretend:
            self.run_cmd("ar", "rcs", self.library_path, *self.objects, cwd=self.build_dir)
        self.install_files_matching(self.source_dir / self.source_subdirectory, self.header_glob,
                                    self.install_dir / "include")


class HeaderOnlyProject(Project):
    """Nothing to compile, install() copies the headers into <install>/include"""
    do_not_add_to_targets: bool = True
    build_in_source_dir: bool = True

    def needs_configure(self) -> bool:
        return False

    def compile(self, cwd: "Optional[Path]" = None) -> None:
        self.verbose_print(self.target, "is header-only, nothing to build")
