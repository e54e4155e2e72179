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
import shutil
from pathlib import Path
from typing import Optional

from .project import MakeCommandKind, Project
from ..config.depconfig import DepcacheConfig
from ..processutils import get_program_version
from ..utils import InstallInstructions, OSInfo

__all__ = ["CMakeProject"]


class CMakeProject(Project):
    """
    Configures with `cmake -S <source> -B <build> -DCMAKE_INSTALL_PREFIX=<install> ...`, builds with
    `cmake --build` and installs with `cmake --install`. Ninja is used as the generator when it is available.
    """
    do_not_add_to_targets: bool = True
    make_kind: MakeCommandKind = MakeCommandKind.CMake
    source_marker: "Optional[str]" = "CMakeLists.txt"
    # Projects without install rules must override install()
    has_install_rules: bool = True
    # Set if the CMakeLists.txt to configure with is not at the top of the sources (e.g. dlib/)
    root_cmakelists_subdirectory: Optional[Path] = None
    # the first release with cmake --install
    minimum_cmake_version: "tuple[int, ...]" = (3, 15)

    @classmethod
    def setup_config_options(cls, **kwargs) -> None:
        super().setup_config_options(**kwargs)
        cls.cmake_options = cls.add_list_option("cmake-options", metavar="OPTIONS",
                                                help="Additional command line options to pass to CMake")

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.configure_command = os.getenv("CMAKE_COMMAND") or "cmake"
        # a -G in --<target>/cmake-options replaces the default generator
        self.generator = next((opt for opt in self.cmake_options if opt.startswith("-G")), None)
        if self.generator is None:
            if shutil.which("ninja") or config.pretend:
                self.generator = "-GNinja"
            else:
                self.verbose_print("ninja not found, using the Makefile generator for", self.target)
                self.generator = "-GUnix Makefiles"
        self.make_args.cmake_config = config.build_type.value
        self._user_options_appended = False

    @staticmethod
    def _cmake_install_instructions() -> InstallInstructions:
        return OSInfo.install_instructions("cmake", False, default="cmake", homebrew="cmake", apt="cmake",
                                           freebsd="cmake")

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        cmake = str(self.configure_command)
        self.check_required_system_tool(cmake, instructions=self._cmake_install_instructions())
        if self.generator == "-GNinja":
            self.check_required_system_tool("ninja", homebrew="ninja", apt="ninja-build")
        cmake_path = shutil.which(cmake)
        if cmake_path is None:
            return
        version = get_program_version(Path(cmake_path), program_name=b"cmake", config=self.config)
        if version < self.minimum_cmake_version:
            self.dependency_error("cmake", ".".join(map(str, version)), "is too old, at least",
                                  ".".join(map(str, self.minimum_cmake_version)), "is required",
                                  install_instructions=self._cmake_install_instructions())

    def setup(self) -> None:
        super().setup()
        cmakelists_dir = self.source_dir
        if self.root_cmakelists_subdirectory is not None:
            cmakelists_dir = self.source_dir / self.root_cmakelists_subdirectory
        self.configure_args += [self.generator, "-S", str(cmakelists_dir), "-B", str(self.build_dir)]
        # without CMAKE_INSTALL_LIBDIR some distributions install into lib64/
        self.add_cmake_options(CMAKE_INSTALL_PREFIX=self.install_dir, CMAKE_INSTALL_LIBDIR="lib",
                               CMAKE_BUILD_TYPE=self.config.build_type.value,
                               CMAKE_POSITION_INDEPENDENT_CODE=True)

    def add_cmake_options(self, *, _include_empty_vars=False, _replace=True, **kwargs) -> None:
        """
        Adds -D<name>=<value> for every keyword argument. Booleans become TRUE/FALSE and None or empty values are
        skipped. Options that the user set with --<target>/cmake-options are left alone.
        """
        for name, value in kwargs.items():
            prefix = "-D" + name + "="
            if any(opt.startswith(prefix) for opt in self.cmake_options):
                self.info("Not using default value of '", value, "' for CMake option '", name,
                          "' since it is explicitly overwritten in the configuration", sep="")
                continue
            if isinstance(value, bool):
                value = "TRUE" if value else "FALSE"
            if value is None or (value == "" and not _include_empty_vars):
                continue
            if not isinstance(value, (str, Path, int)):
                raise TypeError(f"Unsupported type {type(value)}: {value}")
            existing = [arg for arg in self.configure_args if arg.startswith(prefix)]
            if existing and not _replace:
                self.warning("Not replacing", name, "since it is already set.")
                continue
            for arg in existing:
                self.configure_args.remove(arg)
            self.configure_args.append(prefix + str(value))

    def get_cmake_option(self, name: str) -> "Optional[str]":
        """The value that CMake will see for name, the user options win because they are passed last"""
        prefix = "-D" + name + "="
        values = [arg[len(prefix):] for arg in [*self.configure_args, *self.cmake_options] if arg.startswith(prefix)]
        return values[-1] if values else None

    def needs_configure(self) -> bool:
        # cmake --build re-runs the configure step itself when a CMakeLists.txt changes
        return not (self.build_dir / "CMakeCache.txt").exists()

    def configure(self, **kwargs) -> None:
        if self.should_rebuild:
            self.delete_file(self.build_dir / "CMakeCache.txt")
        if not self._user_options_appended:
            # last so that they override the defaults
            self.configure_args += self.cmake_options
            self._user_options_appended = True
        super().configure(**kwargs)

    def _cmake_install_stdout_filter(self, line: bytes) -> None:
        if not line.startswith(b"-- Up-to-date:"):
            self._show_line_stdout_filter(line)

    def install(self) -> None:
        if not self.has_install_rules:
            raise NotImplementedError(self.target + " has no install rules, install() must be overridden")
        self.run_with_logfile([self.configure_command, "--install", ".", "--config", self.config.build_type.value],
                              logfile_name="install", cwd=self.build_dir,
                              stdout_filter=self._cmake_install_stdout_filter)

    def cmake_package_dir(self, package: str) -> Path:
        """The directory that contains <package>Config.cmake once the project is installed"""
        for lib_dir in ("lib", "lib64"):
            candidate = self.install_dir / lib_dir / "cmake" / package
            if candidate.exists():
                return candidate
        return self.install_dir / "lib/cmake" / package
