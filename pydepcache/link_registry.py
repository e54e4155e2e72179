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
import json
import typing
from pathlib import Path
from typing import Optional

from .filesystemutils import FileSystemUtils
from .utils import OSInfo, status_update

__all__ = ["CMakePackage", "LinkInfo", "LinkRegistry", "cmake_quote"]


def cmake_quote(value: "typing.Union[str, Path]") -> str:
    """Returns value as a double-quoted CMake string literal (generator expressions are kept intact)"""
    s = str(value).replace("\\", "\\\\").replace("\"", "\\\"")
    return "\"" + s + "\""


class CMakePackage:
    """A find_package() call that has to be made before the imported target can be used"""

    def __init__(self, name: str, imported_targets: "typing.Sequence[str]", *, version: "Optional[str]" = None,
                 components: "typing.Sequence[str]" = (), config_mode: bool = False, required: bool = True,
                 paths: "typing.Sequence[Path]" = (), variables: "Optional[dict[str, str]]" = None) -> None:
        self.name = name
        self.imported_targets = list(imported_targets)
        self.version = version
        self.components = list(components)
        self.config_mode = config_mode
        self.required = required
        self.paths = list(paths)
        # Variables that have to be set before calling find_package()
        self.variables = dict(variables) if variables else {}

    def find_package_call(self) -> str:
        args = [self.name]
        if self.version:
            args.append(self.version)
        if self.required:
            args.append("REQUIRED")
        if self.config_mode:
            args.append("CONFIG")
        if self.components:
            args.append("COMPONENTS")
            args.extend(self.components)
        if self.paths:
            args.append("PATHS")
            args.extend(cmake_quote(p) for p in self.paths)
            args.append("NO_DEFAULT_PATH")
        return "find_package(" + " ".join(args) + ")"

    def as_json(self) -> "dict[str, typing.Any]":
        return {"name": self.name, "version": self.version, "components": self.components,
                "imported_targets": self.imported_targets, "paths": [str(p) for p in self.paths]}

    def __repr__(self) -> str:
        return "<CMakePackage " + self.name + ">"


class LinkInfo:
    """Everything a consumer needs to compile and link against a cached library."""

    def __init__(self, target: str, install_dir: Path, *, include_dirs: "Optional[list[Path]]" = None,
                 libraries: "typing.Sequence[Path]" = (), system_libraries: "typing.Sequence[str]" = (),
                 optional_system_libraries: "typing.Sequence[str]" = (), frameworks: "typing.Sequence[str]" = (),
                 compile_definitions: "Optional[dict[str, Optional[str]]]" = None,
                 packages: "typing.Sequence[CMakePackage]" = (), needs_threads: bool = False,
                 cxx_standard: "Optional[int]" = None) -> None:
        self.target = target
        self.install_dir = install_dir
        if include_dirs is None:
            include_dirs = [install_dir / "include"]
        self.include_dirs = include_dirs
        # Link order matters for static libraries: dependent libraries must come first
        self.libraries = list(libraries)
        self.system_libraries = list(system_libraries)
        self.optional_system_libraries = list(optional_system_libraries)
        self.frameworks = list(frameworks)
        self.compile_definitions = dict(compile_definitions) if compile_definitions else {}
        self.packages = list(packages)
        self.needs_threads = needs_threads
        self.cxx_standard = cxx_standard

    @property
    def imported_target(self) -> str:
        return "depcache::" + self.target

    def _definition_strings(self) -> "list[str]":
        return [k if v is None else k + "=" + v for k, v in self.compile_definitions.items()]

    def interface_link_libraries(self) -> "list[str]":
        # The first library is the IMPORTED_LOCATION, the remaining ones are added to the link interface
        result = [str(lib) for lib in self.libraries[1:]]
        for pkg in self.packages:
            result.extend(pkg.imported_targets)
        result.extend(self.system_libraries)
        result.extend("-framework " + f for f in self.frameworks)
        if self.needs_threads:
            result.append("Threads::Threads")
        return result

    def cmake_script(self) -> str:
        tgt = self.imported_target
        lines = ["# Generated by depcache for target " + self.target + ". Do not edit.",
                 "if(NOT TARGET " + tgt + ")"]
        if self.needs_threads:
            lines.append("  find_package(Threads REQUIRED)")
        for pkg in self.packages:
            for name, value in pkg.variables.items():
                lines.append("  set(" + name + " " + value + ")")
            lines.append("  " + pkg.find_package_call())
        if self.libraries:
            lines.append("  add_library(" + tgt + " UNKNOWN IMPORTED)")
        else:
            lines.append("  add_library(" + tgt + " INTERFACE IMPORTED)")
        props = []
        if self.libraries:
            props.append(("IMPORTED_LOCATION", str(self.libraries[0])))
        if self.include_dirs:
            props.append(("INTERFACE_INCLUDE_DIRECTORIES", ";".join(map(str, self.include_dirs))))
        link_libs = self.interface_link_libraries()
        if link_libs:
            props.append(("INTERFACE_LINK_LIBRARIES", ";".join(link_libs)))
        if self.compile_definitions:
            props.append(("INTERFACE_COMPILE_DEFINITIONS", ";".join(self._definition_strings())))
        if self.cxx_standard:
            props.append(("INTERFACE_COMPILE_FEATURES", "cxx_std_" + str(self.cxx_standard)))
        if props:
            lines.append("  set_target_properties(" + tgt + " PROPERTIES")
            for name, value in props:
                lines.append("    " + name + " " + cmake_quote(value))
            lines.append("  )")
        for lib in self.optional_system_libraries:
            var = "DEPCACHE_" + self.target.upper().replace("-", "_") + "_" + lib.upper().replace("-", "_")
            lines.append("  find_library(" + var + " " + lib + ")")
            lines.append("  if(" + var + ")")
            lines.append("    set_property(TARGET " + tgt + " APPEND PROPERTY INTERFACE_LINK_LIBRARIES \"${" + var +
                         "}\")")
            lines.append("  endif()")
        lines.append("endif()")
        return "\n".join(lines) + "\n"

    def as_json(self) -> "dict[str, typing.Any]":
        return {
            "imported_target": self.imported_target,
            "install_dir": str(self.install_dir),
            "include_dirs": [str(d) for d in self.include_dirs],
            "libraries": [str(lib) for lib in self.libraries],
            "system_libraries": self.system_libraries,
            "optional_system_libraries": self.optional_system_libraries,
            "frameworks": self.frameworks,
            "compile_definitions": self.compile_definitions,
            "packages": [p.as_json() for p in self.packages],
            "threads": self.needs_threads,
            "cxx_standard": self.cxx_standard,
        }

    def __repr__(self) -> str:
        return "<LinkInfo for " + self.target + ">"


class LinkRegistry:
    """
    Writes the consumer-facing link registration files below the download root:

    - cmake/<target>-targets.cmake with an IMPORTED target depcache::<target>
    - depcache-manifest.json with the link information of all registered targets
    - depcache.cmake which includes all generated target files
    """

    def __init__(self, fs: FileSystemUtils, download_root: Path) -> None:
        self.fs = fs
        self.download_root = download_root

    @property
    def cmake_dir(self) -> Path:
        return self.download_root / "cmake"

    @property
    def manifest_path(self) -> Path:
        return self.download_root / "depcache-manifest.json"

    @property
    def include_file_path(self) -> Path:
        return self.download_root / "depcache.cmake"

    def target_file(self, target: str) -> Path:
        return self.cmake_dir / (target + "-targets.cmake")

    def load_manifest(self) -> "dict[str, typing.Any]":
        if not self.manifest_path.is_file():
            return {}
        with self.manifest_path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def include_file_contents(self, targets: "typing.Iterable[str]") -> str:
        lines = ["# Generated by depcache. Include this file to get a depcache::<target> IMPORTED target for each",
                 "# cached library."]
        for t in sorted(targets):
            lines.append("include(\"${CMAKE_CURRENT_LIST_DIR}/cmake/" + t + "-targets.cmake\")")
        return "\n".join(lines) + "\n"

    def register(self, info: LinkInfo) -> None:
        if not self.fs.config.quiet:
            status_update("Registering", info.imported_target, "in", self.manifest_path)
        self.fs.write_file(self.target_file(info.target), info.cmake_script(), overwrite=True)
        manifest = self.load_manifest()
        entry = info.as_json()
        entry["cmake_file"] = str(self.target_file(info.target))
        entry["platform"] = "macos" if OSInfo.IS_MAC else "linux" if OSInfo.IS_LINUX else "other"
        manifest[info.target] = entry
        self.fs.write_file(self.manifest_path, json.dumps(manifest, indent=2, sort_keys=True) + "\n",
                           overwrite=True)
        self.fs.write_file(self.include_file_path, self.include_file_contents(manifest.keys()), overwrite=True)
