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
import ctypes
import os
import typing
from collections import OrderedDict

from .config.depconfig import DepcacheConfig
from .processutils import CompilerInfo, get_compiler_info

__all__ = ["cxx_standard_name", "build_mode_description", "diagnostics_lines", "parse_defines", "print_diagnostics",
           "type_sizes"]

# Values of __cplusplus for the published standards
CXX_STANDARDS = OrderedDict([
    (199711, "C++98/03"),
    (201103, "C++11"),
    (201402, "C++14"),
    (201703, "C++17"),
    (202002, "C++20"),
])

# (name shown to the user, predefined macro, ctypes fallback)
_FUNDAMENTAL_TYPES = (
    ("char *", "__SIZEOF_POINTER__", ctypes.c_char_p),
    ("int", "__SIZEOF_INT__", ctypes.c_int),
    ("long", "__SIZEOF_LONG__", ctypes.c_long),
    ("float", "__SIZEOF_FLOAT__", ctypes.c_float),
    ("double", "__SIZEOF_DOUBLE__", ctypes.c_double),
)


def cxx_standard_name(cplusplus: "typing.Optional[str]") -> str:
    """Maps the value of __cplusplus (e.g. ``201703L``) to the name of the standard"""
    if cplusplus is None:
        return "Newer C++ version or unknown"
    try:
        value = int(cplusplus.strip().rstrip("lL"))
    except ValueError:
        return "Newer C++ version or unknown"
    return CXX_STANDARDS.get(value, "Newer C++ version or unknown")


def build_mode_description(defines: "typing.Mapping[str, typing.Optional[str]]") -> str:
    if "_DEBUG" in defines:
        return "Debug mode (_DEBUG is defined)"
    elif "NDEBUG" in defines:
        return "Release mode (NDEBUG is defined)"
    return "Debug mode (NDEBUG is not defined)"


def type_sizes(macros: "typing.Mapping[str, str]") -> "list[tuple[str, int]]":
    """Returns the size in bits of the fundamental types, preferring the compiler's view over the host's"""
    result = []
    for name, macro, ctype in _FUNDAMENTAL_TYPES:
        size = macros.get(macro)
        if size is not None and size.isdigit():
            result.append((name, int(size) * 8))
        else:
            result.append((name, ctypes.sizeof(ctype) * 8))
    return result


def parse_defines(defines: "typing.Iterable[str]") -> "typing.OrderedDict[str, typing.Optional[str]]":
    """Parses NAME[=VALUE] strings as passed to -D"""
    result: "typing.OrderedDict[str, typing.Optional[str]]" = OrderedDict()
    for d in defines:
        name, sep, value = d.partition("=")
        result[name.strip()] = value if sep else None
    return result


def _define_value(defines: "typing.Mapping[str, typing.Optional[str]]", name: str) -> str:
    if name not in defines:
        return "(not defined)"
    value = defines[name]
    return "1" if value is None else value


def diagnostics_lines(compiler: CompilerInfo, macros: "typing.Mapping[str, str]",
                      defines: "typing.Mapping[str, typing.Optional[str]]", *, project_name: str,
                      project_version: str) -> "list[str]":
    lines = ["Hello, World!", "Information from CMake:",
             "Project Name is " + project_name + " and Project Version is " + project_version]
    if compiler.compiler == "unknown compiler":
        lines.append("Unknown compiler")
    else:
        version = list(compiler.version) + [0] * (3 - len(compiler.version))
        lines.append("Compiler: " + compiler.display_name)
        lines.append("Version: " + ".".join(map(str, version[:3])))
    lines.append(cxx_standard_name(macros.get("__cplusplus")))
    lines.append(build_mode_description(defines))
    for name, bits in type_sizes(macros):
        lines.append("Size of " + name + ": " + str(bits) + " bits")
    lines.append("")
    lines.append("target_compile_definitions:")
    lines.append("Project Name: " + project_name)
    lines.append("Project Version: " + project_version)
    lines.append("ONE_ = " + _define_value(defines, "ONE_"))
    lines.append("TWO = " + _define_value(defines, "TWO_"))
    lines.append("THREE = " + _define_value(defines, "THREE_"))
    lines.append("")
    lines.append("set_source_files_properties:")
    lines.append("main.cpp PROPERTIES ")
    for name in ("MAIN_FILE_", "MSG1", "MSG2"):
        lines.append(name + "=\"" + _define_value(defines, name) + "\" ")
    return lines


def print_diagnostics(config: DepcacheConfig) -> None:
    from . import __version__
    compiler = get_compiler_info(os.getenv("CXX", "c++"), config=config)
    defines: "typing.OrderedDict[str, typing.Optional[str]]" = OrderedDict()
    # CMake adds -DNDEBUG to all non-debug build types
    if config.build_type.is_release:
        defines["NDEBUG"] = None
    defines.update(parse_defines(config.defines))
    flags = ["-D" + k if v is None else "-D" + k + "=" + v for k, v in defines.items()]
    macros = compiler.get_predefined_macros(*flags) if compiler.compiler != "unknown compiler" else {}
    for line in diagnostics_lines(compiler, macros, defines, project_name="depcache", project_version=__version__):
        print(line)
