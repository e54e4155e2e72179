import ctypes
from pathlib import Path

import pytest

import pydepcache.diagnostics
from pydepcache import __version__
from pydepcache.config.depconfig import BuildType
from pydepcache.diagnostics import (build_mode_description, cxx_standard_name, diagnostics_lines, parse_defines,
                                    print_diagnostics, type_sizes)
from pydepcache.processutils import CompilerInfo, parse_compiler_version_output, parse_predefined_macros
from .setup_mock_config import setup_mock_config

GCC_VERSION_OUTPUT = b"""Using built-in specs.
COLLECT_GCC=gcc
Target: x86_64-linux-gnu
Thread model: posix
Supported LTO compression algorithms: zlib zstd
gcc version 13.2.0 (Ubuntu 13.2.0-23ubuntu4)
"""

CLANG_VERSION_OUTPUT = b"""Ubuntu clang version 18.1.3 (1ubuntu1)
Target: x86_64-pc-linux-gnu
Thread model: posix
InstalledDir: /usr/bin
Selected GCC installation: /usr/bin/../lib/gcc/x86_64-linux-gnu/13
"""

APPLE_CLANG_VERSION_OUTPUT = b"""Apple clang version 15.0.0 (clang-1500.3.9.4)
Target: arm64-apple-darwin23.4.0
Thread model: posix
InstalledDir: /Library/Developer/CommandLineTools/usr/bin
"""


@pytest.mark.parametrize("output,expected", [
    pytest.param(GCC_VERSION_OUTPUT, ("gcc", (13, 2, 0), "gcc version 13.2.0", "x86_64-linux-gnu"), id="gcc"),
    pytest.param(CLANG_VERSION_OUTPUT, ("clang", (18, 1, 3), "clang version 18.1.3", "x86_64-pc-linux-gnu"),
                 id="clang"),
    pytest.param(APPLE_CLANG_VERSION_OUTPUT,
                 ("apple-clang", (15, 0, 0), "Apple clang version 15.0.0", "arm64-apple-darwin23.4.0"),
                 id="apple-clang"),
    pytest.param(b"bash: c++: command not found", ("unknown compiler", (0, 0, 0), "unknown version", ""),
                 id="unknown"),
])
def test_parse_compiler_version_output(output: bytes, expected):
    assert parse_compiler_version_output(output) == expected


def test_parse_predefined_macros():
    output = b"#define __cplusplus 201703L\n#define __SIZEOF_INT__ 4\n#define __GNUC__ 13\n#define __unix 1\n" \
             b"#define EMPTY\nint x;\n"
    assert parse_predefined_macros(output) == {"__cplusplus": "201703L", "__SIZEOF_INT__": "4", "__GNUC__": "13",
                                               "__unix": "1", "EMPTY": ""}


@pytest.mark.parametrize("value,expected", [
    ("199711L", "C++98/03"),
    ("201103L", "C++11"),
    ("201402L", "C++14"),
    ("201703L", "C++17"),
    ("202002L", "C++20"),
    ("202302L", "Newer C++ version or unknown"),
    ("abc", "Newer C++ version or unknown"),
    (None, "Newer C++ version or unknown"),
])
def test_cxx_standard_name(value, expected):
    assert cxx_standard_name(value) == expected


def test_build_mode_description():
    assert build_mode_description({}) == "Debug mode (NDEBUG is not defined)"
    assert build_mode_description({"NDEBUG": None}) == "Release mode (NDEBUG is defined)"
    # _DEBUG takes precedence
    assert build_mode_description({"NDEBUG": None, "_DEBUG": "1"}) == "Debug mode (_DEBUG is defined)"


def test_parse_defines():
    defines = parse_defines(["ONE_", "TWO_=2", "MSG1=hello world", "EMPTY="])
    assert list(defines.items()) == [("ONE_", None), ("TWO_", "2"), ("MSG1", "hello world"), ("EMPTY", "")]


def test_type_sizes():
    macros = {"__SIZEOF_POINTER__": "4", "__SIZEOF_INT__": "4", "__SIZEOF_LONG__": "4", "__SIZEOF_FLOAT__": "4",
              "__SIZEOF_DOUBLE__": "8"}
    assert type_sizes(macros) == [("char *", 32), ("int", 32), ("long", 32), ("float", 32), ("double", 64)]
    # Without compiler information the sizes of the host are used
    assert type_sizes({}) == [("char *", ctypes.sizeof(ctypes.c_void_p) * 8), ("int", ctypes.sizeof(ctypes.c_int) * 8),
                              ("long", ctypes.sizeof(ctypes.c_long) * 8), ("float", 32), ("double", 64)]


def _fake_compiler(kind="gcc", version=(13, 2)) -> CompilerInfo:
    return CompilerInfo(Path("/usr/bin/fake-c++"), kind, version, "fake version", "x86_64-linux-gnu", config=None)


LP64_MACROS = {"__cplusplus": "201703L", "__SIZEOF_POINTER__": "8", "__SIZEOF_INT__": "4", "__SIZEOF_LONG__": "8",
               "__SIZEOF_FLOAT__": "4", "__SIZEOF_DOUBLE__": "8"}


def test_diagnostics_lines():
    defines = parse_defines(["NDEBUG", "ONE_", "TWO_=2", "MSG1=hello"])
    lines = diagnostics_lines(_fake_compiler(), LP64_MACROS, defines, project_name="depcache", project_version="1.0.0")
    assert lines == [
        "Hello, World!",
        "Information from CMake:",
        "Project Name is depcache and Project Version is 1.0.0",
        "Compiler: GCC",
        "Version: 13.2.0",
        "C++17",
        "Release mode (NDEBUG is defined)",
        "Size of char *: 64 bits",
        "Size of int: 32 bits",
        "Size of long: 64 bits",
        "Size of float: 32 bits",
        "Size of double: 64 bits",
        "",
        "target_compile_definitions:",
        "Project Name: depcache",
        "Project Version: 1.0.0",
        "ONE_ = 1",
        "TWO = 2",
        "THREE = (not defined)",
        "",
        "set_source_files_properties:",
        "main.cpp PROPERTIES ",
        "MAIN_FILE_=\"(not defined)\" ",
        "MSG1=\"hello\" ",
        "MSG2=\"(not defined)\" ",
    ]


def test_diagnostics_unknown_compiler():
    lines = diagnostics_lines(_fake_compiler("unknown compiler", (0, 0, 0)), {}, {}, project_name="depcache",
                              project_version="1.0.0")
    assert lines[3] == "Unknown compiler"
    assert lines[4] == "Newer C++ version or unknown"
    assert lines[5] == "Debug mode (NDEBUG is not defined)"
    assert not any(line.startswith("Version:") for line in lines)


@pytest.mark.parametrize("build_type,expected_flags,expected_mode", [
    (BuildType.RELEASE, ("-DNDEBUG", "-DONE_", "-DMSG2=bye"), "Release mode (NDEBUG is defined)"),
    (BuildType.DEBUG, ("-DONE_", "-DMSG2=bye"), "Debug mode (NDEBUG is not defined)"),
])
def test_print_diagnostics(tmp_path, monkeypatch, capsys, build_type, expected_flags, expected_mode):
    config = setup_mock_config(tmp_path)
    config.build_type = build_type
    config.defines = ["ONE_", "MSG2=bye"]
    compiler = _fake_compiler("clang", (18, 1, 3))
    requested_flags = []

    def get_predefined_macros(*flags):
        requested_flags.append(flags)
        return dict(LP64_MACROS, __cplusplus="202002L")

    monkeypatch.setattr(compiler, "get_predefined_macros", get_predefined_macros)
    monkeypatch.setattr(pydepcache.diagnostics, "get_compiler_info", lambda path, config: compiler)
    print_diagnostics(config)
    assert requested_flags == [expected_flags]
    output = capsys.readouterr().out.splitlines()
    assert output[2] == "Project Name is depcache and Project Version is " + __version__
    assert output[3:7] == ["Compiler: Clang", "Version: 18.1.3", "C++20", expected_mode]
    assert "ONE_ = 1" in output
    assert "MSG2=\"bye\" " in output
