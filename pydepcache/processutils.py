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
import contextlib
import functools
import os
import re
import shlex
import shutil
import signal
import subprocess
import sys
import typing
from pathlib import Path
from subprocess import CompletedProcess
from typing import Optional, Union

from .colour import AnsiColour, coloured
from .utils import ConfigBase, fatal_error, warning_message

__all__ = ["CompilerInfo", "commandline_to_str", "get_compiler_info", "get_program_version", "print_command",
           "run_and_kill_children_on_exit", "run_command", "set_env"]


def commandline_to_str(args: "typing.Iterable[typing.Any]") -> str:
    return " ".join(shlex.quote(str(arg)) for arg in args)


@contextlib.contextmanager
def set_env(*, print_verbose_only=True, config: ConfigBase, **environ) -> "typing.Iterator[None]":
    """
    Overrides environment variables inside the with block and restores the previous values afterwards.

    >>> with set_env(LC_ALL="C", config=cfg):
    ...   os.environ["LC_ALL"]
    'C'
    """
    saved: "dict[str, Optional[str]]" = {}
    for name, value in environ.items():
        print_command("export", name + "=" + str(value), print_verbose_only=print_verbose_only, config=config)
        saved[name] = os.environ.get(name)
        os.environ[name] = str(value)
    try:
        yield
    finally:
        for name, old_value in saved.items():
            if old_value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = old_value


def print_command(*args, cwd=None, env: "Optional[typing.Mapping[str, typing.Any]]" = None, output_file=None,
                  colour=AnsiColour.yellow, print_verbose_only=False, config: ConfigBase, **kwargs) -> None:
    """Prints a command as a line that could be pasted into a shell, e.g. `cd build && env V=1 make -j4`"""
    if config.quiet or (print_verbose_only and not config.verbose):
        return
    cmdline = args[0] if len(args) == 1 and isinstance(args[0], (list, tuple)) else args
    parts = []
    if cwd:
        parts.append("cd " + shlex.quote(str(cwd)) + " &&")
    # variables that already have this value in the environment are not interesting
    changed = [k + "=" + str(v) for k, v in (env or {}).items() if os.environ.get(k) != str(v)]
    if changed:
        parts.append("env " + coloured(AnsiColour.cyan, commandline_to_str(changed)) + colour.escape_sequence())
    parts.append(commandline_to_str(cmdline))
    if output_file:
        parts.append("> " + str(output_file))
    print(coloured(colour, " ".join(parts)), flush=True, **kwargs)


def _called_process_error(returncode: int, cmdline, *, cwd, stdout=None, stderr=None) -> subprocess.CalledProcessError:
    error = subprocess.CalledProcessError(returncode, cmdline, output=stdout, stderr=stderr)
    error.cwd = cwd
    return error


# noinspection PyShadowingBuiltins
def run_command(*args, capture_output=False, capture_error=False, input: "Optional[Union[str, bytes]]" = None,
                timeout=None, print_verbose_only=False, run_in_pretend_mode=False, raise_in_pretend_mode=False,
                no_print=False, allow_unexpected_returncode=False, config: ConfigBase,
                env: "Optional[typing.Mapping[str, typing.Any]]" = None, cwd=None,
                **kwargs) -> "CompletedProcess[bytes]":
    """
    Runs a command unless --pretend was passed (then it is only printed). A program that cannot be executed raises
    a CalledProcessError just like a program that exits with a non-zero status.
    """
    cmdline = list(map(str, args[0] if len(args) == 1 and isinstance(args[0], (list, tuple)) else args))
    assert "_ARGCOMPLETE" not in os.environ, "Should not execute any programs as part of bash completion!"
    if not no_print:
        print_command(cmdline, cwd=cwd, env=env, print_verbose_only=print_verbose_only, config=config)
    if config.pretend and not run_in_pretend_mode:
        return CompletedProcess(cmdline, 0, b"", b"")
    if capture_output:
        kwargs["stdout"] = subprocess.PIPE
    elif config.quiet:
        kwargs.setdefault("stdout", subprocess.DEVNULL)
    if capture_error:
        kwargs["stderr"] = subprocess.PIPE
    if isinstance(input, str):
        input = input.encode("utf-8")
    if env is not None:
        kwargs["env"] = {**os.environ, **{k: str(v) for k, v in env.items()}}
    cwd = str(cwd) if cwd is not None else None
    try:
        result = subprocess.run(cmdline, input=input, timeout=timeout, cwd=cwd, **kwargs)
    except (PermissionError, FileNotFoundError) as e:
        raise _called_process_error(e.errno, cmdline, cwd=cwd, stderr=str(e).encode("utf-8")) from e
    if result.returncode != 0 and not allow_unexpected_returncode:
        if config.pretend and not raise_in_pretend_mode:
            fatal_error("Command `", commandline_to_str(cmdline), "` exited with status ", result.returncode,
                        sep="", pretend=True)
        else:
            raise _called_process_error(result.returncode, cmdline, cwd=cwd, stdout=result.stdout,
                                        stderr=result.stderr)
    return result


class CompilerInfo:
    _display_names = {"gcc": "GCC", "clang": "Clang", "apple-clang": "AppleClang"}

    def __init__(self, path: Path, compiler: str, version: "tuple[int, ...]", version_str: str, default_target: str,
                 *, config: Optional[ConfigBase]):
        assert compiler == "unknown compiler" or compiler in self._display_names, "unknown type: " + compiler
        self.path = path
        self.compiler = compiler
        self.version = version
        self.version_str = version_str
        self.default_target = default_target
        self.config = config
        self._macros_by_flags: "dict[tuple[str, ...], dict[str, str]]" = {}

    @property
    def display_name(self) -> str:
        return self._display_names.get(self.compiler, "Unknown compiler")

    def get_predefined_macros(self, *flags: str) -> "dict[str, str]":
        """The macros that are defined when preprocessing an empty C++ file with flags"""
        if flags not in self._macros_by_flags:
            if not self.path.exists():
                return {}
            assert self.config is not None
            output = run_command(self.path, "-x", "c++", *flags, "-dM", "-E", "-", input=b"", capture_output=True,
                                 print_verbose_only=True, run_in_pretend_mode=True, allow_unexpected_returncode=True,
                                 config=self.config).stdout
            self._macros_by_flags[flags] = parse_predefined_macros(output)
        return dict(self._macros_by_flags[flags])

    def __repr__(self) -> str:
        return str(self.path) + " (" + self.compiler + " " + ".".join(map(str, self.version)) + ")"


def parse_predefined_macros(output: bytes) -> "dict[str, str]":
    macros = {}
    for line in output.decode("utf-8", errors="replace").splitlines():
        if line.startswith("#define "):
            name, _, value = line[len("#define "):].strip().partition(" ")
            if name:
                macros[name] = value.strip()
    return macros


# Checked in order, "Apple clang version" also contains "clang version"
_compiler_version_patterns = (
    ("gcc", re.compile(rb"gcc version (\d+)\.(\d+)\.?(\d+)?")),
    ("apple-clang", re.compile(rb"Apple (?:clang|LLVM) version (\d+)\.(\d+)\.?(\d+)?")),
    ("clang", re.compile(rb"clang version (\d+)\.(\d+)\.?(\d+)?")),
)


def parse_compiler_version_output(stderr: bytes) -> "tuple[str, tuple[int, ...], str, str]":
    """Extracts (kind, version, version string, default target) from the output of `cc -v`"""
    target_match = re.search(rb"Target: (.+)", stderr)
    target = target_match.group(1).decode("utf-8").strip() if target_match else ""
    for kind, pattern in _compiler_version_patterns:
        match = pattern.search(stderr)
        if match:
            version = tuple(int(component) for component in match.groups() if component is not None)
            return kind, version, match.group(0).decode("utf-8"), target
    return "unknown compiler", (0, 0, 0), "unknown version", target


_compiler_info_cache: "dict[Path, CompilerInfo]" = {}


def get_compiler_info(compiler: "Union[str, Path]", *, config: ConfigBase) -> CompilerInfo:
    path = Path(compiler)
    if not path.is_absolute():
        path = Path(shutil.which(str(compiler)) or compiler)
    if path in _compiler_info_cache:
        return _compiler_info_cache[path]
    if not path.is_absolute() or not path.exists():
        return CompilerInfo(path, "unknown compiler", (0, 0, 0), "unknown version", "", config=config)
    # clang prints the -v output to stderr just like gcc, force English messages for the version regexes
    with set_env(LC_ALL="C", config=config):
        try:
            output = run_command(path, "-v", capture_output=True, capture_error=True, print_verbose_only=True,
                                 run_in_pretend_mode=True, raise_in_pretend_mode=True, stdin=subprocess.DEVNULL,
                                 config=config).stderr
            succeeded = True
        except subprocess.CalledProcessError as e:
            output = e.stderr or b"FAILED: " + str(e).encode("utf-8")
            succeeded = False
    kind, version, version_str, target = parse_compiler_version_output(output)
    if kind == "unknown compiler":
        warning_message("Could not detect compiler info for", path, "- output was", output)
    elif config.verbose:
        print(path, "is", kind, "version", version, "with default target", target)
    info = CompilerInfo(path, kind, version, version_str, target, config=config)
    if succeeded:
        _compiler_info_cache[path] = info
    return info


@functools.lru_cache(maxsize=20)
def get_program_version(program: Path, *, program_name: Optional[bytes] = None,
                        config: ConfigBase) -> "tuple[int, ...]":
    """Runs `program --version` and parses output such as "cmake version 3.28.3" into (3, 28, 3)"""
    if program_name is None:
        program_name = program.name.encode("utf-8")
    try:
        output = run_command(program, "--version", capture_output=True, stderr=subprocess.STDOUT,
                             stdin=subprocess.DEVNULL, run_in_pretend_mode=True, raise_in_pretend_mode=True,
                             print_verbose_only=True, config=config).stdout
    except subprocess.CalledProcessError as e:
        fatal_error("Failed to determine version for", program, ":", e, pretend=config.pretend)
        return 0, 0, 0
    match = re.search(re.escape(program_name) + rb" version\s+(\d+)\.(\d+)\.?(\d+)?", output)
    if not match:
        fatal_error("Could not parse the version of", program, "from", output, pretend=config.pretend)
        return 0, 0, 0
    return tuple(int(component) for component in match.groups() if component is not None)


def run_and_kill_children_on_exit(fn: "typing.Callable[[], typing.Any]") -> None:
    """Runs fn and terminates all child processes if it is interrupted or a command fails"""
    if os.getpgrp() != os.getpid():
        # our own process group so that killpg() below does not hit the parent shell
        os.setpgrp()
    try:
        fn()
    except KeyboardInterrupt:
        _terminate_process_group()
        sys.exit("Exiting due to Ctrl+C")
    except subprocess.CalledProcessError as err:
        _terminate_process_group()
        if sys.gettrace() is not None:
            raise
        details = []
        if getattr(err, "cwd", None):
            details += [". Working directory was ", err.cwd]
        if err.stderr:
            stderr = err.stderr.decode("utf-8", errors="replace") if isinstance(err.stderr, bytes) else err.stderr
            details += ["\nStandard error was:\n", stderr]
        fatal_error("Command `", commandline_to_str(err.cmd), "` failed with non-zero exit code ", err.returncode,
                    *details, sep="", exit_code=err.returncode, pretend=False)


def _terminate_process_group() -> None:
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    os.killpg(0, signal.SIGTERM)
