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
import shutil
import socket
import sys
import typing

from .colour import AnsiColour, coloured

__all__ = ["AnsiColour", "ConfigBase", "DEFAULT_MAKE_JOBS", "InstallInstructions", "OSInfo", "add_error_context",
           "coloured", "error_message", "fatal_error", "have_working_internet_connection", "status_update",
           "warning_message"]

# Every build step is run with -j4 unless overridden with --make-jobs
DEFAULT_MAKE_JOBS = 4


class ConfigBase:
    """The settings that the output and subprocess helpers need"""
    TEST_MODE: bool = False

    def __init__(self, *, pretend: bool = False, verbose: bool = False, quiet: bool = False,
                 force: bool = False) -> None:
        self.pretend = pretend
        self.verbose = verbose
        self.quiet = quiet
        self.force = force


def _message(colour: AnsiColour, label: str, args: tuple, sep: str) -> str:
    # with sep="" the caller glues the arguments together itself, the label still needs a space
    return coloured(colour, label + (" " if sep == "" else sep) + sep.join(map(str, args)))


def status_update(*args, sep=" ", **kwargs) -> None:
    print(coloured(AnsiColour.cyan, *args, sep=sep), **kwargs)


def _print_fixit_hint(fixit_hint: "typing.Optional[str]") -> None:
    if fixit_hint:
        print(_message(AnsiColour.blue, "Possible solution:", (fixit_hint,), " "), file=sys.stderr, flush=True)


def warning_message(*args, sep=" ", fixit_hint=None) -> None:
    print(_message(AnsiColour.magenta, "Warning:", args, sep), file=sys.stderr, flush=True)
    _print_fixit_hint(fixit_hint)


# Innermost last, e.g. "(in target gmp)"
_error_context: "list[str]" = []


@contextlib.contextmanager
def add_error_context(context: str) -> "typing.Iterator[None]":
    """Prefixes errors reported inside the with block with context"""
    _error_context.append(context)
    yield
    # not popped when an exception escapes so that main() can still name the failing target
    _error_context.pop()


def _error_label(label: str) -> str:
    if not _error_context:
        return label + ":"
    # the context may contain its own colour codes, switch back to red after it
    return label + " " + _error_context[-1] + AnsiColour.red.escape_sequence() + ":"


def error_message(*args, sep=" ", fixit_hint=None) -> None:
    print(_message(AnsiColour.red, _error_label("Error"), args, sep), file=sys.stderr, flush=True)
    _print_fixit_hint(fixit_hint)


def fatal_error(*args, sep=" ", fixit_hint=None, fatal_when_pretending=False, exit_code=3, pretend: bool) -> None:
    """
    Reports an error that stops depcache. With --pretend the error is only reported (unless fatal_when_pretending
    is set) so that the remaining commands can still be printed.
    """
    exits = not pretend or fatal_when_pretending
    label = _error_label("Potential fatal error" if pretend else "Fatal error")
    print(_message(AnsiColour.red, label, args, sep), file=sys.stderr, flush=True)
    _print_fixit_hint(fixit_hint)
    if exits:
        sys.exit(exit_code)


_internet_connection_available: "typing.Optional[bool]" = None


def have_working_internet_connection(config: ConfigBase) -> bool:
    """Checked once per run by connecting to GitHub, which hosts most of the downloaded sources"""
    global _internet_connection_available
    if config.TEST_MODE:
        return True
    if _internet_connection_available is None:
        try:
            with socket.create_connection(("github.com", 443), timeout=3):
                _internet_connection_available = True
        except OSError:
            _internet_connection_available = False
    return _internet_connection_available


class InstallInstructions:
    """How to install a missing tool or library, shown as the fixit hint of a dependency error"""

    def __init__(self, message: str, depcache_target: "typing.Optional[str]" = None,
                 alternative: "typing.Optional[str]" = None) -> None:
        self.message = message
        self.depcache_target = depcache_target
        self.alternative = alternative

    def fixit_hint(self) -> str:
        parts = [self.message] if self.message else []
        if self.depcache_target:
            parts.append(("You can also try running" if parts else "Run") + " `depcache.py " + self.depcache_target +
                         "` to build it locally.")
        if self.alternative:
            assert parts, "an alternative needs a default option"
            parts.append("Alternatively " + self.alternative)
        return "\n".join(parts)


class OSInfo:
    IS_LINUX: bool = sys.platform.startswith("linux")
    IS_FREEBSD: bool = sys.platform.startswith("freebsd")
    IS_MAC: bool = sys.platform.startswith("darwin")

    @classmethod
    def package_manager(cls) -> str:
        if cls.IS_MAC:
            return "brew"
        if cls.IS_FREEBSD:
            return "pkg"
        # the distribution is identified by the package manager it ships
        for tool, name in (("apt-get", "apt"), ("dnf", "dnf")):
            if cls.IS_LINUX and shutil.which(tool):
                return name
        return "<system package manager>"

    @classmethod
    def install_instructions(cls, name: str, is_lib: bool, default: "typing.Optional[str]" = None,
                             homebrew: "typing.Optional[str]" = None, apt: "typing.Optional[str]" = None,
                             dnf: "typing.Optional[str]" = None, freebsd: "typing.Optional[str]" = None,
                             depcache_target: "typing.Optional[str]" = None,
                             alternative: "typing.Optional[str]" = None) -> InstallInstructions:
        manager = cls.package_manager()
        package = {"brew": homebrew, "pkg": freebsd, "apt": apt, "dnf": dnf}.get(manager) or default
        if package is not None:
            message = "Run `" + manager + " install " + package + "`"
        else:
            if is_lib:
                package = {"apt": "lib" + name + "-dev", "dnf": name + "-devel"}.get(manager, name)
            else:
                package = name
            message = ("Possibly running `" + manager + " install " + package +
                       "` fixes this. Note: package name may not be correct.")
        return InstallInstructions(message, depcache_target, alternative)
