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
import builtins
import difflib
import json
import os
import shutil
import sys
import typing
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import argcomplete

from .config_loader_base import (
    ComputedDefaultValue,
    ConfigLoaderBase,
    ConfigOptionBase,
    DefaultValueOnlyConfigOption,
    LoadedValue,
)
from ..colour import AnsiColour, coloured
from ..utils import ConfigBase, error_message, status_update, warning_message

__all__ = ["CommandLineConfigLoader", "CommandLineConfigOption", "ComputedDefaultValue", "ConfigJsonEncoder",
           "ConfigLoaderBase", "ConfigOptionBase", "DefaultValueOnlyConfigLoader", "JsonAndCommandLineConfigLoader",
           "JsonAndCommandLineConfigOption"]

EnumTy = typing.TypeVar("EnumTy", bound=Enum)


class EnumArgparseType(typing.Generic[EnumTy]):
    """Accepts an enum member, its value ("RelWithDebInfo") or its name in any case with - for _ ("rel-with-...")"""

    def __init__(self, enum_class: "type[EnumTy]") -> None:
        for member in enum_class:
            if not member.name.replace("_", "").isalnum() or member.name.upper() != member.name:
                raise RuntimeError("Enum member " + enum_class.__name__ + "." + member.name +
                                   " must be an upper case identifier")
        self.enum_class = enum_class

    def __call__(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self(v) for v in value]
        if isinstance(value, self.enum_class):
            return value
        for member in self.enum_class:
            if member.value == value:
                return member
        try:
            return self.enum_class[str(value).upper().replace("-", "_")]
        except KeyError:
            raise argparse.ArgumentTypeError(self.enum_class.__name__ + ": use one of {" +
                                             ", ".join(self.choices()) + "}") from None

    def choices(self) -> "list[str]":
        return [member.name.lower() for member in self.enum_class]

    def __repr__(self) -> str:
        return self.enum_class.__name__ + "(" + ", ".join(self.choices()) + ")"


class ConfigJsonEncoder(json.JSONEncoder):
    """Used for --dump-configuration: writes paths as strings and enums by value"""

    def default(self, o) -> Any:
        if isinstance(o, Path):
            return str(o)
        if isinstance(o, LoadedValue):
            return o.value
        if isinstance(o, Enum):
            return o.value if isinstance(o.value, str) else o.name.lower().replace("_", "-")
        return super().default(o)


class _CompletionHelpFormatter(argparse.HelpFormatter):
    # formatting the help of every target option makes tab-completion noticeably slow
    def format_help(self) -> str:
        return ""


class BooleanNegatableAction(argparse.Action):
    """Adds --no-<option> for every --<option>, per-target options get the "no-" after the slash (--dlib/no-foo)"""

    # noinspection PyShadowingBuiltins
    def __init__(self, option_strings: "list[str]", dest, default=None, required=False, help=None) -> None:
        self.negated_option_strings = []
        for opt in option_strings:
            if opt.startswith("--"):
                target, slash, name = opt[2:].rpartition("/")
                self.negated_option_strings.append("--" + target + slash + "no-" + name)
        super().__init__(option_strings=[*option_strings, *self.negated_option_strings], dest=dest, nargs=0,
                         default=default, required=required, help=help)

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        setattr(namespace, self.dest, option_string not in self.negated_option_strings)

    def format_usage(self) -> str:
        return " | ".join(self.option_strings)


class CommandLineConfigOption(ConfigOptionBase):
    _loader: "CommandLineConfigLoader"

    def __init__(self, name: str, shortname: Optional[str], default, value_type, _owning_class=None, *,
                 _loader: "CommandLineConfigLoader", help_hidden=False, group=None, negatable=True, **kwargs) -> None:
        super().__init__(name, shortname, default, value_type, _owning_class, _loader=_loader)
        if help_hidden and not _loader.show_all_help:
            kwargs["help"] = argparse.SUPPRESS
        if value_type is bool:
            kwargs["action"] = BooleanNegatableAction if negatable else "store_true"
        names = ["--" + name] + (["-" + shortname] if shortname else [])
        # argparse must not fill in defaults, otherwise command line values could not be told apart from them
        self.action = (group or _loader._parser).add_argument(*names, dest=name, default=None, **kwargs)
        default_str = self._default_as_string(default, _owning_class)
        if default_str and self.action.help not in (None, argparse.SUPPRESS):
            self.action.help += " (default: '" + default_str + "')"

    @staticmethod
    def _default_as_string(default, owning_class) -> str:
        if isinstance(default, ComputedDefaultValue):
            return default.as_string(owning_class) if callable(default.as_string) else default.as_string
        if isinstance(default, Enum):
            return default.name.lower()
        if default is None or callable(default):
            return ""
        return str(default)

    def from_command_line(self) -> "Optional[LoadedValue]":
        # noinspection PyProtectedMember
        parsed = self._loader._parsed_args
        assert parsed is not None, "load() must be called before reading options"
        value = getattr(parsed, self.action.dest)
        return None if value is None else LoadedValue(value)

    def lookup(self, config: ConfigBase) -> "Optional[LoadedValue]":
        return self.from_command_line()


class JsonAndCommandLineConfigOption(CommandLineConfigOption):
    def lookup(self, config: ConfigBase) -> "Optional[LoadedValue]":
        # the command line wins over the config file
        result = self.from_command_line()
        if result is None:
            # noinspection PyProtectedMember
            result = self._loader._json.get(self.full_option_name)
            if result is not None and config.verbose:
                status_update("Using the value", result.value, "for", self.full_option_name, "from", result.source,
                              file=sys.stderr)
        return result


class DefaultValueOnlyConfigLoader(ConfigLoaderBase):
    def __init__(self) -> None:
        super().__init__(option_cls=DefaultValueOnlyConfigOption,
                         command_line_only_options_cls=DefaultValueOnlyConfigOption)

    def load(self) -> None:
        pass

    def targets(self) -> "list[str]":
        return []

    def add_argument_group(self, description: str) -> None:
        return None


class CommandLineConfigLoader(ConfigLoaderBase):
    _parsed_args: "Optional[argparse.Namespace]" = None
    show_all_help: bool = "--help-all" in sys.argv or "--help-hidden" in sys.argv

    def __init__(self, argparser_class: "type[argparse.ArgumentParser]" = argparse.ArgumentParser, *,
                 option_cls=CommandLineConfigOption, command_line_only_options_cls=CommandLineConfigOption) -> None:
        if self.is_completing_arguments or self.is_running_unit_tests:
            self._parser = argparser_class(formatter_class=_CompletionHelpFormatter)
        else:
            width = shutil.get_terminal_size(fallback=(120, 24)).columns
            self._parser = argparser_class(formatter_class=lambda prog: argparse.HelpFormatter(prog, width=width))
        super().__init__(option_cls=option_cls, command_line_only_options_cls=command_line_only_options_cls)
        self._parser.add_argument("--help-all", "--help-hidden", action="help",
                                  help="Show all help options, including the target-specific ones.")

    # noinspection PyShadowingBuiltins
    def add_option(self, name: str, shortname: Optional[str] = None, *, type=str, **kwargs):
        if isinstance(type, builtins.type) and issubclass(type, Enum):
            type = EnumArgparseType(type)
            # argparse would compare the converted member against the choices, so only show them
            kwargs.setdefault("metavar", "{" + ",".join(type.choices()) + "}")
        return super().add_option(name, shortname, type=type, **kwargs)

    def debug_msg(self, *args, **kwargs) -> None:
        if self._parsed_args is not None and getattr(self._parsed_args, "verbose", False):
            print(coloured(AnsiColour.cyan, *args), file=sys.stderr, **kwargs)

    def add_argument_group(self, description: str):
        return self._parser.add_argument_group(description)

    def targets(self) -> "list[str]":
        assert self._parsed_args is not None
        return self._parsed_args.targets

    def load(self) -> None:
        if self.is_completing_arguments:
            # exits after printing the completions
            argcomplete.autocomplete(self._parser, always_complete_options=None, print_suppressed=True)
        # options may appear after the targets: `depcache.py gmp --skip-update duckdb`
        self._parsed_args, remaining = self._parser.parse_known_args()
        for arg in remaining:
            if arg.startswith("-"):
                message = "unknown argument '" + arg + "'"
                if not self.is_running_unit_tests:
                    known = list(self._parser._option_string_actions)
                    matches = difflib.get_close_matches(arg, known)
                    if matches:
                        message += ". Did you mean " + " or ".join(matches) + "?"
                self._parser.error(message)
        self._parsed_args.targets += remaining


def _flatten_config(obj: "dict[str, Any]", source: Path, prefix="") -> "dict[str, LoadedValue]":
    # {"dlib": {"with-models": true}} is the same as {"dlib/with-models": true}
    result: "dict[str, LoadedValue]" = {}
    for key, value in obj.items():
        if isinstance(value, dict):
            result.update(_flatten_config(value, source, prefix + key + "/"))
        else:
            result[prefix + key] = LoadedValue(value, source)
    return result


def _reject_duplicate_keys(pairs: "list[tuple[str, Any]]") -> "dict[str, Any]":
    result = {}
    for key, value in pairs:
        if key in result:
            raise SyntaxError("duplicate key: " + repr(key))
        result[key] = value
    return result


class JsonAndCommandLineConfigLoader(CommandLineConfigLoader):
    """
    Values from the command line override those from the JSON config file, which override the defaults.
    The file may contain lines starting with # or // and can pull in another file with "#include": "other.json".
    """

    def __init__(self, argparser_class: "type[argparse.ArgumentParser]" = argparse.ArgumentParser, *,
                 option_cls=JsonAndCommandLineConfigOption, command_line_only_options_cls=CommandLineConfigOption):
        super().__init__(argparser_class, option_cls=option_cls,
                         command_line_only_options_cls=command_line_only_options_cls)
        self._json: "dict[str, LoadedValue]" = {}
        # set by the tests to bypass --config-file
        self._config_path: "Optional[Path]" = None
        config_dir = os.getenv("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
        self.default_config_path = Path(config_dir, "depcache.json")
        self.path_group.add_argument("--config-file", metavar="FILE", default=None,
                                     help="The JSON file that provides the default settings (default: '" +
                                          str(self.default_config_path) + "')")

    def _read_json_file(self, path: Path) -> "dict[str, LoadedValue]":
        lines = [line for line in path.read_text(encoding="utf-8").splitlines()
                 if not line.lstrip().startswith(("#", "//"))]
        try:
            raw = json.loads("\n".join(lines), object_pairs_hook=_reject_duplicate_keys) if any(lines) else {}
        except (ValueError, SyntaxError) as e:
            error_message("Could not load config file ", path, ": ", e, sep="")
            raise
        include = raw.pop("#include", None)
        values = _flatten_config(raw, path)
        self.debug_msg("Parsed", path, "as", json.dumps(values, cls=ConfigJsonEncoder))
        if include is not None:
            included_path = path.parent / include
            self.debug_msg("Merging JSON config file", included_path)
            # settings in the including file take precedence
            values = {**self._read_json_file(included_path), **values}
        return values

    def _load_json_config_file(self) -> None:
        self._json = {}
        explicit = self._parsed_args is not None and self._parsed_args.config_file is not None
        if self._config_path is None:
            path = self._parsed_args.config_file if explicit else self.default_config_path
            self._config_path = Path(os.path.expanduser(path)).absolute()
        if self._config_path.exists():
            self._json = self._read_json_file(self._config_path)
        elif explicit:
            error_message("Configuration file", self._config_path, "does not exist.")
            raise FileNotFoundError(self._config_path)
        else:
            self.debug_msg("Configuration file", self._config_path, "does not exist, using only command line values.")

    def _validate_config_file(self) -> None:
        for key in self._json:
            option = self.options.get(key)
            if option is None:
                warning_message("Unknown config option '", key, "' in ", self._json[key].source, sep="")
                if self.unknown_config_option_is_error:
                    raise ValueError("Unknown config option '" + key + "'")
            elif not isinstance(option, JsonAndCommandLineConfigOption):
                error_message("Option '" + key + "' cannot be used in the config file")
                raise ValueError("Option '" + key + "' cannot be used in the config file")

    def load(self) -> None:
        super().load()
        self._load_json_config_file()
        self._validate_config_file()

    def reset(self) -> None:
        super().reset()
        self._load_json_config_file()
