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
import collections.abc
import os
import shlex
import typing
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..utils import ConfigBase, fatal_error, warning_message

if typing.TYPE_CHECKING:
    import argparse

__all__ = ["ComputedDefaultValue", "ConfigLoaderBase", "ConfigOptionBase", "DefaultValueOnlyConfigOption",
           "LoadedValue"]

T = typing.TypeVar("T")


class ComputedDefaultValue(typing.Generic[T]):
    """
    A default value that is only known once the configuration has been loaded, e.g. the per-target --<target>/clean
    option that defaults to the global --clean. as_string is what --help shows as the default.
    """

    def __init__(self, function: "Callable[[ConfigBase, Any], T]", as_string: "Union[str, Callable[[Any], str]]"):
        self.function = function
        self.as_string = as_string

    def __call__(self, config: ConfigBase, obj: Any) -> T:
        return self.function(config, obj)

    def __repr__(self) -> str:
        return "{ComputedDefault:" + str(self.as_string) + "}"


class LoadedValue:
    """A value from the command line or a config file. source is the file it was read from (None for argv)"""

    def __init__(self, value: Any, source: "Optional[Path]" = None) -> None:
        self.value = value
        self.source = source

    def __eq__(self, other) -> bool:
        return self.value == (other.value if isinstance(other, LoadedValue) else other)

    def __repr__(self) -> str:
        return repr(self.value)


_NOT_LOADED = object()


class ConfigOptionBase(typing.Generic[T]):
    """
    A descriptor that loads its value on first access. Subclasses decide where the value comes from by overriding
    lookup(), the default is used if that returns None.
    """

    def __init__(self, name: str, shortname: Optional[str], default, value_type: "Union[type[T], Callable[[Any], T]]",
                 _owning_class: "Optional[type]" = None, *, _loader: "Optional[ConfigLoaderBase]" = None) -> None:
        self.name = name
        self.shortname = shortname
        self.default = default
        self.value_type = value_type
        # None for options of the global configuration, otherwise the project class that added it
        self._owning_class = _owning_class
        self._loader = _loader
        self._value: Any = _NOT_LOADED
        self._from_default = False

    @property
    def full_option_name(self) -> str:
        return self.name

    @property
    def is_default_value(self) -> bool:
        assert self._value is not _NOT_LOADED, "Option " + self.name + " has not been loaded yet"
        return self._from_default

    def lookup(self, config: ConfigBase) -> "Optional[LoadedValue]":
        return None

    def forget_value(self) -> None:
        self._value = _NOT_LOADED
        self._from_default = False

    def __get__(self, instance, owner) -> T:
        assert instance is not None or not callable(self.default), \
            "Option " + self.name + " has a computed default and can only be read from an instance"
        if self._value is _NOT_LOADED:
            assert self._loader is not None
            # noinspection PyProtectedMember
            self._value = self._load(self._loader._depcache_config, instance)
        return self._value

    def _load(self, config: ConfigBase, instance) -> T:
        loaded = self.lookup(config)
        self._from_default = loaded is None
        if loaded is None:
            default = self.default(config, instance) if callable(self.default) else self.default
            if default is None:
                return typing.cast(T, None)
            loaded = LoadedValue(default)
        try:
            return self._convert(loaded)
        except ValueError as e:
            fatal_error("Invalid value for option '", self.full_option_name, "': could not convert '", loaded.value,
                        "': ", e, sep="", pretend=False)
            raise

    def _convert(self, loaded: LoadedValue) -> T:
        value = loaded.value
        value_type = self.value_type
        is_class = isinstance(value_type, type)
        if isinstance(value, str) and is_class and value_type is not str and \
                issubclass(value_type, collections.abc.Sequence):
            warning_message("Config option ", self.full_option_name, " (", value, ") should be a list, got a string",
                            " instead -> assuming the correct value is ", shlex.split(value), sep="")
            value = shlex.split(value)
        if is_class and issubclass(value_type, Path):
            path = os.path.expanduser(os.path.expandvars(str(value)))
            # config file paths are relative to the file, command line paths to the working directory
            base = loaded.source.parent if loaded.source is not None else Path.cwd()
            return typing.cast(T, Path(os.path.normpath(str(base / path))))
        return value_type(value)

    def __repr__(self) -> str:
        return "<" + type(self).__name__ + "(" + self.name + ") type=" + str(self.value_type) + ">"


class DefaultValueOnlyConfigOption(ConfigOptionBase[T]):
    # noinspection PyUnusedLocal
    def __init__(self, name, shortname, default, value_type, _owning_class=None, *, _loader, **kwargs) -> None:
        # argparse-only arguments such as help= are ignored
        super().__init__(name, shortname, default, value_type, _owning_class, _loader=_loader)


class ConfigLoaderBase(ABC):
    """Creates the config option descriptors and loads their values from the command line and/or a JSON file"""
    # The configuration object that options are resolved against, set by DepcacheConfig
    _depcache_config: ConfigBase

    is_completing_arguments: bool = "_ARGCOMPLETE" in os.environ
    is_running_unit_tests: bool = False

    def __init__(self, *, option_cls: "type[ConfigOptionBase]",
                 command_line_only_options_cls: "type[ConfigOptionBase]") -> None:
        self._option_cls = option_cls
        self._command_line_only_option_cls = command_line_only_options_cls
        self.options: "dict[str, ConfigOptionBase]" = {}
        self.unknown_config_option_is_error = False
        self.action_group = self.add_argument_group("Actions to be performed")
        self.dependencies_group = self.add_argument_group("Selecting which dependencies are built")
        self.path_group = self.add_argument_group("Configuration of default paths")
        self.build_group = self.add_argument_group("Adjust how the vendored build systems are invoked")

    # noinspection PyShadowingBuiltins
    def add_option(self, name: str, shortname: Optional[str] = None, *,
                   type: "Union[type[T], Callable[[str], T]]" = str,
                   default: "Union[ComputedDefaultValue[T], Callable[[ConfigBase, Any], T], T, None]" = None,
                   _owning_class: "Optional[type]" = None, option_cls: "Optional[type[ConfigOptionBase]]" = None,
                   **kwargs) -> T:
        assert name not in self.options, "Option " + name + " registered twice"
        option = (option_cls or self._option_cls)(name, shortname, default, type, _owning_class, _loader=self,
                                                  **kwargs)
        self.options[name] = option
        return typing.cast(T, option)

    def add_bool_option(self, name: str, shortname: Optional[str] = None, default=False, **kwargs) -> bool:
        return self.add_option(name, shortname, default=default, type=bool, **kwargs)

    def add_path_option(self, name: str, *, default: "Union[ComputedDefaultValue[Path], Path]",
                        shortname: Optional[str] = None, **kwargs) -> Path:
        return self.add_option(name, shortname, type=Path, default=default, **kwargs)

    # noinspection PyShadowingBuiltins
    def add_commandline_only_option(self, *args, type: "Callable[[str], T]" = str, **kwargs) -> T:
        """Adds an option that is never read from the config file"""
        return self.add_option(*args, type=type, option_cls=self._command_line_only_option_cls, **kwargs)

    def add_commandline_only_bool_option(self, *args, **kwargs) -> bool:
        # a plain --flag without a --no-flag counterpart
        return self.add_option(*args, type=bool, default=False, negatable=False,
                               option_cls=self._command_line_only_option_cls, **kwargs)

    def reset(self) -> None:
        """Forgets all loaded values so that the next access loads them again (used by the tests)"""
        for option in self.options.values():
            option.forget_value()

    def finalize_options(self, available_targets: "list[str]", **kwargs) -> None:
        pass

    def debug_msg(self, *args, **kwargs) -> None:
        pass

    @abstractmethod
    def load(self) -> None: ...

    @abstractmethod
    def targets(self) -> "list[str]": ...

    # noinspection PyProtectedMember
    @abstractmethod
    def add_argument_group(self, description: str) -> "Optional[argparse._ArgumentGroup]": ...
