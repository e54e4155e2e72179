import inspect
import sys
import tempfile
import typing

# noinspection PyUnresolvedReferences
from pathlib import Path

import pytest

from pydepcache.config.defaultconfig import DefaultDepcacheConfig
from pydepcache.config.depconfig import BuildType
from pydepcache.config.loader import ConfigLoaderBase, JsonAndCommandLineConfigOption

# noinspection PyUnresolvedReferences
from pydepcache.projects import *  # noqa: F401, F403, RUF100
from pydepcache.projects.boost import BuildBoost
from pydepcache.projects.dlib import BuildDlib
from pydepcache.projects.duckdb import BuildDuckDB
from pydepcache.projects.gmp import BuildGmp
from pydepcache.projects.simple_project import SimpleProject
from pydepcache.targets import Target, target_manager

Target.instantiating_targets_should_warn = False

T = typing.TypeVar("T", bound=SimpleProject)


def _get_target_instance(target_name: str, config, cls: "type[T]" = SimpleProject) -> T:
    result = target_manager.get_target_raw(target_name).get_or_create_project(config)
    assert isinstance(result, cls)
    return result


# noinspection PyProtectedMember
def _parse_arguments(args: "list[str]", *, config_file=Path("/this/does/not/exist"),
                     allow_unknown_options=False) -> DefaultDepcacheConfig:
    assert isinstance(args, list)
    assert all(isinstance(arg, str) for arg in args), "Invalid argv " + str(args)
    assert isinstance(ConfigLoaderBase._depcache_config, DefaultDepcacheConfig)
    target_manager.reset()
    ConfigLoaderBase._depcache_config.loader._config_path = config_file
    sys.argv = ["depcache.py", *args]
    ConfigLoaderBase._depcache_config.loader.reset()
    ConfigLoaderBase._depcache_config.loader.is_running_unit_tests = True
    ConfigLoaderBase._depcache_config.loader.unknown_config_option_is_error = not allow_unknown_options
    ConfigLoaderBase._depcache_config.load()
    ConfigLoaderBase._depcache_config.pretend = True
    return ConfigLoaderBase._depcache_config


def _parse_config_file_and_args(config_file_contents: bytes, *args: str,
                                allow_unknown_options=False) -> DefaultDepcacheConfig:
    with tempfile.NamedTemporaryFile() as t:
        config = Path(t.name)
        config.write_bytes(config_file_contents)
        return _parse_arguments(list(args), config_file=config, allow_unknown_options=allow_unknown_options)


@pytest.fixture(scope="module", autouse=True)
def _restore_default_options():
    yield
    # Other test modules expect the per-target options to have their default values
    _parse_arguments([])


def test_skip_update():
    # default is false:
    conf = _parse_arguments([])
    skip = inspect.getattr_static(conf, "skip_update")
    assert isinstance(skip, JsonAndCommandLineConfigOption)
    assert not _parse_arguments([]).skip_update
    # check that --no-foo and --foo work:
    assert _parse_arguments(["--skip-update"]).skip_update
    assert not _parse_arguments(["--no-skip-update"]).skip_update
    # check config file
    with tempfile.NamedTemporaryFile() as t:
        config = Path(t.name)
        config.write_bytes(b'{ "skip-update": true}')
        assert _parse_arguments([], config_file=config).skip_update
        # command line overrides config file:
        assert _parse_arguments(["--skip-update"], config_file=config).skip_update
        assert not _parse_arguments(["--no-skip-update"], config_file=config).skip_update
        config.write_bytes(b'{ "skip-update": false}')
        assert not _parse_arguments([], config_file=config).skip_update
        assert _parse_arguments(["--skip-update"], config_file=config).skip_update


def test_make_jobs():
    assert _parse_arguments([]).make_jobs == 4
    assert _parse_arguments(["-j", "8"]).make_jobs == 8
    assert _parse_config_file_and_args(b'{ "make-jobs": 3 }').make_jobs == 3
    assert _parse_config_file_and_args(b'{ "make-jobs": 3 }', "--make-jobs=5").make_jobs == 5


def test_build_type():
    assert _parse_arguments([]).build_type is BuildType.RELEASE
    assert _parse_arguments(["--build-type", "debug"]).build_type is BuildType.DEBUG
    assert _parse_config_file_and_args(b'{ "build-type": "RelWithDebInfo" }').build_type is BuildType.RELWITHDEBINFO


def test_config_file_comments():
    config = _parse_config_file_and_args(b'# a comment\n{\n  // another comment\n  "force-rebuild": true\n}')
    assert config.force_rebuild


def test_download_root_relative_to_config_file():
    with tempfile.TemporaryDirectory() as d:
        config_file = Path(d, "depcache.json")
        config_file.write_bytes(b'{ "download-root": "deps" }')
        assert _parse_arguments([], config_file=config_file).download_root == Path(d, "deps")
        # paths on the command line are relative to the current directory
        assert _parse_arguments(["--download-root=/foo/bar"], config_file=config_file).download_root == \
            Path("/foo/bar")
    assert _parse_arguments(["--download-root=download"]).download_root == Path.cwd() / "download"


def test_defines():
    assert _parse_arguments([]).defines == []
    config = _parse_arguments(["-D", "MSG1=hello", "--define=ONE_"])
    assert config.defines == ["MSG1=hello", "ONE_"]


def test_per_target_bool_option():
    config = _parse_arguments([])
    assert not _get_target_instance("dlib", config, BuildDlib).with_models
    config = _parse_arguments(["--dlib/with-models"])
    assert _get_target_instance("dlib", config, BuildDlib).with_models
    config = _parse_arguments(["--dlib/no-with-models"])
    assert not _get_target_instance("dlib", config, BuildDlib).with_models
    # Nested JSON objects are mapped to target/option
    config = _parse_config_file_and_args(b'{ "dlib": { "with-models": true } }')
    assert _get_target_instance("dlib", config, BuildDlib).with_models
    config = _parse_config_file_and_args(b'{ "dlib/with-models": true }', "--dlib/no-with-models")
    assert not _get_target_instance("dlib", config, BuildDlib).with_models


def test_per_target_clean_option():
    config = _parse_arguments(["--clean"])
    assert _get_target_instance("gmp", config, BuildGmp).with_clean
    config = _parse_arguments(["--clean", "--gmp/no-clean"])
    assert not _get_target_instance("gmp", config, BuildGmp).with_clean
    assert _get_target_instance("duckdb", config, BuildDuckDB).with_clean


def test_per_target_list_options():
    config = _parse_arguments([])
    assert _get_target_instance("boost", config, BuildBoost).components == ["headers"]
    assert _get_target_instance("gmp", config, BuildGmp).extra_configure_flags == []
    config = _parse_config_file_and_args(b'{ "boost": { "components": ["filesystem", "system"] },'
                                         b'  "gmp": { "configure-options": ["--enable-assert"] },'
                                         b'  "duckdb/cmake-options": ["-DBUILD_UNITTESTS=ON"] }')
    assert _get_target_instance("boost", config, BuildBoost).components == ["filesystem", "system"]
    assert _get_target_instance("gmp", config, BuildGmp).extra_configure_flags == ["--enable-assert"]
    assert _get_target_instance("duckdb", config, BuildDuckDB).cmake_options == ["-DBUILD_UNITTESTS=ON"]


def test_unknown_config_option():
    with pytest.raises(ValueError, match="Unknown config option 'no-such-option'"):
        _parse_config_file_and_args(b'{ "no-such-option": true }')
    # Only a warning if unknown options are allowed
    assert not _parse_config_file_and_args(b'{ "no-such-option": true }', allow_unknown_options=True).skip_update


def test_command_line_only_option_in_config_file():
    with pytest.raises(ValueError, match="Option 'pretend' cannot be used in the config file"):
        _parse_config_file_and_args(b'{ "pretend": true }')


def test_unknown_command_line_argument():
    with pytest.raises(KeyError, match="unknown argument '--no-such-flag'"):
        _parse_arguments(["--no-such-flag"])


def test_targets_and_trailing_options():
    config = _parse_arguments(["gmp", "--skip-update", "duckdb"])
    assert config.targets == ["gmp", "duckdb"]
    assert config.skip_update
