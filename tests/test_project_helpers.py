import re
from pathlib import Path

import pytest

from pydepcache.projects.cmake_project import CMakeProject
from pydepcache.projects.repository import ExternallyManagedSourceRepository
from pydepcache.targets import target_manager
from .setup_mock_config import DepcacheConfig, setup_mock_config


class TestCMakeProject(CMakeProject):
    # This is not a test, despite its name matching Test*
    __test__ = False
    target = "fake-cmake-project"
    repository = ExternallyManagedSourceRepository()


def _create_cmake_project() -> TestCMakeProject:
    config: DepcacheConfig = setup_mock_config(Path("/this/path/does/not/exist"))
    target_manager.reset()
    TestCMakeProject.setup_config_options()
    return TestCMakeProject(config)


def test_add_cmake_option():
    def add_options_test(expected, **kwargs):
        test_project.add_cmake_options(**kwargs)
        assert test_project.configure_args == expected
        test_project.configure_args.clear()  # reset for next test

    test_project = _create_cmake_project()
    assert test_project.configure_args == []

    # Test adding various types of options:
    add_options_test(["-DSTR_OPTION=abc"], STR_OPTION="abc")
    add_options_test(["-DINT_OPTION=2"], INT_OPTION=2)
    add_options_test(["-DBOOL_OPTION1=TRUE", "-DBOOL_OPTION2=FALSE"], BOOL_OPTION1=True, BOOL_OPTION2=False)
    add_options_test(["-DPATH_OPTION=/some/path"], PATH_OPTION=Path("/some/path"))
    # Empty values are skipped
    add_options_test([], EMPTY_OPTION="", NONE_OPTION=None)
    # Lists need to be converted manually
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'list'>: ['a', 'b', 'c']")):
        add_options_test(["-DLIST_OPTION_1=a;b;c"], LIST_OPTION_1=["a", "b", "c"])
    # Floats need to be converted manually
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'float'>: 0.1")):
        add_options_test([], FLOAT_OPTION=0.1)
    # Check that tuples and bytes are rejected
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'bytes'>: b'abc'")):
        add_options_test([], BYTE_OPTION=b"abc")
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'tuple'>: ('abc',)")):
        add_options_test([], TUPLE_OPTION=("abc",))


def test_add_cmake_option_replaces_existing_value():
    test_project = _create_cmake_project()
    test_project.add_cmake_options(FOO="a", BAR=1)
    test_project.add_cmake_options(FOO="b")
    assert test_project.configure_args == ["-DBAR=1", "-DFOO=b"]
    test_project.add_cmake_options(BAR=2, _replace=False)
    assert test_project.configure_args == ["-DBAR=1", "-DFOO=b"]
    assert test_project.get_cmake_option("FOO") == "b"
    assert test_project.get_cmake_option("MISSING") is None


def test_cmake_setup_defaults():
    test_project = _create_cmake_project()
    test_project.setup()
    config = test_project.config
    args = test_project.configure_args
    assert args[:5] == ["-GNinja", "-S", str(config.download_root / "fake-cmake-project"), "-B",
                        str(config.download_root / "fake-cmake-project-build")]
    assert "-DCMAKE_INSTALL_PREFIX=" + str(config.download_root / "fake-cmake-project-install") in args
    assert "-DCMAKE_BUILD_TYPE=Release" in args
    assert "-DCMAKE_POSITION_INDEPENDENT_CODE=TRUE" in args
    assert "-DCMAKE_INSTALL_LIBDIR=lib" in args
    assert test_project.make_args.cmake_config == "Release"


def test_make_commandline():
    test_project = _create_cmake_project()
    assert test_project.get_make_commandline(None) == ["cmake", "--build", ".", "--config", "Release", "-j", "2"]
    assert test_project.get_make_commandline("isocline", parallel=False) == [
        "cmake", "--build", ".", "--config", "Release", "--target", "isocline"]
