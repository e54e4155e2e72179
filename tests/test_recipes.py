from pathlib import Path

import pytest

from pydepcache.link_registry import CMakePackage, LinkInfo, cmake_quote
from pydepcache.projects.linq_for_cpp import PREMATURE_NAMESPACE_CLOSE, PREMATURE_NAMESPACE_CLOSE_FIX
from pydepcache.projects.project import Project
from pydepcache.projects.sqlite import find_latest_sqlite_release
from pydepcache.targets import target_manager
from .setup_mock_config import setup_mock_config


def _get_project(name: str, download_root: Path, pretend=True) -> Project:
    config = setup_mock_config(download_root, pretend=pretend)
    target_manager.reset()
    project = target_manager.get_target(name, config).get_or_create_project(config)
    assert isinstance(project, Project)
    return project


SQLITE_DOWNLOAD_PAGE = """
<table class="downloadtab">
<tr><td class="about">C source code as an amalgamation, version 3.51.0.</td></tr>
<!-- Download product data for scripts to read
PRODUCT,3.51.0,2025/sqlite-amalgamation-3510000.zip,2800042,de1b...
PRODUCT,3.51.0,2025/sqlite-autoconf-3510000.tar.gz,3195627,a2c3...
-->
<a href="2025/sqlite-autoconf-3510000.tar.gz">sqlite-autoconf-3510000.tar.gz</a>
<a href="2024/sqlite-autoconf-3470200.tar.gz">sqlite-autoconf-3470200.tar.gz</a>
</table>
"""


def test_find_latest_sqlite_release():
    assert find_latest_sqlite_release(SQLITE_DOWNLOAD_PAGE) == ("2025", "3510000")
    assert find_latest_sqlite_release("<html>no downloads here</html>") is None
    # The amalgamation zip must not be picked up
    assert find_latest_sqlite_release("2025/sqlite-amalgamation-3510000.zip") is None


def test_sqlite_link_info(tmp_path):
    project = _get_project("sqlite3", tmp_path)
    info = project.link_info()
    assert info.target == "sqlite3"
    assert info.libraries == [tmp_path / "sqlite3-install/lib/libsqlite3.a"]
    assert info.compile_definitions["SQLITE_ENABLE_FTS5"] is None
    assert info.compile_definitions["SQLITE_THREADSAFE"] == "2"
    assert "m" in info.system_libraries
    assert info.needs_threads


def test_linq_patch_is_applied_once(tmp_path, capsys):
    project = _get_project("linq-for-cpp", tmp_path, pretend=False)
    header = project.header
    header.parent.mkdir(parents=True)
    original = ("namespace linq {\ntemplate <class T>\n" + PREMATURE_NAMESPACE_CLOSE + "\n"
                "template <class T> struct IteratorBase {};\n}\n")
    header.write_text(original, encoding="utf-8")
    project.patch_header()
    patched = header.read_text(encoding="utf-8")
    assert PREMATURE_NAMESPACE_CLOSE_FIX in patched
    assert patched.count("}") == original.count("}")
    assert "(namespace fix)" in capsys.readouterr().out
    # Running the patch again must not change anything
    project.patch_header()
    assert header.read_text(encoding="utf-8") == patched
    assert "has already been patched" in capsys.readouterr().out


def test_linq_patch_missing_snippet(tmp_path):
    project = _get_project("linq-for-cpp", tmp_path, pretend=False)
    project.header.parent.mkdir(parents=True)
    project.header.write_text("namespace linq {}\n", encoding="utf-8")
    with pytest.raises(SystemExit):
        project.patch_header()


def test_header_only_downloads_stay_in_download_root(tmp_path):
    assert _get_project("nlohmann-json", tmp_path).source_dir == tmp_path
    assert _get_project("linq-for-cpp", tmp_path).source_dir == tmp_path


def test_gmp_link_order(tmp_path):
    info = _get_project("gmp", tmp_path).link_info()
    # libgmpxx uses symbols from libgmp so it has to be linked first
    assert info.libraries == [tmp_path / "gmp-install/lib/libgmpxx.a", tmp_path / "gmp-install/lib/libgmp.a"]
    script = info.cmake_script()
    assert "IMPORTED_LOCATION \"" + str(tmp_path / "gmp-install/lib/libgmpxx.a") + "\"" in script
    assert "INTERFACE_LINK_LIBRARIES \"" + str(tmp_path / "gmp-install/lib/libgmp.a") + "\"" in script


def test_botan_needs_cxx20(tmp_path):
    info = _get_project("botan", tmp_path).link_info()
    assert info.cxx_standard == 20
    assert info.include_dirs == [tmp_path / "botan-install/include/botan-3"]
    assert "INTERFACE_COMPILE_FEATURES \"cxx_std_20\"" in info.cmake_script()


def test_dlib_models_path(tmp_path):
    project = _get_project("dlib", tmp_path)
    assert not project.with_models
    assert "DLIB_MODELS_PATH" not in project.link_info().compile_definitions
    project.with_models = True
    # Only added once the models have been downloaded
    assert "DLIB_MODELS_PATH" not in project.link_info().compile_definitions
    (tmp_path / "dlib-models").mkdir()
    info = project.link_info()
    assert info.compile_definitions["DLIB_MODELS_PATH"] == "\"" + str(tmp_path / "dlib-models") + "\""
    assert "find_package(dlib REQUIRED CONFIG PATHS" in info.cmake_script()


def test_boost_uses_system_installation(tmp_path):
    project = _get_project("boost", tmp_path)
    project.components = ["filesystem", "system"]
    package = project.link_info().packages[0]
    assert package.imported_targets == ["Boost::filesystem", "Boost::system"]
    assert package.find_package_call() == "find_package(Boost 1.80.0 REQUIRED CONFIG COMPONENTS filesystem system)"


def test_find_package_call():
    assert CMakePackage("gflags", ["gflags::gflags"]).find_package_call() == "find_package(gflags REQUIRED)"
    package = CMakePackage("glog", ["glog::glog"], config_mode=True, paths=[Path("/cache/glog-install/lib/cmake/glog")])
    assert package.find_package_call() == \
        "find_package(glog REQUIRED CONFIG PATHS \"/cache/glog-install/lib/cmake/glog\" NO_DEFAULT_PATH)"


def test_cmake_quote():
    assert cmake_quote("/some/path") == "\"/some/path\""
    assert cmake_quote("a \"b\"") == "\"a \\\"b\\\"\""
    # generator expressions must not be escaped
    genex = "$<TARGET_NAME_IF_EXISTS:OpenMP::OpenMP_CXX>"
    assert cmake_quote(genex) == "\"" + genex + "\""


def test_header_only_link_info():
    info = LinkInfo("fake-headers", Path("/cache/fake-headers-install"))
    assert info.include_dirs == [Path("/cache/fake-headers-install/include")]
    script = info.cmake_script()
    assert "add_library(depcache::fake-headers INTERFACE IMPORTED)" in script
    assert "IMPORTED_LOCATION" not in script
    assert script.startswith("# Generated by depcache for target fake-headers.")
    assert script.endswith("endif()\n")


def test_link_info_json():
    package = CMakePackage("OpenSSL", ["OpenSSL::Crypto"], variables={"OPENSSL_USE_STATIC_LIBS": "TRUE"})
    info = LinkInfo("fake-lib", Path("/cache/fake-lib-install"), libraries=[Path("/cache/fake-lib-install/lib/a.a")],
                    system_libraries=["m"], optional_system_libraries=["gomp"], packages=[package],
                    compile_definitions={"FOO": None, "BAR": "1"}, needs_threads=True)
    assert info.as_json() == {
        "imported_target": "depcache::fake-lib",
        "install_dir": "/cache/fake-lib-install",
        "include_dirs": ["/cache/fake-lib-install/include"],
        "libraries": ["/cache/fake-lib-install/lib/a.a"],
        "system_libraries": ["m"],
        "optional_system_libraries": ["gomp"],
        "frameworks": [],
        "compile_definitions": {"FOO": None, "BAR": "1"},
        "packages": [{"name": "OpenSSL", "version": None, "components": [], "imported_targets": ["OpenSSL::Crypto"],
                      "paths": []}],
        "threads": True,
        "cxx_standard": None,
    }
    script = info.cmake_script()
    assert "  set(OPENSSL_USE_STATIC_LIBS TRUE)\n  find_package(OpenSSL REQUIRED)\n" in script
    assert "  find_package(Threads REQUIRED)\n" in script
    assert "INTERFACE_LINK_LIBRARIES \"OpenSSL::Crypto;m;Threads::Threads\"" in script
    assert "INTERFACE_COMPILE_DEFINITIONS \"FOO;BAR=1\"" in script
    assert "find_library(DEPCACHE_FAKE_LIB_GOMP gomp)" in script


def test_patch_file_replaces_every_occurrence(tmp_path):
    project = _get_project("linq-for-cpp", tmp_path, pretend=False)
    source = tmp_path / "twice.hpp"
    source.write_text("int a = OLD;\nint b = OLD;\n", encoding="utf-8")
    assert project.patch_file(source, "OLD", "NEW")
    assert source.read_text(encoding="utf-8") == "int a = NEW;\nint b = NEW;\n"
    assert not project.patch_file(source, "OLD", "NEW")


def test_quiet_registration(tmp_path, capsys):
    project = _get_project("gmp", tmp_path, pretend=False)
    project.config.quiet = True
    project.register_link_target()
    assert "Registering" not in capsys.readouterr().out
    assert (tmp_path / "cmake" / "gmp-targets.cmake").is_file()
    project.config.quiet = False
    project.register_link_target()
    assert "Registering depcache::gmp" in capsys.readouterr().out


def test_boost_checks_dependencies_once(tmp_path, monkeypatch):
    config = setup_mock_config(tmp_path)
    target_manager.reset()
    target = target_manager.get_target("boost", config)
    project = target.get_or_create_project(config)
    calls = []
    check = project.check_system_dependencies

    def counting_check() -> None:
        calls.append(project.target)
        check()

    monkeypatch.setattr(project, "check_system_dependencies", counting_check)
    target_manager.run(config, [target])
    assert calls == ["boost"]
