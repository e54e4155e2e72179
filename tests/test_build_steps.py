import io
import tarfile
from pathlib import Path

import pytest

from pydepcache.link_registry import LinkInfo
from pydepcache.projects.project import AutotoolsProject, ManualCompileProject, PythonConfigureProject
from pydepcache.projects.repository import ArchiveRepository, ExternallyManagedSourceRepository, GitRepository
from pydepcache.targets import target_manager
from .setup_mock_config import setup_mock_config


class BuildFakeAutotools(AutotoolsProject):
    target = "fake-autotools"
    repository = ExternallyManagedSourceRepository()
    configure_options = ("--disable-shared", "--enable-static")


class BuildFakePythonConfigure(PythonConfigureProject):
    target = "fake-python-configure"
    repository = ExternallyManagedSourceRepository()
    configure_options = ("--minimized-build",)


class BuildFakeManualCompile(ManualCompileProject):
    target = "fake-manual-compile"
    repository = ExternallyManagedSourceRepository()
    library_name = "manual"
    excluded_sources = ("*_test.cpp",)


def _create(project_class, tmp_path: Path, pretend=True):
    config = setup_mock_config(tmp_path, pretend=pretend)
    target_manager.reset()
    project_class.setup_config_options()
    project = project_class(config)
    project.setup()
    return project


class CommandRecorder:
    def __init__(self) -> None:
        self.commands: "list[list[str]]" = []
        self.kwargs: "list[dict]" = []

    def run_cmd(self, *args, **kwargs) -> None:
        cmdline = args[0] if len(args) == 1 and isinstance(args[0], (list, tuple)) else args
        self.commands.append([str(a) for a in cmdline])
        self.kwargs.append(kwargs)

    def run_with_logfile(self, args, logfile_name: str, **kwargs) -> None:
        self.run_cmd(list(args), logfile_name=logfile_name, **kwargs)


def _record_commands(project, monkeypatch) -> CommandRecorder:
    recorder = CommandRecorder()
    monkeypatch.setattr(project, "run_cmd", recorder.run_cmd)
    monkeypatch.setattr(project, "run_with_logfile", recorder.run_with_logfile)
    return recorder


def _create_tarball(path: Path, members: "dict[str, str]") -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, contents in members.items():
            data = contents.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


def test_extract_single_toplevel_directory(tmp_path):
    project = _create(BuildFakeAutotools, tmp_path, pretend=False)
    archive = _create_tarball(tmp_path / "lib-1.0.tar.gz", {"lib-1.0/configure": "#!/bin/sh\n",
                                                            "lib-1.0/src/lib.c": "int x;\n"})
    src_dir = tmp_path / "lib"
    ArchiveRepository(["https://example.org/lib-1.0.tar.gz"]).extract(project, archive, src_dir)
    # the versioned directory becomes the source directory
    assert (src_dir / "configure").read_text() == "#!/bin/sh\n"
    assert (src_dir / "src/lib.c").is_file()
    assert not (tmp_path / "lib-extract").exists()


def test_extract_multiple_entries(tmp_path):
    project = _create(BuildFakeAutotools, tmp_path, pretend=False)
    archive = _create_tarball(tmp_path / "headers.tar.gz", {"a.h": "a\n", "include/b.h": "b\n"})
    src_dir = tmp_path / "headers"
    (src_dir / "stale").mkdir(parents=True)
    ArchiveRepository(["https://example.org/headers.tar.gz"]).extract(project, archive, src_dir)
    assert sorted(p.name for p in src_dir.iterdir()) == ["a.h", "include"]
    assert (src_dir / "include/b.h").read_text() == "b\n"
    assert not (tmp_path / "headers-extract").exists()


def test_extract_uses_extracted_dirname(tmp_path):
    project = _create(BuildFakeAutotools, tmp_path, pretend=False)
    archive = _create_tarball(tmp_path / "pkg.tar.gz", {"pkg-2.0/README": "readme\n", "LICENSE": "license\n"})
    repo = ArchiveRepository(["https://example.org/pkg.tar.gz"], extracted_dirname="pkg-2.0")
    repo.extract(project, archive, tmp_path / "pkg")
    assert sorted(p.name for p in (tmp_path / "pkg").iterdir()) == ["README"]


def test_extract_extracted_dirname_mismatch(tmp_path, capsys):
    project = _create(BuildFakeAutotools, tmp_path, pretend=False)
    archive = _create_tarball(tmp_path / "pkg.tar.gz", {"pkg-2.1/README": "readme\n"})
    repo = ArchiveRepository(["https://example.org/pkg.tar.gz"], extracted_dirname="pkg-2.0")
    with pytest.raises(SystemExit):
        repo.extract(project, archive, tmp_path / "pkg")
    assert "Expected pkg.tar.gz to contain pkg-2.0 but found ['pkg-2.1']" in capsys.readouterr().err
    assert not (tmp_path / "pkg").exists()


def test_git_clone_command():
    src_dir = Path("/cache/lib")
    assert GitRepository("https://example.org/lib.git").clone_command(src_dir) == [
        "git", "clone", "https://example.org/lib.git", src_dir]
    repo = GitRepository("https://example.org/lib.git", default_branch="v1.2", shallow=True, recurse_submodules=True)
    assert repo.clone_command(src_dir) == ["git", "clone", "--depth", "1", "--recurse-submodules", "--branch", "v1.2",
                                           "https://example.org/lib.git", src_dir]


def test_git_clone_into_unrelated_directory(tmp_path, capsys):
    project = _create(BuildFakeAutotools, tmp_path, pretend=False)
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "notes.txt").write_text("")
    with pytest.raises(SystemExit):
        GitRepository("https://example.org/lib.git").ensure_cloned(project, src_dir=tmp_path / "lib")
    assert "rm -rf " + str(tmp_path / "lib") in capsys.readouterr().err


def test_autotools_configure(tmp_path, monkeypatch):
    project = _create(BuildFakeAutotools, tmp_path)
    recorder = _record_commands(project, monkeypatch)
    project.configure()
    assert recorder.commands == [[str(tmp_path / "fake-autotools/configure"),
                                  "--prefix=" + str(tmp_path / "fake-autotools-install"),
                                  "--disable-shared", "--enable-static"]]
    assert recorder.kwargs[0]["logfile_name"] == "configure"
    # autotools projects are built in the source directory
    assert recorder.kwargs[0]["cwd"] == tmp_path / "fake-autotools"


def test_autotools_runs_autogen_without_configure(tmp_path, monkeypatch):
    project = _create(BuildFakeAutotools, tmp_path)
    (tmp_path / "fake-autotools").mkdir()
    (tmp_path / "fake-autotools/autogen.sh").write_text("#!/bin/sh\n")
    recorder = _record_commands(project, monkeypatch)
    project.configure()
    assert recorder.commands[0] == ["sh", "autogen.sh"]
    assert recorder.kwargs[0]["cwd"] == tmp_path / "fake-autotools"
    assert recorder.kwargs[0]["env"]["NOCONFIGURE"] == "1"
    assert recorder.commands[1][0] == str(tmp_path / "fake-autotools/configure")


def test_python_configure(tmp_path, monkeypatch):
    project = _create(BuildFakePythonConfigure, tmp_path)
    recorder = _record_commands(project, monkeypatch)
    project.configure()
    assert recorder.commands == [["python3", str(tmp_path / "fake-python-configure/configure.py"),
                                  "--prefix=" + str(tmp_path / "fake-python-configure-install"),
                                  "--minimized-build"]]
    assert project.needs_configure()


def test_manual_compile(tmp_path, monkeypatch):
    project = _create(BuildFakeManualCompile, tmp_path)
    src = tmp_path / "fake-manual-compile/src"
    src.mkdir(parents=True)
    for name in ("b.cpp", "a.cpp", "a_test.cpp", "a.h"):
        (src / name).write_text("")
    assert [f.name for f in project.source_files()] == ["a.cpp", "b.cpp"]
    recorder = _record_commands(project, monkeypatch)
    project.compile()
    build_dir = tmp_path / "fake-manual-compile-build"
    assert recorder.commands == [
        [project.compiler, "-O2", "-fPIC", "-std=c++17", "-I" + str(src), "-c", str(src / "a.cpp"), "-o",
         str(build_dir / "a.o")],
        [project.compiler, "-O2", "-fPIC", "-std=c++17", "-I" + str(src), "-c", str(src / "b.cpp"), "-o",
         str(build_dir / "b.o")],
    ]
    project.install()
    assert recorder.commands[-1] == ["ar", "rcs", str(tmp_path / "fake-manual-compile-install/lib/libmanual.a"),
                                     str(build_dir / "a.o"), str(build_dir / "b.o")]
    assert recorder.kwargs[-1]["cwd"] == build_dir


def test_link_info_optional_libraries_and_frameworks():
    info = LinkInfo("fake-omp", Path("/cache/fake-omp-install"),
                    libraries=[Path("/cache/fake-omp-install/lib/libomp-user.a")],
                    optional_system_libraries=["gomp"], frameworks=["Accelerate", "Foundation"])
    script = info.cmake_script()
    assert "INTERFACE_LINK_LIBRARIES \"-framework Accelerate;-framework Foundation\"" in script
    assert ("  find_library(DEPCACHE_FAKE_OMP_GOMP gomp)\n"
            "  if(DEPCACHE_FAKE_OMP_GOMP)\n"
            "    set_property(TARGET depcache::fake-omp APPEND PROPERTY INTERFACE_LINK_LIBRARIES "
            "\"${DEPCACHE_FAKE_OMP_GOMP}\")\n"
            "  endif()\n") in script
    # the optional libraries are only added if they are found
    assert "gomp" not in info.interface_link_libraries()
    assert script.index("find_library") > script.index("set_target_properties")
