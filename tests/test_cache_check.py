import json
import subprocess
from pathlib import Path

import pytest

from pydepcache.projects.project import Project
from pydepcache.projects.repository import ArchiveRepository, SingleFileRepository, SourceRepository
from pydepcache.projects.simple_project import SimpleProject
from pydepcache.projects.sqlite import SqliteAmalgamationRepository
from pydepcache.targets import target_manager
from .setup_mock_config import MockConfig, setup_mock_config


class RecordingRepository(SourceRepository):
    def __init__(self) -> None:
        self.cloned: "list[Path]" = []

    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        self.cloned.append(src_dir)


class BuildFakeRecording(Project):
    """Records the build steps instead of running any commands"""
    target = "fake-recording"
    repository = RecordingRepository()
    source_marker = "configure"
    cached_artifacts = ("lib/librecording.a", "include/recording.h")

    def __init__(self, config) -> None:
        super().__init__(config)
        self.steps: "list[str]" = []
        self.create_artifacts = True

    def configure(self, **kwargs) -> None:
        self.steps.append("configure")

    def compile(self, cwd=None) -> None:
        self.steps.append("compile")

    def install(self) -> None:
        self.steps.append("install")
        if self.create_artifacts:
            create_artifacts(self.install_dir)


def create_artifacts(install_dir: Path, artifacts=BuildFakeRecording.cached_artifacts) -> None:
    for a in artifacts:
        (install_dir / a).parent.mkdir(parents=True, exist_ok=True)
        (install_dir / a).write_text("")


def _create_project(tmp_path: Path, pretend=False) -> "tuple[MockConfig, BuildFakeRecording]":
    config = setup_mock_config(tmp_path, pretend=pretend)
    target_manager.reset()
    BuildFakeRecording.setup_config_options()
    BuildFakeRecording.repository.cloned.clear()
    project = BuildFakeRecording(config)
    project.setup()
    return config, project


def _registered_targets(config: MockConfig) -> dict:
    manifest = config.download_root / "depcache-manifest.json"
    if not manifest.exists():
        return {}
    return json.loads(manifest.read_text(encoding="utf-8"))


def test_cache_hit(tmp_path):
    config, project = _create_project(tmp_path)
    create_artifacts(project.install_dir)
    assert project.is_cached()
    project.process()
    assert project.steps == []
    assert BuildFakeRecording.repository.cloned == []
    # The link target is registered even if nothing was built
    assert "fake-recording" in _registered_targets(config)
    assert (tmp_path / "cmake" / "fake-recording-targets.cmake").is_file()
    assert "fake-recording-targets.cmake" in (tmp_path / "depcache.cmake").read_text(encoding="utf-8")


def test_cache_miss(tmp_path):
    config, project = _create_project(tmp_path)
    assert not project.is_cached()
    project.process()
    assert BuildFakeRecording.repository.cloned == [tmp_path / "fake-recording"]
    assert project.steps == ["configure", "compile", "install"]
    assert project.is_cached()
    entry = _registered_targets(config)["fake-recording"]
    assert entry["imported_target"] == "depcache::fake-recording"
    assert entry["libraries"] == [str(project.install_dir / "lib/librecording.a")]
    assert entry["include_dirs"] == [str(project.install_dir / "include")]


def test_partial_cache_is_a_miss(tmp_path):
    config, project = _create_project(tmp_path)
    # all artifacts must exist for a cache hit
    create_artifacts(project.install_dir, ["lib/librecording.a"])
    assert project.missing_artifacts() == [project.install_dir / "include/recording.h"]
    assert not project.is_cached()
    project.process()
    assert project.steps == ["configure", "compile", "install"]


def test_missing_artifacts_after_install(tmp_path, capsys):
    config, project = _create_project(tmp_path)
    project.create_artifacts = False
    with pytest.raises(SystemExit):
        project.process()
    assert "expected artifacts are missing" in capsys.readouterr().err
    assert "fake-recording" not in _registered_targets(config)


def test_force_rebuild(tmp_path):
    config, project = _create_project(tmp_path)
    create_artifacts(project.install_dir)
    config.force_rebuild = True
    assert project.should_rebuild
    project.process()
    assert project.steps == ["configure", "compile", "install"]
    assert project.is_cached()


def test_source_marker_skips_download(tmp_path):
    config, project = _create_project(tmp_path)
    (tmp_path / "fake-recording").mkdir()
    assert not project.sources_exist()
    (tmp_path / "fake-recording" / "configure").write_text("")
    assert project.sources_exist()
    project.update()
    assert BuildFakeRecording.repository.cloned == []


def test_skip_update_with_missing_sources(tmp_path, capsys):
    config, project = _create_project(tmp_path)
    config.skip_update = True
    with pytest.raises(SystemExit):
        project.update()
    assert "Sources for fake-recording are missing" in capsys.readouterr().err
    assert BuildFakeRecording.repository.cloned == []


def test_pretend_mode_does_not_write_files(tmp_path):
    config, project = _create_project(tmp_path, pretend=True)
    project.create_artifacts = False
    project.process()
    assert project.steps == ["configure", "compile", "install"]
    assert not (tmp_path / "depcache-manifest.json").exists()
    assert not (tmp_path / "cmake").exists()


def _fake_downloader(fail_urls: "list[str]", calls: "list[str]", *, timeout=False):
    def download_file(dest: Path, url: str, **kwargs) -> None:
        # a failed download must not leave a partial file behind for the next mirror
        assert not dest.exists()
        calls.append(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text("contents of " + url)
        if url in fail_urls and timeout:
            raise subprocess.TimeoutExpired(["wget", url], 120)
        if url in fail_urls:
            raise subprocess.CalledProcessError(22, ["curl", url])
    return download_file


def test_mirror_fallback(tmp_path, monkeypatch, capsys):
    config, project = _create_project(tmp_path)
    repo = ArchiveRepository(["https://first.example.org/lib-1.0.tar.gz", "https://second.example.org/lib-1.0.tar.gz"])
    calls: "list[str]" = []
    monkeypatch.setattr(project, "download_file", _fake_downloader([repo.urls[0]], calls))
    archive = repo.download(project)
    assert archive == tmp_path / "lib-1.0.tar.gz"
    assert calls == repo.urls
    assert archive.read_text() == "contents of https://second.example.org/lib-1.0.tar.gz"
    assert "trying next mirror" in capsys.readouterr().err


def test_all_mirrors_fail(tmp_path, monkeypatch, capsys):
    config, project = _create_project(tmp_path)
    repo = ArchiveRepository(["https://first.example.org/lib-1.0.tar.gz", "https://second.example.org/lib-1.0.tar.gz"])
    calls: "list[str]" = []
    monkeypatch.setattr(project, "download_file", _fake_downloader(repo.urls, calls))
    with pytest.raises(SystemExit):
        repo.download(project)
    assert calls == repo.urls
    assert not (tmp_path / "lib-1.0.tar.gz").exists()
    err = capsys.readouterr().err
    assert "download failed from all mirrors" in err
    assert "curl -L -o " + str(tmp_path / "lib-1.0.tar.gz") + " https://first.example.org/lib-1.0.tar.gz" in err


def test_cached_archive_is_reused(tmp_path, monkeypatch):
    config, project = _create_project(tmp_path)
    repo = ArchiveRepository(["https://example.org/lib.zip"], cache_archive=True)
    (tmp_path / "lib.zip").write_text("cached")
    calls: "list[str]" = []
    monkeypatch.setattr(project, "download_file", _fake_downloader([], calls))
    assert repo.download(project) == tmp_path / "lib.zip"
    assert calls == []


def test_mirror_timeout_tries_next_mirror(tmp_path, monkeypatch, capsys):
    config, project = _create_project(tmp_path)
    repo = ArchiveRepository(["https://slow.example.org/lib-1.0.tar.gz", "https://fast.example.org/lib-1.0.tar.gz"])
    calls: "list[str]" = []
    monkeypatch.setattr(project, "download_file", _fake_downloader([repo.urls[0]], calls, timeout=True))
    archive = repo.download(project)
    assert calls == repo.urls
    assert archive.read_text() == "contents of https://fast.example.org/lib-1.0.tar.gz"
    assert "failed (timed out after 120 seconds), trying next mirror" in capsys.readouterr().err


def test_single_file_timeout_is_fatal(tmp_path, monkeypatch, capsys):
    config, project = _create_project(tmp_path)
    repo = SingleFileRepository("https://slow.example.org/header.hpp")
    calls: "list[str]" = []
    monkeypatch.setattr(project, "download_file", _fake_downloader([repo.url], calls, timeout=True))
    with pytest.raises(SystemExit):
        repo.ensure_cloned(project, src_dir=tmp_path / "src")
    assert not (tmp_path / "src" / "header.hpp").exists()
    assert "download failed from https://slow.example.org/header.hpp" in capsys.readouterr().err


def test_sqlite_download_page_timeout_is_fatal(tmp_path, monkeypatch, capsys):
    config, project = _create_project(tmp_path)
    repo = SqliteAmalgamationRepository("https://slow.example.org/download.html")
    calls: "list[str]" = []
    monkeypatch.setattr(project, "download_file", _fake_downloader([repo.download_page], calls, timeout=True))
    with pytest.raises(SystemExit):
        repo.find_release(project)
    assert "Could not download the SQLite download page" in capsys.readouterr().err


def test_cached_target_does_not_need_build_tools(tmp_path, monkeypatch):
    config = setup_mock_config(tmp_path, pretend=False)
    target_manager.reset()
    gmp = target_manager.get_target("gmp", config)
    create_artifacts(tmp_path / "gmp-install", ["lib/libgmp.a", "lib/libgmpxx.a"])
    # neither make nor m4 can be found
    monkeypatch.setenv("PATH", "")
    monkeypatch.setattr(SimpleProject, "_found_system_tools", {})
    target_manager.run(config, [gmp])
    assert "gmp" in _registered_targets(config)


def test_uncached_target_needs_build_tools(tmp_path, monkeypatch, capsys):
    config = setup_mock_config(tmp_path, pretend=False)
    target_manager.reset()
    gmp = target_manager.get_target("gmp", config)
    monkeypatch.setenv("PATH", "")
    monkeypatch.setattr(SimpleProject, "_found_system_tools", {})
    with pytest.raises(SystemExit):
        target_manager.run(config, [gmp])
    assert "Required program" in capsys.readouterr().err
    assert not (tmp_path / "gmp").exists()
