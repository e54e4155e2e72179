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
import subprocess
import typing
from pathlib import Path
from typing import Optional

if typing.TYPE_CHECKING:
    from .project import Project

__all__ = ["ArchiveRepository", "DOWNLOAD_ERRORS", "ExternallyManagedSourceRepository", "GitRepository",
           "SingleFileRepository", "SourceRepository"]

# curl reports errors and timeouts with its exit code, wget is killed after max_time
DOWNLOAD_ERRORS = (subprocess.CalledProcessError, subprocess.TimeoutExpired)


def _describe_download_error(e: Exception) -> str:
    if isinstance(e, subprocess.TimeoutExpired):
        return "timed out after " + str(e.timeout) + " seconds"
    return "exit code " + str(getattr(e, "returncode", "?"))


class SourceRepository:
    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        raise NotImplementedError

    def sources_exist(self, current_project: "Project", *, src_dir: Path) -> bool:
        return src_dir.exists()


class ExternallyManagedSourceRepository(SourceRepository):
    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        current_project.info("Not fetching sources for", current_project.target, "since they are externally managed")

    def sources_exist(self, current_project: "Project", *, src_dir: Path) -> bool:
        return True


class GitRepository(SourceRepository):
    def __init__(self, url: str, *, default_branch: "Optional[str]" = None, shallow: bool = False,
                 recurse_submodules: bool = False) -> None:
        self.url = url
        self.default_branch = default_branch
        self.shallow = shallow
        self.recurse_submodules = recurse_submodules

    def sources_exist(self, current_project: "Project", *, src_dir: Path) -> bool:
        # git-worktree creates a .git file instead of a .git directory so we can't use .is_dir()
        return (src_dir / ".git").exists()

    def clone_command(self, src_dir: Path) -> "list[typing.Union[str, Path]]":
        clone_cmd: "list[typing.Union[str, Path]]" = ["git", "clone"]
        if self.shallow:
            clone_cmd.extend(["--depth", "1"])
        if self.recurse_submodules:
            clone_cmd.append("--recurse-submodules")
        if self.default_branch:
            clone_cmd += ["--branch", self.default_branch]
        return [*clone_cmd, self.url, src_dir]

    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        if self.sources_exist(current_project, src_dir=src_dir):
            return
        assert not self.url.startswith("<"), "Invalid URL " + self.url
        if not current_project.is_nonexistent_or_empty_dir(src_dir):
            current_project.fatal(src_dir, "exists but is not a git clone of", self.url,
                                  fixit_hint="Remove the directory and re-run:\n  rm -rf " + str(src_dir))
            return
        current_project.check_required_system_tool("git")
        current_project.makedirs(src_dir.parent)
        current_project.run_cmd(self.clone_command(src_dir), cwd=src_dir.parent)

    def __repr__(self) -> str:
        return "<GitRepository " + self.url + (" @ " + self.default_branch if self.default_branch else "") + ">"


class ArchiveRepository(SourceRepository):
    """
    Downloads a release archive from the first working mirror and extracts it to the source directory.

    If the archive contains a single top-level directory (e.g. gmp-6.3.0/) that directory becomes the source
    directory, otherwise the whole extracted tree is used.
    """

    def __init__(self, urls: "typing.Sequence[str]", *, archive_name: "Optional[str]" = None,
                 extracted_dirname: "Optional[str]" = None, cache_archive: bool = False,
                 sha256: "Optional[str]" = None, max_time: int = 300, inactivity_timeout: int = 60) -> None:
        if isinstance(urls, str):
            urls = [urls]
        assert urls, "Need at least one URL"
        self.urls = list(urls)
        self.archive_name = archive_name if archive_name is not None else self.urls[0].rsplit("/", 1)[-1]
        self.extracted_dirname = extracted_dirname
        self.cache_archive = cache_archive
        self.sha256 = sha256
        self.max_time = max_time
        self.inactivity_timeout = inactivity_timeout

    def archive_path(self, current_project: "Project") -> Path:
        return current_project.config.download_root / self.archive_name

    def _verify_checksum(self, current_project: "Project", archive: Path, url: str) -> bool:
        if self.sha256 is None or current_project.config.pretend:
            return True
        actual = current_project.sha256sum(archive)
        if actual != self.sha256:
            current_project.warning("Checksum mismatch for", archive, "downloaded from", url, "- expected",
                                    self.sha256, "but got", actual)
            return False
        return True

    def download(self, current_project: "Project") -> Path:
        """Returns the path to the downloaded archive, fetching it from the first working mirror if needed"""
        archive = self.archive_path(current_project)
        if archive.is_file():
            if self.cache_archive and self._verify_checksum(current_project, archive, "the cache"):
                current_project.info("Using cached archive", archive)
                return archive
            current_project.delete_file(archive, print_verbose_only=True)
        for url in self.urls:
            current_project.info("Downloading", url)
            try:
                current_project.download_file(archive, url, max_time=self.max_time,
                                              inactivity_timeout=self.inactivity_timeout)
            except DOWNLOAD_ERRORS as e:
                current_project.delete_file(archive, print_verbose_only=True)
                current_project.warning("Download from", url, "failed (" + _describe_download_error(e) + "),",
                                        "trying next mirror" if url != self.urls[-1] else "no more mirrors left")
                continue
            if not self._verify_checksum(current_project, archive, url):
                current_project.delete_file(archive, print_verbose_only=True)
                continue
            return archive
        current_project.fatal(current_project.target, "download failed from all mirrors",
                              fixit_hint="Download the archive manually:\n  curl -L -o " + str(archive) + " " +
                                         self.urls[0] + "\nThen re-run")
        return archive

    def extract(self, current_project: "Project", archive: Path, dest_dir: Path) -> None:
        """Extract archive into a temporary directory and move the relevant part to dest_dir"""
        extract_dir = dest_dir.with_name(dest_dir.name + "-extract")
        current_project.clean_directory(extract_dir)
        current_project.extract_archive(archive, extract_dir)
        if dest_dir.exists():
            current_project.clean_directory(dest_dir, ensure_dir_exists=False)
        entries = list(extract_dir.iterdir()) if extract_dir.is_dir() else []
        if self.extracted_dirname is not None:
            toplevel = extract_dir / self.extracted_dirname
            if not toplevel.is_dir() and not current_project.config.pretend:
                current_project.fatal("Expected", archive.name, "to contain", self.extracted_dirname, "but found",
                                      [e.name for e in entries])
        elif len(entries) == 1 and entries[0].is_dir():
            toplevel = entries[0]
        else:
            toplevel = extract_dir
        current_project.move_file(toplevel, dest_dir)
        if toplevel != extract_dir:
            current_project.clean_directory(extract_dir, ensure_dir_exists=False)

    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        archive = self.download(current_project)
        self.extract(current_project, archive, src_dir)
        if not self.cache_archive:
            current_project.delete_file(archive, print_verbose_only=True)

    def __repr__(self) -> str:
        return "<ArchiveRepository " + self.archive_name + ">"


class SingleFileRepository(SourceRepository):
    """A single file (e.g. a release header) that is kept in the download directory"""

    def __init__(self, url: str, *, filename: "Optional[str]" = None, max_time: int = 120,
                 inactivity_timeout: int = 30) -> None:
        self.url = url
        self.filename = filename if filename is not None else url.rsplit("/", 1)[-1]
        self.max_time = max_time
        self.inactivity_timeout = inactivity_timeout

    def file_path(self, src_dir: Path) -> Path:
        return src_dir / self.filename

    def sources_exist(self, current_project: "Project", *, src_dir: Path) -> bool:
        return self.file_path(src_dir).is_file()

    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        dest = self.file_path(src_dir)
        if dest.is_file():
            return
        current_project.info("Downloading", self.url)
        try:
            current_project.download_file(dest, self.url, max_time=self.max_time,
                                          inactivity_timeout=self.inactivity_timeout)
        except DOWNLOAD_ERRORS:
            current_project.delete_file(dest, print_verbose_only=True)
            current_project.fatal(current_project.target, "download failed from", self.url,
                                  fixit_hint="Download the file manually:\n  curl -L -o " + str(dest) + " " +
                                             self.url + "\nThen re-run")

    def __repr__(self) -> str:
        return "<SingleFileRepository " + self.filename + ">"
