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
import re
import typing
from pathlib import Path

from .project import ManualCompileProject, Project
from .repository import DOWNLOAD_ERRORS, ArchiveRepository, SourceRepository
from ..link_registry import LinkInfo
from ..targets import target_manager
from ..utils import OSInfo

# Relative links on the download page look like 2025/sqlite-autoconf-3510000.tar.gz
SQLITE_RELEASE_REGEX = re.compile(r"([0-9]+)/sqlite-autoconf-([0-9]+)\.tar\.gz")

SQLITE_COMPILE_DEFINITIONS = (
    "SQLITE_ENABLE_FTS5",
    "SQLITE_ENABLE_MATH_FUNCTIONS",
    "SQLITE_ENABLE_STAT4",
    "SQLITE_ENABLE_COLUMN_METADATA",
    "SQLITE_DQS=0",  # no double-quoted string literals
    "SQLITE_DEFAULT_MEMSTATUS=0",
    "SQLITE_DEFAULT_WAL_SYNCHRONOUS=1",
    "SQLITE_LIKE_DOESNT_MATCH_BLOBS",
    "SQLITE_OMIT_DEPRECATED",
    "SQLITE_MAX_EXPR_DEPTH=0",
    "SQLITE_THREADSAFE=2",  # multi-thread
)


def find_latest_sqlite_release(html: str) -> "typing.Optional[tuple[str, str]]":
    """Returns (year, version number) of the first autoconf tarball linked from the sqlite.org download page"""
    match = SQLITE_RELEASE_REGEX.search(html)
    if match is None:
        return None
    return match.group(1), match.group(2)


class SqliteAmalgamationRepository(SourceRepository):
    """
    Finds the latest release on the sqlite.org download page and keeps only the amalgamation files
    (sqlite3.c, sqlite3.h and sqlite3ext.h) plus a VERSION.txt in the source directory.
    """
    files = ("sqlite3.c", "sqlite3.h", "sqlite3ext.h")

    def __init__(self, download_page: str = "https://sqlite.org/download.html") -> None:
        self.download_page = download_page

    def sources_exist(self, current_project: "Project", *, src_dir: Path) -> bool:
        return all((src_dir / f).exists() for f in self.files)

    def find_release(self, current_project: "Project") -> "tuple[str, str]":
        page = current_project.config.download_root / "sqlite-download.html"
        try:
            current_project.download_file(page, self.download_page, max_time=120, inactivity_timeout=30)
        except DOWNLOAD_ERRORS:
            current_project.fatal("Could not download the SQLite download page", self.download_page)
        html = current_project.read_file(page)
        current_project.delete_file(page, print_verbose_only=True)
        release = find_latest_sqlite_release(html)
        if release is None:
            current_project.fatal("Could not parse the latest SQLite version from", self.download_page)
            # Only reached in pretend mode
            return "0000", "0"
        current_project.info("Detected SQLite version", release[1], "(year " + release[0] + ")")
        return release

    def ensure_cloned(self, current_project: "Project", *, src_dir: Path) -> None:
        year, number = self.find_release(current_project)
        archive = ArchiveRepository(["https://sqlite.org/" + year + "/sqlite-autoconf-" + number + ".tar.gz"])
        extracted = current_project.config.download_root / "sqlite3-autoconf"
        archive.ensure_cloned(current_project, src_dir=extracted)
        current_project.makedirs(src_dir)
        for f in self.files:
            current_project.install_file(extracted / f, src_dir / f, force=True)
        current_project.write_file(src_dir / "VERSION.txt", number, overwrite=True)
        current_project.clean_directory(extracted, ensure_dir_exists=False)
        current_project.info("SQLite", number, "cached in", src_dir)


class BuildSqlite3(ManualCompileProject):
    repository = SqliteAmalgamationRepository()
    source_subdirectory = ""
    source_glob = "sqlite3.c"
    header_glob = "sqlite3*.h"
    compiler_env_var = "CC"
    default_compiler = "cc"
    compile_flags = ("-O2", "-fPIC", *("-D" + d for d in SQLITE_COMPILE_DEFINITIONS))
    library_name = "sqlite3"
    # The headers are installed on their own so that SQLite's VERSION file cannot shadow <version>
    cached_artifacts = ("lib/libsqlite3.a", "include/sqlite3.h", "include/sqlite3ext.h")

    def link_info(self) -> LinkInfo:
        info = super().link_info()
        for d in SQLITE_COMPILE_DEFINITIONS:
            name, _, value = d.partition("=")
            info.compile_definitions[name] = value or None
        info.needs_threads = True
        info.system_libraries.append("m")
        if OSInfo.IS_LINUX:
            # Needed for sqlite3_load_extension()
            info.system_libraries.append("dl")
        return info


target_manager.add_target_alias("sqlite", "sqlite3")
