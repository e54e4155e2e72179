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
from .cmake_project import CMakeProject
from .repository import ArchiveRepository
from ..link_registry import LinkInfo

DUCKDB_VERSION = "1.4.4"


class BuildDuckDB(CMakeProject):
    target = "duckdb"
    repository = ArchiveRepository(
        ["https://github.com/duckdb/duckdb/archive/refs/tags/v" + DUCKDB_VERSION + ".tar.gz"],
        archive_name="duckdb-" + DUCKDB_VERSION + ".tar.gz")
    cached_artifacts = ("lib/libduckdb_static.a",)
    needs_threads = True

    def setup(self) -> None:
        super().setup()
        self.add_cmake_options(BUILD_SHELL=False, BUILD_UNITTESTS=False, BUILD_BENCHMARKS=False,
                               BUILD_COMPLETE_EXTENSION_SET=False, DISABLE_BUILTIN_EXTENSIONS=True,
                               ENABLE_EXTENSION_AUTOLOADING=False, ENABLE_EXTENSION_AUTOINSTALL=False,
                               SKIP_EXTENSIONS="parquet")
        # The tarball is not a git checkout so the version cannot be inferred from git describe
        self.add_cmake_options(OVERRIDE_GIT_DESCRIBE="v" + DUCKDB_VERSION + "-0-g0000000000")

    def link_info(self) -> LinkInfo:
        info = super().link_info()
        # libduckdb_static.a needs all the bundled third-party libraries (fmt, re2, miniz, etc.) as well
        lib_dir = self.install_dir / "lib"
        bundled = sorted(p for p in lib_dir.glob("*.a") if p.name != "libduckdb_static.a") if lib_dir.is_dir() else []
        info.libraries.extend(bundled)
        return info
