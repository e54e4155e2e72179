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
from pathlib import Path

from .project import HeaderOnlyProject
from .repository import SingleFileRepository
from ..config.depconfig import DepcacheConfig

# The v1.0.1 single header closes namespace linq right after the Allocator alias which leaves IteratorBase and the
# builder structs outside of the namespace. The final "}" in the file already closes the namespace.
PREMATURE_NAMESPACE_CLOSE = "using Allocator = std::allocator<T>;\n}"
PREMATURE_NAMESPACE_CLOSE_FIX = ("using Allocator = std::allocator<T>;\n"
                                 "// } -- removed: premature namespace close (patched)")


class BuildLinqForCpp(HeaderOnlyProject):
    target = "linq-for-cpp"
    repository = SingleFileRepository(
        "https://github.com/harayuu9/LinqForCpp/releases/download/v1.0.1/LinqForCpp.zip")
    cached_artifacts = ("include/SingleHeader/Linq.hpp",)

    @classmethod
    def get_source_dir(cls, config: DepcacheConfig) -> Path:
        return config.download_root

    @property
    def header(self) -> Path:
        return self.install_dir / "include/SingleHeader/Linq.hpp"

    def install(self) -> None:
        include_dir = self.install_dir / "include"
        archive = self.repository.file_path(self.source_dir)
        try:
            self.extract_archive(archive, include_dir)
        except subprocess.CalledProcessError:
            self.clean_directory(include_dir, ensure_dir_exists=False)
            self.fatal("Could not extract", archive,
                       fixit_hint="Try removing the cached file and re-running:\n  rm " + str(archive))
            return
        if not self.header.exists() and not self.config.pretend:
            self.fatal("LinqForCpp installation failed:", self.header, "is missing")
            return
        self.patch_header()

    def patch_header(self) -> None:
        if self.patch_file(self.header, PREMATURE_NAMESPACE_CLOSE, PREMATURE_NAMESPACE_CLOSE_FIX):
            self.info("Patched", self.header, "(namespace fix)")
