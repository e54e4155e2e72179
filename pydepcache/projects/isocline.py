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


class BuildIsocline(CMakeProject):
    repository = ArchiveRepository(["https://github.com/daanx/isocline/archive/refs/tags/v1.0.9.tar.gz"],
                                   archive_name="isocline-1.0.9.tar.gz")
    # The CMakeLists.txt also builds a test program, only the library is needed
    make_targets = ("isocline",)
    has_install_rules = False
    cached_artifacts = ("lib/libisocline.a", "include/isocline.h")

    def install(self) -> None:
        # Multi-config generators put the library in a per-configuration subdirectory
        candidates = [self.build_dir / "libisocline.a", self.build_dir / "Release/libisocline.a",
                      self.build_dir / "Debug/libisocline.a"]
        library = next((c for c in candidates if c.exists()), None)
        if library is None:
            if not self.config.pretend:
                self.fatal("isocline build produced no libisocline.a in", self.build_dir)
            library = candidates[0]
        self.install_file(library, self.install_dir / "lib/libisocline.a", force=True)
        self.install_file(self.source_dir / "include/isocline.h", self.install_dir / "include/isocline.h", force=True)
