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
from .repository import GitRepository
from ..link_registry import CMakePackage, LinkInfo
from ..utils import OSInfo

# Exiv2 builds a shared library by default
EXIV2_LIBRARY = "lib/libexiv2.dylib" if OSInfo.IS_MAC else "lib/libexiv2.so"


class BuildExiv2(CMakeProject):
    repository = GitRepository("https://github.com/Exiv2/exiv2.git", default_branch="v0.28.7", shallow=True)
    cached_artifacts = (EXIV2_LIBRARY, "include/exiv2/exiv2.hpp")

    def setup(self) -> None:
        super().setup()
        self.add_cmake_options(EXIV2_ENABLE_XMP=True, EXIV2_ENABLE_NLS=False, EXIV2_ENABLE_INIH=False,
                               EXIV2_BUILD_SAMPLES=False, EXIV2_BUILD_EXIV2_COMMAND=False)

    def link_info(self) -> LinkInfo:
        info = super().link_info()
        info.packages.extend([CMakePackage("ZLIB", ["ZLIB::ZLIB"]), CMakePackage("EXPAT", ["EXPAT::EXPAT"]),
                              CMakePackage("Iconv", ["Iconv::Iconv"])])
        if OSInfo.IS_MAC:
            info.frameworks.append("CoreFoundation")
        # Brotli is only needed if exiv2 found it while configuring
        info.optional_system_libraries.extend(["brotlidec", "brotlicommon"])
        return info
