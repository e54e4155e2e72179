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
from ..link_registry import CMakePackage, LinkInfo


class BuildGflags(CMakeProject):
    repository = ArchiveRepository(["https://github.com/gflags/gflags/archive/refs/tags/v2.2.2.tar.gz"],
                                   archive_name="gflags-2.2.2.tar.gz")
    cached_artifacts = ("lib/libgflags.a",)

    def setup(self) -> None:
        super().setup()
        self.add_cmake_options(BUILD_SHARED_LIBS=False, BUILD_STATIC_LIBS=True, BUILD_TESTING=False,
                               BUILD_PACKAGING=False, BUILD_gflags_nothreads_LIB=False)
        # gflags 2.2.2 requires an ancient CMake version that newer CMake releases refuse
        self.add_cmake_options(CMAKE_POLICY_VERSION_MINIMUM="3.5")

    def link_info(self) -> LinkInfo:
        # The installed package config provides gflags::gflags with the right include dirs and definitions
        return LinkInfo(self.target, self.install_dir, include_dirs=[],
                        packages=[CMakePackage("gflags", ["gflags::gflags"], config_mode=True,
                                               paths=[self.cmake_package_dir("gflags")],
                                               variables={"GFLAGS_USE_TARGET_NAMESPACE": "TRUE",
                                                          "GFLAGS_NOTHREADS": "OFF"})])
