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


class BuildGlog(CMakeProject):
    repository = ArchiveRepository(["https://github.com/google/glog/archive/refs/tags/v0.7.1.tar.gz"],
                                   archive_name="glog-0.7.1.tar.gz")
    cached_artifacts = ("lib/libglog.a",)
    needs_threads = True

    def setup(self) -> None:
        super().setup()
        self.add_cmake_options(BUILD_SHARED_LIBS=False, WITH_GFLAGS=False, WITH_GTEST=False, WITH_UNWIND=False,
                               BUILD_TESTING=False)

    def link_info(self) -> LinkInfo:
        # glog::glog also sets GLOG_USE_GLOG_EXPORT which is required by the 0.7 headers
        return LinkInfo(self.target, self.install_dir, include_dirs=[], needs_threads=True,
                        packages=[CMakePackage("glog", ["glog::glog"], config_mode=True,
                                               paths=[self.cmake_package_dir("glog")])])
