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
import shutil

from .cmake_project import CMakeProject
from .repository import GitRepository
from ..link_registry import CMakePackage, LinkInfo
from ..targets import target_manager
from ..utils import OSInfo


class BuildLlamaCpp(CMakeProject):
    target = "llama-cpp"
    repository = GitRepository("https://github.com/ggerganov/llama.cpp.git", shallow=True)
    cached_artifacts = ("lib/libllama.a", "lib/libllama-common.a")
    needs_threads = True

    def setup(self) -> None:
        super().setup()
        self.add_cmake_options(LLAMA_BUILD_COMMON=True, LLAMA_BUILD_EXAMPLES=False, LLAMA_BUILD_TESTS=False,
                               LLAMA_BUILD_SERVER=False, BUILD_SHARED_LIBS=False)
        if OSInfo.IS_MAC:
            self.add_cmake_options(GGML_METAL=True, GGML_METAL_EMBED_LIBRARY=True)
        elif self.use_cuda:
            self.info("Found nvcc, enabling the CUDA backend for", self.target)
            self.add_cmake_options(GGML_CUDA=True)

    @property
    def use_cuda(self) -> bool:
        return not OSInfo.IS_MAC and shutil.which("nvcc") is not None

    def install(self) -> None:
        super().install()
        # The common helper library is not part of the install rules
        self.install_file(self.build_dir / "common/libcommon.a", self.install_dir / "lib/libllama-common.a",
                          force=True)
        self.install_files_matching(self.source_dir / "common", "*.h", self.install_dir / "include/llama-common")

    def link_info(self) -> LinkInfo:
        lib_dir = self.install_dir / "lib"
        # common -> llama -> ggml backends -> ggml-base
        ggml_libs = sorted(lib_dir.glob("libggml*.a"), key=lambda p: (p.name == "libggml-base.a", p.name)) \
            if lib_dir.is_dir() else [lib_dir / "libggml.a", lib_dir / "libggml-base.a"]
        info = LinkInfo(self.target, self.install_dir,
                        include_dirs=[self.install_dir / "include", self.install_dir / "include/llama-common"],
                        libraries=[lib_dir / "libllama-common.a", lib_dir / "libllama.a", *ggml_libs],
                        needs_threads=True)
        if OSInfo.IS_MAC:
            info.frameworks.extend(["Accelerate", "Foundation", "Metal", "MetalKit"])
        else:
            # ggml-cpu uses OpenMP when the compiler supports it
            info.packages.append(CMakePackage("OpenMP", ["$<TARGET_NAME_IF_EXISTS:OpenMP::OpenMP_CXX>"],
                                              required=False))
        if self.use_cuda:
            info.packages.append(CMakePackage("CUDAToolkit", ["CUDA::cudart_static", "CUDA::cublas_static",
                                                              "CUDA::cublasLt_static", "CUDA::cuda_driver"]))
        return info


target_manager.add_target_alias("llama", "llama-cpp")
