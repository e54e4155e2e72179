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
from .project import PythonConfigureProject
from .repository import ArchiveRepository
from ..link_registry import LinkInfo
from ..utils import OSInfo


class BuildBotan(PythonConfigureProject):
    repository = ArchiveRepository(["https://github.com/randombit/botan/archive/refs/tags/3.10.0.tar.gz"],
                                   archive_name="botan-3.10.0.tar.gz")
    configure_options = (
        "--minimized-build",
        "--enable-modules=sha2_32,sha2_64,sha3,hmac,aes,gcm,ctr,auto_rng,system_rng,base64,hex",
        "--disable-shared-library",
    )
    cached_artifacts = ("lib/libbotan-3.a",)
    # Botan 3 headers require C++20
    cxx_standard = 20

    def link_info(self) -> LinkInfo:
        info = super().link_info()
        info.include_dirs = [self.install_dir / "include/botan-3"]
        if OSInfo.IS_MAC:
            info.frameworks.extend(["Security", "CoreFoundation"])
        else:
            info.needs_threads = True
        return info
