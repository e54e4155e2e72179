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
from .project import AutotoolsProject
from .repository import ArchiveRepository


class BuildLibsodium(AutotoolsProject):
    # The GitHub tag archive does not contain a generated configure script, configure() runs autogen.sh for it
    repository = ArchiveRepository(["https://github.com/jedisct1/libsodium/archive/refs/tags/1.0.21-RELEASE.tar.gz",
                                    "https://download.libsodium.org/libsodium/releases/libsodium-1.0.21.tar.gz"],
                                   archive_name="libsodium-1.0.21.tar.gz")
    source_marker = "configure.ac"
    configure_options = ("--disable-shared", "--enable-static", "--with-pic")
    cached_artifacts = ("lib/libsodium.a",)

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        if not (self.source_dir / "configure").exists():
            self.check_required_system_tool("autoreconf", default="autoconf")
            self.check_required_system_tool("libtoolize", default="libtool", homebrew="libtool")
