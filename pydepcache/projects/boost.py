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
from pathlib import Path

from .project import Project
from .repository import ExternallyManagedSourceRepository
from ..link_registry import CMakePackage, LinkInfo
from ..utils import OSInfo

BOOST_MIN_VERSION = "1.80.0"


class BuildBoost(Project):
    """
    Boost is not built by depcache. Only an imported target for the system installation (found with
    find_package(Boost CONFIG)) is registered.
    """
    repository = ExternallyManagedSourceRepository()

    @classmethod
    def setup_config_options(cls, **kwargs) -> None:
        super().setup_config_options(**kwargs)
        cls.components = cls.add_list_option("components", default=["headers"], metavar="COMPONENTS",
                                             help="The Boost components to link against (e.g. filesystem)")

    def check_system_dependencies(self) -> None:
        super().check_system_dependencies()
        prefixes = [Path("/usr/include"), Path("/usr/local/include"), Path("/opt/homebrew/include")]
        if not any((p / "boost/version.hpp").exists() for p in prefixes):
            self.dependency_warning("Could not find the Boost headers in the default locations, find_package(Boost",
                                    BOOST_MIN_VERSION + ") will probably fail",
                                    install_instructions=OSInfo.install_instructions(
                                        "boost", is_lib=True, apt="libboost-all-dev", dnf="boost-devel",
                                        homebrew="boost", freebsd="boost-libs"))

    def process(self) -> None:
        # already done by TargetManager.run() unless process() is called directly
        if not self._system_deps_checked:
            self.check_system_dependencies()
        self.info("Using the system installation of Boost >=", BOOST_MIN_VERSION, "with components",
                  ", ".join(self.components))
        self.register_link_target()

    def link_info(self) -> LinkInfo:
        package = CMakePackage("Boost", ["Boost::" + c for c in self.components], version=BOOST_MIN_VERSION,
                               components=self.components, config_mode=True)
        return LinkInfo(self.target, self.install_dir, include_dirs=[], packages=[package])
