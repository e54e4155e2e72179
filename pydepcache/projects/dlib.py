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
import subprocess
from pathlib import Path

from .cmake_project import CMakeProject
from .repository import GitRepository
from .simple_project import BoolConfigOption
from ..config.depconfig import DepcacheConfig
from ..link_registry import CMakePackage, LinkInfo

# The pre-trained models that are extracted from the dlib-models repository
DLIB_MODEL_FILES = (
    # Face recognition
    "dlib_face_recognition_resnet_model_v1.dat.bz2",
    "face_recognition_densenet_model_v1.dat.bz2",
    "taguchi_face_recognition_resnet_model_v1.dat.bz2",
    # Face detection and landmarks
    "mmod_human_face_detector.dat.bz2",
    "shape_predictor_5_face_landmarks.dat.bz2",
    "shape_predictor_68_face_landmarks.dat.bz2",
    "shape_predictor_68_face_landmarks_GTX.dat.bz2",
    # Vehicle detection
    "mmod_rear_end_vehicle_detector.dat.bz2",
    "mmod_front_and_rear_end_vehicle_detector.dat.bz2",
    # Image classification
    "resnet34_1000_imagenet_classifier.dnn.bz2",
    "resnet50_1000_imagenet_classifier.dnn.bz2",
    "resnet34_stable_imagenet_1k.dat.bz2",
    "vit-s-16_stable_imagenet_1k.dat.bz2",
    # Other
    "mmod_dog_hipsterizer.dat.bz2",
    "dnn_gender_classifier_v1.dat.bz2",
    "dnn_age_predictor_v1.dat.bz2",
    "dcgan_162x162_synth_faces.dnn.bz2",
    "res50_self_supervised_cifar_10.dat.bz2",
    "highres_colorify.dnn.bz2",
)


class BuildDlib(CMakeProject):
    repository = GitRepository("https://github.com/davisking/dlib.git", shallow=True)
    models_repository = GitRepository("https://github.com/davisking/dlib-models.git", shallow=True)
    # Only the library in the dlib/ subdirectory is built
    root_cmakelists_subdirectory = Path("dlib")
    source_marker = "dlib/CMakeLists.txt"
    cached_artifacts = ("lib/libdlib.a",)
    with_models = BoolConfigOption("with-models", help="Also download and extract the pre-trained dlib models "
                                                       "(several hundred megabytes)")

    def __init__(self, config: DepcacheConfig) -> None:
        super().__init__(config)
        self.models_dir = config.download_root / "dlib-models"

    def setup(self) -> None:
        super().setup()
        self.add_cmake_options(DLIB_NO_GUI_SUPPORT=True)

    def process(self) -> None:
        # The models are fetched first so that the link registration can point at them
        if self.with_models:
            self.fetch_models()
        super().process()

    def fetch_models(self) -> None:
        if not self.models_repository.sources_exist(self, src_dir=self.models_dir):
            if self.config.skip_update:
                self.warning("Not downloading the dlib models since --skip-update was passed")
                return
            self.info("Downloading the dlib models (this may take a while) ...")
            self.models_repository.ensure_cloned(self, src_dir=self.models_dir)
        self.extract_models()

    def extract_models(self) -> None:
        if not shutil.which("bunzip2"):
            self.warning("bunzip2 not found, cannot extract the dlib models in", self.models_dir)
            return
        for model in DLIB_MODEL_FILES:
            compressed = self.models_dir / model
            extracted = compressed.with_suffix("")
            if extracted.exists():
                self.verbose_print("Model exists:", extracted.name)
                continue
            if not compressed.exists() and not self.config.pretend:
                continue
            self.info("Extracting", model)
            try:
                # -k keeps the compressed file so that the git checkout stays clean
                self.run_cmd("bunzip2", "-k", compressed, cwd=self.models_dir)
            except subprocess.CalledProcessError as e:
                self.warning("Failed to extract", model, "(exit code " + str(e.returncode) + ")")

    def link_info(self) -> LinkInfo:
        info = LinkInfo(self.target, self.install_dir, include_dirs=[],
                        packages=[CMakePackage("dlib", ["dlib::dlib"], config_mode=True,
                                               paths=[self.cmake_package_dir("dlib")])])
        if self.with_models and self.models_dir.exists():
            info.compile_definitions["DLIB_MODELS_PATH"] = "\"" + str(self.models_dir) + "\""
        return info
