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
import hashlib
import shutil
from pathlib import Path

from .processutils import print_command, run_command
from .utils import AnsiColour, ConfigBase, fatal_error, status_update, warning_message

__all__ = ["FileSystemUtils"]


class FileSystemUtils:
    """
    File operations that print the equivalent shell command and do nothing with --pretend. Projects and the link
    registry inherit or wrap this so that every change to the download root shows up in the output.
    """

    def __init__(self, config: ConfigBase) -> None:
        self.config = config

    def _fatal(self, *args) -> None:
        fatal_error(*args, pretend=self.config.pretend)

    def makedirs(self, path: Path) -> None:
        print_command("mkdir", "-p", path, print_verbose_only=True, config=self.config)
        if not self.config.pretend:
            path.mkdir(parents=True, exist_ok=True)

    def clean_directory(self, path: Path, ensure_dir_exists=True) -> None:
        """Removes path and all its contents and then recreates it as an empty directory unless ensure_dir_exists
        is False"""
        if path.is_dir():
            # rm -rf handles large build trees faster than shutil.rmtree()
            run_command("rm", "-rf", path, config=self.config)
        if ensure_dir_exists:
            self.makedirs(path)

    def delete_file(self, file: Path, print_verbose_only=False, warn_if_missing=False) -> None:
        print_command("rm", "-f", file, print_verbose_only=print_verbose_only, config=self.config)
        if file.is_file() or file.is_symlink():
            if not self.config.pretend:
                file.unlink()
        elif warn_if_missing:
            warning_message("Expected", file, "to exist but is missing!")

    def read_file(self, file: Path) -> str:
        if self.config.pretend and not file.is_file():
            # the download that would have created it was skipped
            return "\n"
        return file.read_text(encoding="utf-8")

    def write_file(self, file: Path, contents: str, *, overwrite: bool, print_verbose_only=True) -> None:
        """Writes contents to file, an existing file is an error unless overwrite is set"""
        print_command("echo", contents, colour=AnsiColour.green, output_file=file,
                      print_verbose_only=print_verbose_only, config=self.config)
        if self.config.pretend:
            return
        if file.exists() and not overwrite:
            self._fatal("File", file, "already exists!")
        self.makedirs(file.parent)
        file.write_text(contents, encoding="utf-8")

    def move_file(self, src: Path, dest: Path) -> None:
        if not self.config.pretend and not src.exists():
            self._fatal(src, "doesn't exist")
        if not dest.parent.exists():
            self.makedirs(dest.parent)
        run_command("mv", src, dest, config=self.config)

    def install_file(self, src: Path, dest: Path, *, force=False, print_verbose_only=True) -> None:
        """Copies src to dest (a file path, not a directory). With force an existing dest is replaced"""
        print_command("cp", *(["-f"] if force else []), src, dest, print_verbose_only=print_verbose_only,
                      config=self.config)
        if self.config.pretend:
            return
        assert not dest.is_dir(), "install_file: target is a directory and not a file: " + str(dest)
        if not src.exists():
            self._fatal("Required file", src, "does not exist")
        if dest.is_symlink() or (force and dest.exists()):
            dest.unlink()
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest, follow_symlinks=False)

    def install_files_matching(self, src_dir: Path, pattern: str, dest_dir: Path, *, force=True) -> "list[Path]":
        """Copies the files in src_dir (not its subdirectories) that match the glob pattern into dest_dir"""
        if self.config.pretend and not src_dir.is_dir():
            print_command("cp", src_dir / pattern, dest_dir, print_verbose_only=True, config=self.config)
            return []
        installed = []
        for src in sorted(p for p in src_dir.glob(pattern) if p.is_file()):
            self.install_file(src, dest_dir / src.name, force=force)
            installed.append(dest_dir / src.name)
        return installed

    def patch_file(self, file: Path, old: str, new: str) -> bool:
        """
        Replaces every occurrence of old (which may span multiple lines) in file with new.
        Returns False without changing anything if the file already contains new.
        """
        status_update("Patching", file)
        if self.config.pretend:
            return True
        if not file.exists():
            self._fatal("Required file", file, "does not exist")
        contents = file.read_text(encoding="utf-8")
        if new in contents:
            status_update(file, "has already been patched")
            return False
        if old not in contents:
            self._fatal("Could not find the text to patch in", file)
            return False
        file.write_text(contents.replace(old, new), encoding="utf-8")
        return True

    def extract_archive(self, archive: Path, dest_dir: Path) -> None:
        """Unpacks a .zip or any tarball that tar can detect the compression of into dest_dir"""
        self.makedirs(dest_dir)
        if archive.suffix == ".zip":
            run_command("unzip", "-q", "-o", archive, "-d", dest_dir, config=self.config)
        else:
            run_command("tar", "-xf", archive, "-C", dest_dir, config=self.config)

    @staticmethod
    def is_nonexistent_or_empty_dir(d: Path) -> bool:
        return not d.exists() or next(d.iterdir(), None) is None

    def sha256sum(self, file: Path) -> str:
        if not file.exists():
            self._fatal("Cannot hash", file, "since it does not exist")
            return "0"
        digest = hashlib.sha256()
        with file.open("rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                digest.update(chunk)
        return digest.hexdigest()
