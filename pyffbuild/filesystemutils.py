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

import os
from pathlib import Path

from .processutils import print_command, run_command
from .utils import BuildError, ConfigBase, status_update

__all__ = ["FileSystemUtils"]  # no-combine


class FileSystemUtils:
    def __init__(self, config: ConfigBase) -> None:
        self.config = config

    def makedirs(self, path: Path) -> None:
        print_command("mkdir", "-p", path, print_verbose_only=True, config=self.config)
        if not self.config.pretend and not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _check_safe_to_delete(path: Path) -> None:
        resolved = Path(os.path.abspath(str(path)))
        if resolved == Path("/") or resolved == Path.home().absolute():
            raise BuildError("Refusing to delete", resolved)

    def _delete_directories(self, *dirs) -> None:
        for d in dirs:
            self._check_safe_to_delete(Path(d))
        # http://stackoverflow.com/questions/5470939/why-is-shutil-rmtree-so-slow
        # shutil.rmtree(path) # this is slooooooooooooooooow for big trees
        run_command("rm", "-rf", *dirs, config=self.config, print_verbose_only=True)

    def delete_directory(self, path: Path) -> None:
        if path.is_dir() or path.is_symlink() or self.config.pretend:
            self._delete_directories(path)

    def delete_file(self, file: Path, print_verbose_only=False) -> None:
        if self.config.pretend:
            print_command("rm", "-f", file, print_verbose_only=print_verbose_only, config=self.config)
            return
        if not file.is_file():
            return
        print_command("rm", "-f", file, print_verbose_only=print_verbose_only, config=self.config)
        file.unlink()

    def clean_directory(self, path: Path, ensure_dir_exists=True) -> None:
        """After calling this function path will be an empty directory

        :param path: the directory to delete
        :param ensure_dir_exists: Create the cleaned directory if it doesn't exist
        """
        if path.is_dir():
            status_update("Removing existing directory", path)
            self._delete_directories(path)
        elif path.exists():
            self.delete_file(path)
        # always make sure the path exists
        if ensure_dir_exists:
            self.makedirs(path)
