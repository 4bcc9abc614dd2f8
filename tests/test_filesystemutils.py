from pathlib import Path

import pytest

from pyffbuild.filesystemutils import FileSystemUtils
from pyffbuild.utils import BuildError
from .setup_mock_ffbuildconfig import parse_arguments


def test_clean_directory(tmp_path: Path):
    fs = FileSystemUtils(parse_arguments([]))
    build_root = tmp_path / "build"
    (build_root / "ffmpeg/libavcodec").mkdir(parents=True)
    (build_root / "ffmpeg/libavcodec/old.o").write_text("")
    fs.clean_directory(build_root)
    assert build_root.is_dir()
    assert list(build_root.iterdir()) == []
    # a missing directory is created
    fs.clean_directory(tmp_path / "new")
    assert (tmp_path / "new").is_dir()
    fs.clean_directory(tmp_path / "not-created", ensure_dir_exists=False)
    assert not (tmp_path / "not-created").exists()


def test_clean_directory_pretend(tmp_path: Path):
    fs = FileSystemUtils(parse_arguments(["--pretend"]))
    (tmp_path / "build/SVT-AV1").mkdir(parents=True)
    fs.clean_directory(tmp_path / "build")
    fs.delete_directory(tmp_path / "build/SVT-AV1")
    fs.delete_file(tmp_path / "build/does-not-exist")
    assert (tmp_path / "build/SVT-AV1").is_dir()
    fs.makedirs(tmp_path / "prefix")
    assert not (tmp_path / "prefix").exists()


def test_refuses_to_delete_root_or_home():
    fs = FileSystemUtils(parse_arguments(["--pretend"]))
    with pytest.raises(BuildError, match="Refusing to delete"):
        fs.delete_directory(Path("/"))
    with pytest.raises(BuildError, match="Refusing to delete"):
        fs.delete_directory(Path.home())
