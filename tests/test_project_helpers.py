import re
from pathlib import Path

import pytest

from pyffbuild.distro import ArchLinux
from pyffbuild.pipeline import BuildContext
from pyffbuild.projects.project import CMakeProject, GitRepository, MakeCommandKind, MakeOptions, MesonProject
from .setup_mock_ffbuildconfig import parse_arguments


class FakeCMakeProject(CMakeProject):
    do_not_add_to_targets = True
    target = "fake-cmake-project"
    repository = GitRepository("https://example.com/fake.git")


class FakeMesonProject(MesonProject):
    do_not_add_to_targets = True
    target = "fake-meson-project"
    repository = GitRepository("https://example.com/fake.git")


def _context(config) -> BuildContext:
    return BuildContext(distribution=ArchLinux(config, Path("/this/path/does/not/exist")),
                        install_prefix=Path("/opt/prefix"), build_root=Path("/build"), make_jobs=8)


def test_add_cmake_option():
    def add_options_test(expected, **kwargs):
        test_project.add_cmake_options(**kwargs)
        assert test_project.configure_args == expected
        test_project.configure_args.clear()  # reset for next test

    config = parse_arguments([])
    test_project = FakeCMakeProject(config, _context(config))
    assert test_project.configure_args == []
    assert test_project.build_dir == Path("/build/fake-cmake-project/build")

    # Test adding various types of options:
    add_options_test(["-DSTR_OPTION=abc"], STR_OPTION="abc")
    add_options_test(["-DINT_OPTION=2"], INT_OPTION=2)
    add_options_test(["-DBOOL_OPTION1=ON", "-DBOOL_OPTION2=OFF"], BOOL_OPTION1=True, BOOL_OPTION2=False)
    add_options_test(["-DPATH_OPTION=/some/path"], PATH_OPTION=Path("/some/path"))
    # Lists need to be converted manually
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'list'>: ['a', 'b', 'c']")):
        add_options_test([], LIST_OPTION=["a", "b", "c"])
    # Floats need to be converted manually
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'float'>: 0.1")):
        add_options_test([], FLOAT_OPTION=0.1)
    # Check that tuples and bytes are rejected
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'bytes'>: b'abc'")):
        add_options_test([], BYTE_OPTION=b"abc")
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'tuple'>: ('abc',)")):
        add_options_test([], TUPLE_OPTION=("abc",))
    test_project.configure_args.clear()
    # Setting an option again replaces the previous value
    test_project.add_cmake_options(CMAKE_BUILD_TYPE="Debug", OTHER="x")
    test_project.add_cmake_options(CMAKE_BUILD_TYPE="Release")
    assert test_project.configure_args == ["-DOTHER=x", "-DCMAKE_BUILD_TYPE=Release"]


def test_cmake_setup():
    config = parse_arguments([])
    test_project = FakeCMakeProject(config, _context(config))
    test_project.setup()
    assert test_project.configure_command == "cmake"
    assert test_project.configure_args == ["/build/fake-cmake-project", "-DCMAKE_INSTALL_PREFIX=/opt/prefix",
                                           "-DCMAKE_BUILD_TYPE=Release"]


def test_add_meson_option():
    config = parse_arguments([])
    test_project = FakeMesonProject(config, _context(config))
    test_project.setup()
    assert test_project.configure_args == ["setup", "/build/fake-meson-project/build", "/build/fake-meson-project",
                                           "--prefix=/opt/prefix", "--buildtype=release"]
    test_project.configure_args.clear()
    test_project.add_meson_options(enable_tests=False, enable_asm=True, bitdepths="8,16", max_threads=4)
    assert test_project.configure_args == ["-Denable_tests=false", "-Denable_asm=true", "-Dbitdepths=8,16",
                                           "-Dmax_threads=4"]
    with pytest.raises(TypeError, match=re.escape("Unsupported type <class 'list'>: ['8', '16']")):
        test_project.add_meson_options(bitdepths=["8", "16"])
    assert test_project.make_args.command == "ninja"


def test_make_options():
    options = MakeOptions(MakeCommandKind.GnuMake, V=True)
    assert options.command == "make"
    options.set(PREFIX=Path("/opt/prefix"), JOBS=3, QUIET=False)
    assert options.get_commandline_args(jobs=16) == ["-j16", "V=1", "PREFIX=/opt/prefix", "JOBS=3", "QUIET=0"]
    assert options.get_commandline_args(targets=["install"], verbose=True) == [
        "install", "V=1", "PREFIX=/opt/prefix", "JOBS=3", "QUIET=0"]
    options.set_env(LC_ALL="C")
    assert options.env_vars == {"LC_ALL": "C"}

    ninja = MakeOptions(MakeCommandKind.Ninja)
    assert ninja.command == "ninja"
    assert ninja.get_commandline_args(targets=["install"], jobs=4) == ["-j4", "install"]
    assert ninja.get_commandline_args(jobs=4, verbose=True) == ["-j4", "-v"]
    with pytest.raises(AssertionError, match="Should only pass int/bool/str/Path here"):
        ninja.set(FOO=1.5)


def test_verbose_build_output():
    config = parse_arguments(["--verbose"])
    cmake_project = FakeCMakeProject(config, _context(config))
    cmake_project.setup()
    assert cmake_project.make_args.get_commandline_args(jobs=8) == ["-j8", "VERBOSE=1"]

    from pyffbuild.projects.opus import BuildOpus
    opus = BuildOpus(config, _context(config))
    opus.setup()
    assert opus.make_args.env_vars == {"V": "1"}

    quiet_config = parse_arguments([])
    opus = BuildOpus(quiet_config, _context(quiet_config))
    opus.setup()
    assert opus.make_args.env_vars == {}
    assert opus.make_args.get_commandline_args(jobs=8) == ["-j8"]


def test_rpath_and_configure_args_of_ffmpeg():
    from pyffbuild.projects.ffmpeg import BuildFFmpeg

    config = parse_arguments(["--ffmpeg/configure-options=--enable-gpl --enable-libfreetype"])
    ffmpeg = BuildFFmpeg(config, _context(config))
    ffmpeg.setup()
    assert ffmpeg.source_dir == Path("/build/ffmpeg")
    assert ffmpeg.rpath_ldflags() == "--extra-ldflags=-Wl,-rpath,/opt/prefix/lib"
    args = ffmpeg.all_configure_args()
    # user-provided options are appended but duplicates are removed
    assert args.count("--enable-gpl") == 1
    assert args[-1] == "--enable-libfreetype"
    assert args[0] == "--prefix=/opt/prefix"
