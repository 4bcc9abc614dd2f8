import inspect
import os
import tempfile
from pathlib import Path

import pytest

from pyffbuild.config.ffbuildconfig import DistributionKind, FFBuildAction
from pyffbuild.config.loader import JsonAndCommandLineConfigOption
from pyffbuild.projects.dav1d import BuildDav1d
from pyffbuild.projects.ffmpeg import BuildFFmpeg
from pyffbuild.projects.svt_av1 import BuildSvtAv1
from pyffbuild.projects.zimg import BuildZimg
from pyffbuild.utils import default_make_jobs_count
from .setup_mock_ffbuildconfig import parse_arguments, parse_config_file_and_args


def test_defaults():
    config = parse_arguments([])
    assert config.action == [FFBuildAction.BUILD]
    assert config.targets == []
    assert config.install_prefix == Path(os.path.expanduser("~/.local"))
    assert config.build_root == Path("/tmp/ffmpeg_build_temp")
    assert config.make_jobs == default_make_jobs_count()
    assert config.distribution == DistributionKind.AUTO
    assert config.vaapi
    assert not config.pretend
    assert not config.skip_system_dependencies
    assert BuildSvtAv1.git_url == "https://gitlab.com/AOMediaCodec/SVT-AV1.git"
    assert BuildSvtAv1.git_branch == "master"
    assert BuildFFmpeg.extra_configure_options == []


def test_skip_system_dependencies():
    conf = parse_arguments([])
    skip = inspect.getattr_static(conf, "skip_system_dependencies")
    assert isinstance(skip, JsonAndCommandLineConfigOption)
    assert not parse_arguments([]).skip_system_dependencies
    # check that --no-foo and --foo work:
    assert parse_arguments(["--skip-system-dependencies"]).skip_system_dependencies
    assert not parse_arguments(["--no-skip-system-dependencies"]).skip_system_dependencies
    # check config file
    with tempfile.NamedTemporaryFile() as t:
        config = Path(t.name)
        config.write_bytes(b'{ "skip-system-dependencies": true}')
        assert parse_arguments([], config_file=config).skip_system_dependencies
        # command line overrides config file:
        assert parse_arguments(["--skip-system-dependencies"], config_file=config).skip_system_dependencies
        assert not parse_arguments(["--no-skip-system-dependencies"], config_file=config).skip_system_dependencies
        config.write_bytes(b'{ "skip-system-dependencies": false}')
        assert not parse_arguments([], config_file=config).skip_system_dependencies
        assert parse_arguments(["--skip-system-dependencies"], config_file=config).skip_system_dependencies


def test_paths_and_jobs():
    config = parse_arguments(["--install-prefix=/opt/ffmpeg", "--build-root", "/var/tmp/ffbuild", "-j", "3"])
    assert config.install_prefix == Path("/opt/ffmpeg")
    assert config.build_root == Path("/var/tmp/ffbuild")
    assert config.make_jobs == 3
    # relative paths in the config file are resolved relative to the config file
    with tempfile.TemporaryDirectory() as td:
        config_file = Path(td, "ffbuild.json")
        config_file.write_text('{ "install-prefix": "prefix", "build-root": "~/build" }')
        config = parse_arguments([], config_file=config_file)
        assert config.install_prefix == Path(td, "prefix")
        assert config.build_root == Path(os.path.expanduser("~/build"))


def test_verbose_and_quiet_are_exclusive():
    assert parse_arguments(["-v"]).verbose
    assert parse_arguments(["--quiet"]).quiet
    with pytest.raises(KeyError, match="not allowed with argument"):
        parse_arguments(["--quiet", "--verbose"])


def test_verbose_and_quiet_from_config_file():
    config = parse_config_file_and_args(b'{"quiet": true}')
    assert config.quiet
    assert not config.verbose
    config = parse_config_file_and_args(b'{"verbose": true}')
    assert config.verbose
    assert not config.quiet
    # command line overrides config file:
    assert not parse_config_file_and_args(b'{"quiet": true}', "--no-quiet").quiet


def test_actions():
    assert parse_arguments(["--list-targets"]).action == [FFBuildAction.LIST_TARGETS]
    assert parse_arguments(["--dump-configuration"]).action == [FFBuildAction.DUMP_CONFIGURATION]
    assert parse_arguments(["--get-config-option", "make-jobs"]).get_config_option == "make-jobs"


def test_target_names():
    assert parse_arguments(["ffmpeg"]).targets == ["ffmpeg"]
    assert parse_arguments(["svt-av1", "-p", "opus"]).targets == ["svt-av1", "opus"]


def test_unknown_option_suggestion():
    with pytest.raises(KeyError, match=r"unknown argument '--make-jbs'. Did you mean --make-jobs"):
        parse_arguments(["--make-jbs", "4"])


def test_target_options_from_command_line():
    parse_arguments(["--svt-av1/git-url", "https://github.com/BlueSwordM/svt-av1-psyex.git",
                     "--svt-av1/git-branch=main", "--ffmpeg/configure-options=--enable-libfreetype --disable-doc"])
    assert BuildSvtAv1.git_url == "https://github.com/BlueSwordM/svt-av1-psyex.git"
    assert BuildSvtAv1.git_branch == "main"
    assert BuildFFmpeg.extra_configure_options == ["--enable-libfreetype", "--disable-doc"]
    # the other targets keep their defaults
    assert BuildZimg.git_url == "https://github.com/sekrit-twc/zimg.git"


def test_target_options_from_nested_json():
    config = b"""
// Comments are allowed in config files
{
    "make-jobs": 5,
    # both comment styles are supported
    "svt-av1": {
        "git-url": "https://example.com/svt-av1.git"
    },
    "ffmpeg/configure-options": ["--enable-libfreetype"],
    "zimg": { "configure-options": "--disable-simd" }
}
"""
    result = parse_config_file_and_args(config)
    assert result.make_jobs == 5
    assert BuildSvtAv1.git_url == "https://example.com/svt-av1.git"
    assert BuildFFmpeg.extra_configure_options == ["--enable-libfreetype"]
    # a string is split like a shell command line
    assert BuildZimg.extra_configure_options == ["--disable-simd"]
    # command line takes precedence over the config file
    parse_config_file_and_args(config, "--svt-av1/git-url=https://example.org/other.git", "-j2")
    assert BuildSvtAv1.git_url == "https://example.org/other.git"


def test_duplicate_key_error():
    with pytest.raises(SyntaxError, match="duplicate key: 'make-jobs'"):
        parse_config_file_and_args(b'{ "make-jobs": 1, "make-jobs": 2 }')


def test_unknown_config_key():
    with pytest.raises(ValueError, match="Unknown config option 'not-an-option'"):
        parse_config_file_and_args(b'{ "not-an-option": 1 }')
    # command line only options can't be set in the config file:
    with pytest.raises(ValueError, match="Option 'pretend' cannot be used in the config file"):
        parse_config_file_and_args(b'{ "pretend": true }')
    parse_config_file_and_args(b'{ "not-an-option": 1 }', allow_unknown_options=True)


def test_config_file_include():
    with tempfile.TemporaryDirectory() as td:
        base = Path(td, "base.json")
        base.write_text('{ "make-jobs": 7, "vaapi": false, "dav1d": { "git-branch": "1.4.0" } }')
        main_config = Path(td, "ffbuild.json")
        main_config.write_text('{ "#include": "base.json", "make-jobs": 2 }')
        config = parse_arguments([], config_file=main_config)
        # values in the including file override the included one
        assert config.make_jobs == 2
        assert not config.vaapi
        assert BuildDav1d.git_branch == "1.4.0"


def test_invalid_value():
    with pytest.raises(SystemExit):
        assert parse_config_file_and_args(b'{ "make-jobs": "many" }').make_jobs
