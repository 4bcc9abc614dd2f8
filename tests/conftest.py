import argparse
import sys
from pathlib import Path

import pytest

from pyffbuild.config.ffbuildconfig import DefaultFFBuildConfigLoader, FFBuildConfig
from pyffbuild.config.loader import ConfigLoaderBase
from pyffbuild.projects import *  # noqa: F401, F403
from pyffbuild.projects.project import Project
from pyffbuild.targets import target_manager
from pyffbuild.utils import init_global_config


class TestArgumentParser(argparse.ArgumentParser):
    # This is not a test, despite its name matching Test*
    __test__ = False

    # Don't use sys.exit(), raise an exception instead
    def exit(self, status=0, message=None):
        if status == 2:
            raise KeyError(message)
        else:
            raise RuntimeError(status, message)


@pytest.fixture(scope="session", autouse=True)
def _register_targets():
    sys.argv = ["ffbuild.py"]
    ConfigLoaderBase.is_running_unit_tests = True
    loader = DefaultFFBuildConfigLoader(argparser_class=TestArgumentParser)
    loader._config_path = Path("/dev/null")
    all_target_names = target_manager.target_names
    config = FFBuildConfig(loader, all_target_names)
    Project._config_loader = loader
    target_manager.register_command_line_options()
    loader.finalize_options(all_target_names)
    config.load([])
    init_global_config(config)
    ConfigLoaderBase._ffbuild_config = config
