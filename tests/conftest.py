import argparse
import pytest
import sys
from pathlib import Path

from pydepcache.config.loader import ConfigLoaderBase
from pydepcache.config.defaultconfig import DefaultDepcacheConfig, DefaultDepcacheConfigLoader

# noinspection PyUnresolvedReferences
from pydepcache.projects import *  # noqa: F401, F403, RUF100
from pydepcache.projects.simple_project import SimpleProject
from pydepcache.targets import target_manager


class TestArgumentParser(argparse.ArgumentParser):
    # This is not a test, despite its name matching Test*
    __test__ = False

    # Don't use sys.exit(), raise an exception instead
    def exit(self, status=0, message=None):
        if status == 2:
            raise KeyError(message)
        else:
            raise RuntimeError(status, message)


# noinspection PyProtectedMember
@pytest.fixture(scope="session", autouse=True)
def _register_targets():
    sys.argv = ["depcache.py"]
    loader = DefaultDepcacheConfigLoader(argparser_class=TestArgumentParser)
    loader._config_path = Path("/dev/null")
    all_target_names = list(sorted(target_manager.target_names))
    ConfigLoaderBase._depcache_config = DefaultDepcacheConfig(loader, all_target_names)
    ConfigLoaderBase._depcache_config.TEST_MODE = True
    SimpleProject._config_loader = loader
    target_manager.register_command_line_options()
    ConfigLoaderBase._depcache_config.load()
