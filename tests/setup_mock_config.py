from enum import Enum
from pathlib import Path

from pydepcache.config.depconfig import DepcacheConfig
from pydepcache.config.loader import DefaultValueOnlyConfigLoader
from pydepcache.projects.simple_project import SimpleProject
from pydepcache.targets import Target


class MockArgs(object):
    targets = []


class MockActions(Enum):
    pass


class MockConfig(DepcacheConfig):
    def __init__(self, download_root: Path, pretend=True):
        self.fake_loader = DefaultValueOnlyConfigLoader()
        self.fake_loader._parsed_args = MockArgs()
        super().__init__(self.fake_loader, action_class=MockActions)
        self.default_action = ""
        self.action = None
        self.pretend = pretend
        self.clean = False
        self.verbose = True
        self.debug_output = True
        self.quiet = False
        self.print_targets_only = False
        self.skip_update = False
        self.include_dependencies = False
        self.make_jobs = 2
        self.force = True
        self.write_logfile = False
        self.TEST_MODE = True
        self.load()

        self.download_root = download_root
        assert self._ensure_required_properties_set()


def setup_mock_config(download_root: Path, pretend=True) -> MockConfig:
    config = MockConfig(download_root, pretend)
    SimpleProject._config_loader = DefaultValueOnlyConfigLoader()
    # noinspection PyProtectedMember
    SimpleProject._config_loader._depcache_config = config
    Target.instantiating_targets_should_warn = False
    return config
