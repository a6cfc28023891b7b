"""
Configuration loading and CLI wiring tests.
"""

import os
import tempfile
import unittest
from unittest.mock import patch

from sitecrawl.errors import ConfigError
from sitecrawl.main import EXIT_ERROR, main
from sitecrawl.utils.config import Config, load_config


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def write_yaml(self, text):
        path = os.path.join(self.tmpdir, 'config.yaml')
        with open(path, 'w') as f:
            f.write(text)
        return path

    def test_defaults_without_file(self):
        config = load_config(None, environ={})
        self.assertEqual(config.crawler.max_depth, 10)
        self.assertEqual(config.crawler.max_concurrent_requests, 5)
        self.assertEqual(config.storage.state_file, 'output/crawled_urls.csv')

    def test_yaml_values_are_loaded(self):
        path = self.write_yaml(
            "crawler:\n"
            "  seed_urls: ['https://shop.test/']\n"
            "  max_depth: 3\n"
            "  max_concurrent_requests: 2\n"
            "storage:\n"
            "  state_file: state/visited.csv\n"
        )
        config = load_config(path, environ={})
        self.assertEqual(config.crawler.seed_urls, ['https://shop.test/'])
        self.assertEqual(config.crawler.max_depth, 3)
        self.assertEqual(config.crawler.max_concurrent_requests, 2)
        self.assertEqual(config.storage.state_file, 'state/visited.csv')
        self.assertEqual(config.logging.level, 'INFO')

    def test_environment_overrides_yaml_and_flags_override_environment(self):
        path = self.write_yaml("crawler:\n  max_depth: 3\n  max_concurrent_requests: 2\n")
        environ = {'MAX_DEPTH': '7', 'MAX_CONCURRENT_REQUESTS': '9', 'STATE_FILE_PATH': 'env.csv'}

        config = load_config(path, overrides={'crawler': {'max_depth': 1, 'max_concurrent_requests': None}},
                             environ=environ)

        self.assertEqual(config.crawler.max_depth, 1)
        self.assertEqual(config.crawler.max_concurrent_requests, 9)
        self.assertEqual(config.storage.state_file, 'env.csv')

    def test_invalid_values_are_rejected(self):
        cases = [
            {'crawler': {'max_depth': -1}},
            {'crawler': {'max_concurrent_requests': 0}},
            {'crawler': {'fetch_timeout': 0}},
            {'crawler': {'seed_urls': ['not a url']}},
            {'crawler': {'seed_urls': ['https://shop.test/', 'https://other.test/']}},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ConfigError):
                    load_config(None, overrides=overrides, environ={})

    def test_bad_environment_value(self):
        with self.assertRaises(ConfigError):
            load_config(None, environ={'MAX_DEPTH': 'deep'})

    def test_unknown_keys_are_rejected(self):
        path = self.write_yaml("crawler:\n  max_dept: 3\n")
        with self.assertRaises(ConfigError):
            load_config(path, environ={})

    def test_missing_explicit_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config(os.path.join(self.tmpdir, 'nope.yaml'), environ={})

    def test_config_dataclass_defaults_are_independent(self):
        first, second = Config(), Config()
        first.crawler.seed_urls.append('https://shop.test/')
        self.assertEqual(second.crawler.seed_urls, [])


class TestMain(unittest.TestCase):

    def test_missing_seed_is_an_error(self):
        with patch('sitecrawl.main.Path.exists', return_value=False):
            self.assertEqual(main([]), EXIT_ERROR)

    def test_invalid_option_is_an_error(self):
        with patch('sitecrawl.main.Path.exists', return_value=False):
            self.assertEqual(main(['https://shop.test/', '--max-depth', '-2']), EXIT_ERROR)

    def test_runs_crawler_with_cli_overrides(self):
        captured = {}

        async def fake_run(app, config):
            captured['config'] = config
            return 0

        with tempfile.TemporaryDirectory() as tmpdir, \
                patch('sitecrawl.main.Path.exists', return_value=False), \
                patch('sitecrawl.main.setup_logging'), \
                patch('sitecrawl.main.CrawlerApp.run', fake_run):
            state_file = os.path.join(tmpdir, 'visited.csv')
            code = main(['https://shop.test/', '--max-depth', '2',
                         '--max-concurrent', '4', '--state-file', state_file])

        self.assertEqual(code, 0)
        config = captured['config']
        self.assertEqual(config.crawler.seed_urls, ['https://shop.test/'])
        self.assertEqual(config.crawler.max_depth, 2)
        self.assertEqual(config.crawler.max_concurrent_requests, 4)
        self.assertEqual(config.storage.state_file, state_file)


if __name__ == '__main__':
    unittest.main()
