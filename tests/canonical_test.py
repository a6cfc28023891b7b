"""
URL canonicalization tests.
"""

import unittest

from sitecrawl.crawler.canonical import canonicalize, require_canonical, same_domain
from sitecrawl.errors import UnparsableURL


class TestCanonicalize(unittest.TestCase):

    def test_query_and_fragment_do_not_change_identity(self):
        variants = [
            "https://shop.test/products/widget",
            "https://shop.test/products/widget?color=red",
            "https://shop.test/products/widget#reviews",
            "https://shop.test/products/widget?color=red&size=9#reviews",
            "https://shop.test/products/widget?",
        ]
        canonical = {canonicalize(url) for url in variants}
        self.assertEqual(canonical, {"https://shop.test/products/widget"})

    def test_idempotent(self):
        urls = [
            "HTTP://Shop.TEST/Products/Widget/?q=1#x",
            "https://user:pw@shop.test:8443/a/b/",
            "http://shop.test",
            "https://shop.test/a%20b;v=1",
        ]
        for url in urls:
            once = canonicalize(url)
            self.assertIsNotNone(once, url)
            self.assertEqual(canonicalize(once), once)

    def test_host_is_case_folded_but_path_is_not(self):
        self.assertEqual(
            canonicalize("https://Shop.Test/Products/Widget"),
            "https://shop.test/Products/Widget",
        )

    def test_trailing_slash_and_port_are_preserved(self):
        self.assertEqual(canonicalize("http://shop.test:8080/dir/"), "http://shop.test:8080/dir/")
        self.assertEqual(canonicalize("http://shop.test:80/dir"), "http://shop.test:80/dir")
        self.assertNotEqual(canonicalize("http://shop.test/dir/"), canonicalize("http://shop.test/dir"))

    def test_empty_path_becomes_root(self):
        self.assertEqual(canonicalize("https://shop.test"), "https://shop.test/")
        self.assertEqual(canonicalize("https://shop.test?page=2"), "https://shop.test/")

    def test_relative_references_resolve_against_base(self):
        base = "https://shop.test/catalog/shoes/index.html?sort=asc"
        self.assertEqual(canonicalize("boots", base), "https://shop.test/catalog/shoes/boots")
        self.assertEqual(canonicalize("../hats?x=1", base), "https://shop.test/catalog/hats")
        self.assertEqual(canonicalize("/about#team", base), "https://shop.test/about")
        self.assertEqual(canonicalize("#top", base), "https://shop.test/catalog/shoes/index.html")
        self.assertEqual(canonicalize("//cdn.test/x", base), "https://cdn.test/x")
        self.assertEqual(canonicalize("  /padded  ", base), "https://shop.test/padded")

    def test_absolute_url_ignores_base(self):
        self.assertEqual(
            canonicalize("http://other.test/p?q", "https://shop.test/"),
            "http://other.test/p",
        )

    def test_unparsable_inputs_return_none(self):
        for raw in ["", "   ", "/relative/without/base", "mailto:sales@shop.test",
                    "javascript:void(0)", "ftp://shop.test/file", "http://[::1/",
                    "http://shop.test:99999/", "http://shop.test:port/", "http:///no-host"]:
            self.assertIsNone(canonicalize(raw), raw)
        self.assertIsNone(canonicalize(None))

    def test_require_canonical_raises(self):
        with self.assertRaises(UnparsableURL) as cm:
            require_canonical("mailto:sales@shop.test")
        self.assertEqual(cm.exception.url, "mailto:sales@shop.test")
        self.assertEqual(require_canonical("https://shop.test/a?b"), "https://shop.test/a")


class TestSameDomain(unittest.TestCase):

    def test_compares_hostnames_only(self):
        self.assertTrue(same_domain("http://shop.test/a", "https://SHOP.test:8443/b"))

    def test_subdomains_are_different_hosts(self):
        self.assertFalse(same_domain("https://shop.test/", "https://www.shop.test/"))
        self.assertFalse(same_domain("https://shop.test/", "https://other.test/"))

    def test_missing_host_is_never_same(self):
        self.assertFalse(same_domain("/relative", "/relative"))


if __name__ == '__main__':
    unittest.main()
