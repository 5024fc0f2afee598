"""
Unit tests for key normalization.
"""

import unittest

from dropsync.domain.keys import dedupe_keys, display_key, is_blank, normalize_key, normalize_type


class TestNormalizeKey(unittest.TestCase):

    def test_trims_and_casefolds(self):
        self.assertEqual(normalize_key("  ABC123 "), "abc123")
        self.assertEqual(normalize_key("abc123"), normalize_key("ABC123"))

    def test_none_is_blank(self):
        self.assertEqual(normalize_key(None), "")
        self.assertTrue(is_blank(None))
        self.assertTrue(is_blank("   "))
        self.assertFalse(is_blank(0))

    def test_numbers_become_strings(self):
        self.assertEqual(normalize_key(1042), "1042")


class TestNormalizeType(unittest.TestCase):

    def test_punctuation_variants_match(self):
        """Differently punctuated spellings of one type are equal."""
        expected = normalize_type("Relo App")
        for variant in ("relo-app", "RELO_APP", "Relo. App", "  reloapp  "):
            self.assertEqual(normalize_type(variant), expected, variant)

    def test_different_types_differ(self):
        self.assertNotEqual(normalize_type("Relo App"), normalize_type("Standard"))


class TestDedupeKeys(unittest.TestCase):

    def test_case_insensitive_first_seen_order(self):
        self.assertEqual(dedupe_keys(["K2", "k1", "k2", " K1 ", "K3"]), ["k2", "k1", "k3"])

    def test_blanks_dropped(self):
        self.assertEqual(dedupe_keys(["", None, "  ", "a"]), ["a"])

    def test_display_key(self):
        self.assertEqual(display_key("abc123"), "ABC123")


if __name__ == "__main__":
    unittest.main()
