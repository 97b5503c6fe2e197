import unittest

from objectstore_browser.models import ObjectEntry
from objectstore_browser.navigator import NamespaceNavigator, filter_entries


ENTRIES = [
    ObjectEntry(key="photos/2024/", is_folder=True),
    ObjectEntry(key="photos/Report.PDF", size=10),
    ObjectEntry(key="photos/notes.txt", size=3),
]


class FilterEntriesTests(unittest.TestCase):
    def test_empty_query_returns_listing_unchanged(self):
        self.assertIs(ENTRIES, filter_entries(ENTRIES, ""))

    def test_query_is_case_insensitive_substring(self):
        result = filter_entries(ENTRIES, "report")

        self.assertEqual(["photos/Report.PDF"], [entry.key for entry in result])

    def test_query_without_match_returns_empty(self):
        self.assertEqual([], list(filter_entries(ENTRIES, "XYZ")))


class NamespaceNavigatorTests(unittest.TestCase):
    def setUp(self):
        self.navigator = NamespaceNavigator()

    def _install(self, entries=ENTRIES):
        self.assertTrue(self.navigator.apply_listing(self.navigator.context, entries))

    def test_breadcrumbs_at_root(self):
        self.assertEqual(["Buckets"], [crumb.label for crumb in self.navigator.breadcrumbs()])

    def test_breadcrumbs_split_prefix(self):
        self.navigator.open_bucket("media")
        self.navigator.enter_folder("photos/2024/")

        crumbs = self.navigator.breadcrumbs()

        self.assertEqual(["Buckets", "media", "photos", "2024"], [crumb.label for crumb in crumbs])
        self.assertEqual([0, 1, 2, 3], [crumb.index for crumb in crumbs])

    def test_navigate_to_breadcrumb_rebuilds_prefix(self):
        self.navigator.open_bucket("media")
        self.navigator.enter_folder("photos/2024/summer/")

        self.navigator.navigate_to_breadcrumb(3)

        self.assertEqual("media", self.navigator.bucket)
        self.assertEqual("photos/2024/", self.navigator.prefix)

    def test_navigate_to_bucket_breadcrumb_clears_prefix(self):
        self.navigator.open_bucket("media")
        self.navigator.enter_folder("photos/")

        self.navigator.navigate_to_breadcrumb(1)

        self.assertEqual("media", self.navigator.bucket)
        self.assertEqual("", self.navigator.prefix)

    def test_navigate_to_root_clears_bucket_and_prefix(self):
        self.navigator.open_bucket("media")
        self.navigator.enter_folder("photos/")

        self.navigator.navigate_to_breadcrumb(0)

        self.assertIsNone(self.navigator.bucket)
        self.assertEqual("", self.navigator.prefix)

    def test_navigate_to_missing_breadcrumb_raises(self):
        with self.assertRaises(IndexError):
            self.navigator.navigate_to_breadcrumb(2)

    def test_enter_folder_requires_folder_key(self):
        self.navigator.open_bucket("media")

        with self.assertRaises(ValueError):
            self.navigator.enter_folder("photos/notes.txt")

    def test_changing_location_clears_selection_query_and_entries(self):
        self.navigator.open_bucket("media")
        self.navigator.enter_folder("photos/")
        self._install()
        self.navigator.select("photos/notes.txt")
        self.navigator.set_query("notes")

        for move in (
            lambda: self.navigator.enter_folder("photos/2024/"),
            lambda: self.navigator.navigate_to_breadcrumb(1),
            lambda: self.navigator.open_bucket("other"),
            lambda: self.navigator.navigate_to_breadcrumb(0),
        ):
            self._install()
            self.navigator.select("photos/notes.txt")
            self.navigator.set_query("notes")

            move()

            self.assertEqual(frozenset(), self.navigator.selection)
            self.assertEqual("", self.navigator.query)
            self.assertEqual([], self.navigator.entries)

    def test_stale_listing_is_discarded(self):
        self.navigator.open_bucket("media")
        context = self.navigator.context
        self.navigator.open_bucket("other")

        applied = self.navigator.apply_listing(context, ENTRIES)

        self.assertFalse(applied)
        self.assertEqual([], self.navigator.entries)

    def test_reopening_same_bucket_invalidates_pending_listing(self):
        self.navigator.open_bucket("media")
        context = self.navigator.context
        self.navigator.open_bucket("media")

        self.assertFalse(self.navigator.is_current(context))

    def test_discard_listing_empties_current_view(self):
        self.navigator.open_bucket("media")
        self._install()

        self.navigator.discard_listing(self.navigator.context)

        self.assertEqual([], self.navigator.entries)

    def test_select_rejects_keys_outside_listing(self):
        self.navigator.open_bucket("media")
        self._install()

        with self.assertRaises(KeyError):
            self.navigator.select("elsewhere/file.txt")

    def test_toggle_and_toggle_all_visible(self):
        self.navigator.open_bucket("media")
        self._install()

        self.navigator.toggle("photos/notes.txt")
        self.assertEqual(frozenset({"photos/notes.txt"}), self.navigator.selection)
        self.navigator.toggle("photos/notes.txt")
        self.assertEqual(frozenset(), self.navigator.selection)

        self.navigator.set_query("photos/")
        self.navigator.toggle_all_visible()
        self.assertEqual(frozenset(entry.key for entry in ENTRIES), self.navigator.selection)
        self.navigator.toggle_all_visible()
        self.assertEqual(frozenset(), self.navigator.selection)

    def test_toggle_all_visible_only_covers_filtered_entries(self):
        self.navigator.open_bucket("media")
        self._install()
        self.navigator.set_query(".txt")

        self.navigator.toggle_all_visible()

        self.assertEqual(frozenset({"photos/notes.txt"}), self.navigator.selection)

    def test_applying_listing_clears_selection(self):
        self.navigator.open_bucket("media")
        self._install()
        self.navigator.select("photos/notes.txt")

        self._install()

        self.assertEqual(frozenset(), self.navigator.selection)

    def test_visible_entries_follow_query(self):
        self.navigator.open_bucket("media")
        self._install()
        self.navigator.set_query("2024")

        self.assertEqual(["photos/2024/"], [entry.key for entry in self.navigator.visible_entries()])

    def test_entry_name_is_last_segment(self):
        self.assertEqual("2024/", ENTRIES[0].name)
        self.assertEqual("notes.txt", ENTRIES[2].name)


if __name__ == "__main__":
    unittest.main()
