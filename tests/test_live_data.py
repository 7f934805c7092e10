#!/usr/bin/env python3
"""Tests for live campaign answers."""
import os, sys, unittest
from datetime import timezone

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from martech_hub.live_data import (
    LiveRecord,
    LiveSnapshot,
    answer_live,
    format_date,
    matches_data_intent,
    normalize_records,
    sort_by_recency,
    synthesize,
)


def _campaigns(n):
    return [
        {"name": f"Campaign {i:02d}", "lastEdited": f"2024-01-{i + 1:02d}T09:00:00Z"}
        for i in range(n)
    ]


TWO = [
    {"name": "Summer Sale", "isDraft": False, "lastEdited": "2024-06-01T10:00:00Z"},
    {"name": "Winter Promo", "isDraft": True, "createdAt": "2024-01-15T08:00:00Z"},
]


class TestNormalize(unittest.TestCase):

    def test_malformed_dropped(self):
        raw = [
            {"name": ""},
            {"name": "Ok"},
            "junk",
            {"name": "Bad date", "lastEdited": "not a date"},
            {"createdAt": "2024-01-01"},
        ]
        self.assertEqual([r.name for r in normalize_records(raw)], ["Ok"])

    def test_not_a_list(self):
        self.assertEqual(normalize_records(None), [])
        self.assertEqual(normalize_records({"name": "x"}), [])

    def test_naive_timestamp_is_utc(self):
        r = normalize_records([{"name": "x", "lastEdited": "2024-06-01T10:00:00"}])[0]
        self.assertEqual(r.last_edited.tzinfo, timezone.utc)

    def test_blank_dates(self):
        r = normalize_records([{"name": "x", "createdAt": "", "lastEdited": ""}])[0]
        self.assertIsNone(r.created_at)
        self.assertIsNone(r.last_edited)

    def test_snake_case_keys(self):
        r = LiveRecord.model_validate({"name": "x", "last_edited": "2024-06-01T10:00:00Z", "draft": True})
        self.assertTrue(r.is_draft)
        self.assertEqual(r.last_edited.day, 1)

    def test_recency_falls_back_to_created(self):
        recs = sort_by_recency(normalize_records([
            {"name": "no dates"},
            {"name": "created", "createdAt": "2024-03-01T00:00:00Z"},
            {"name": "edited", "lastEdited": "2024-02-01T00:00:00Z", "createdAt": "2023-01-01T00:00:00Z"},
        ]))
        self.assertEqual([r.name for r in recs], ["created", "edited", "no dates"])


class TestSnapshot(unittest.TestCase):

    def test_empty_payload(self):
        snap = LiveSnapshot.from_payload(None)
        self.assertFalse(snap)
        self.assertFalse(snap.braze_connected)

    def test_records_imply_connected(self):
        snap = LiveSnapshot.from_payload({"campaigns": TWO})
        self.assertTrue(snap)
        self.assertTrue(snap.braze_connected)
        self.assertEqual(len(snap.records), 2)

    def test_connected_without_records(self):
        snap = LiveSnapshot.from_payload({"brazeConnected": True, "campaigns": []})
        self.assertFalse(snap)
        self.assertTrue(snap.braze_connected)

    def test_alternate_key(self):
        snap = LiveSnapshot.from_payload({"brazeCampaigns": TWO, "airtableConnected": True})
        self.assertEqual(len(snap.records), 2)
        self.assertTrue(snap.airtable_connected)


class TestIntent(unittest.TestCase):

    def test_matches(self):
        self.assertTrue(matches_data_intent("How many campaigns do we have?"))
        self.assertTrue(matches_data_intent("recent campaigns"))
        self.assertTrue(matches_data_intent("Which campaign was edited?"))

    def test_no_match(self):
        self.assertFalse(matches_data_intent("How does lead scoring work"))
        self.assertFalse(matches_data_intent("campaign strategy tips"))
        self.assertFalse(matches_data_intent(""))

    def _intent(self, q, records=TWO):
        return answer_live(q, records)[0]

    def test_sub_intent_order(self):
        self.assertEqual(self._intent("how many recent campaigns"), "count")
        self.assertEqual(self._intent('show campaigns called "Summer"'), "search")
        self.assertEqual(self._intent("show the latest campaigns"), "recent")
        self.assertEqual(self._intent("list our campaigns"), "list")
        self.assertEqual(answer_live("tell me about braze", TWO), (None, None))

    def test_loose_keyword_miss_falls_to_recent(self):
        intent, ans = answer_live("show latest campaigns for this week", _campaigns(12))
        self.assertEqual(intent, "recent")
        self.assertTrue(ans.startswith("**Most Recent Campaigns**"))
        self.assertNotIn("No campaigns found", ans)

    def test_loose_keyword_miss_falls_to_list(self):
        intent, ans = answer_live("What campaigns should we run for churn?", TWO)
        self.assertEqual(intent, "list")
        self.assertTrue(ans.startswith("**Your Braze Campaigns** (2 total)"))

    def test_loose_keyword_hit_still_searches(self):
        intent, ans = answer_live("show campaigns for Summer", TWO)
        self.assertEqual(intent, "search")
        self.assertIn("**Summer Sale**", ans)

    def test_loose_keyword_miss_with_nothing_else(self):
        self.assertEqual(answer_live("campaigns about pricing", TWO), (None, None))

    def test_explicit_keyword_miss_is_reported(self):
        intent, ans = answer_live('show latest campaigns called "Holiday"', TWO)
        self.assertEqual(intent, "search")
        self.assertTrue(ans.startswith('No campaigns found matching "Holiday"'))


class TestSynthesize(unittest.TestCase):

    def test_count(self):
        ans = synthesize("How many campaigns do we have?", TWO)
        self.assertEqual(ans, (
            "**Campaign Overview**\n\n"
            "You have **2 campaigns** in Braze.\n\n"
            "• **Active:** 1\n"
            "• **Drafts:** 1"
        ))

    def test_count_welcome_series(self):
        recs = [{"name": "Summer Sale", "isDraft": False}, {"name": "Welcome Series", "isDraft": True}]
        ans = synthesize("how many campaigns do we have", recs)
        self.assertIn("**2 campaigns**", ans)
        self.assertIn("**Active:** 1", ans)
        self.assertIn("**Drafts:** 1", ans)

    def test_recent_literal(self):
        ans = synthesize("recent campaigns", _campaigns(12))
        names = [line.split("**")[1] for line in ans.splitlines() if line[:1].isdigit()]
        self.assertEqual(names, ["Campaign 11", "Campaign 10", "Campaign 09", "Campaign 08", "Campaign 07"])

    def test_count_singular(self):
        self.assertIn("**1 campaign**", synthesize("how many campaigns", TWO[:1]))

    def test_recent_top_five_in_order(self):
        ans = synthesize("show me recent campaigns", _campaigns(12))
        self.assertTrue(ans.startswith("**Most Recent Campaigns**"))
        self.assertIn("1. **Campaign 11** - Last edited: Jan 12, 2024", ans)
        self.assertIn("5. **Campaign 07** - Last edited: Jan 8, 2024", ans)
        self.assertNotIn("6.", ans)
        self.assertLess(ans.index("Campaign 11"), ans.index("Campaign 10"))

    def test_list_capped(self):
        ans = synthesize("list our campaigns", _campaigns(12))
        self.assertTrue(ans.startswith("**Your Braze Campaigns** (12 total)"))
        self.assertIn("10. **Campaign 02**", ans)
        self.assertNotIn("11.", ans)
        self.assertTrue(ans.endswith("...and 2 more"))

    def test_list_marks_drafts(self):
        ans = synthesize("what campaigns do we have", TWO)
        self.assertIn("1. **Summer Sale** - Last edited: Jun 1, 2024", ans)
        self.assertIn("2. **Winter Promo** (Draft) - Last edited: Jan 15, 2024", ans)
        self.assertNotIn("more", ans)

    def test_search_hit(self):
        ans = synthesize('show campaigns called "summer"', TWO)
        self.assertTrue(ans.startswith('**Campaigns matching "summer"** (1 found)'))
        self.assertIn("**Summer Sale**", ans)
        self.assertNotIn("Winter", ans)

    def test_search_miss(self):
        ans = synthesize("show campaigns named Holiday", TWO)
        self.assertEqual(ans, 'No campaigns found matching "Holiday". You have 2 campaigns total.')

    def test_no_sub_intent(self):
        self.assertIsNone(synthesize("tell me about braze", TWO))

    def test_no_records(self):
        self.assertIsNone(synthesize("how many campaigns", []))
        self.assertIsNone(synthesize("how many campaigns", [{"name": ""}, 42]))

    def test_unknown_date(self):
        ans = synthesize("list campaigns", [{"name": "Undated"}])
        self.assertIn("1. **Undated** - Last edited: Unknown date", ans)
        self.assertEqual(format_date(None), "Unknown date")


if __name__ == '__main__':
    unittest.main()
