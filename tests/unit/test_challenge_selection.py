"""Daily challenge slot planning and template selection."""

from creatorcompass.gamification.catalog import CHALLENGE_TEMPLATES
from creatorcompass.gamification.challenge_engine import plan_slots, select_templates


class TestPlanSlots:

    def test_new_user_gets_easy_only(self):
        assert plan_slots(1, 3) == ["easy", "easy", "easy"]

    def test_medium_unlocks_at_level_2(self):
        assert plan_slots(2, 3) == ["easy", "medium", "medium"]

    def test_hard_unlocks_at_level_5(self):
        assert plan_slots(5, 3) == ["easy", "medium", "hard"]

    def test_count_truncates(self):
        assert plan_slots(5, 1) == ["easy"]

    def test_count_extends(self):
        assert plan_slots(6, 5) == ["easy", "medium", "hard", "medium", "medium"]


class TestSelectTemplates:

    def test_deterministic_for_seed(self):
        slots = plan_slots(5, 3)
        first = select_templates(CHALLENGE_TEMPLATES, slots, seed="7:2026-03-10")
        second = select_templates(CHALLENGE_TEMPLATES, slots, seed="7:2026-03-10")
        assert [t.id for t in first] == [t.id for t in second]

    def test_matches_slot_difficulty(self):
        picked = select_templates(CHALLENGE_TEMPLATES, ["easy", "medium", "hard"], seed="s")
        assert [t.difficulty for t in picked] == ["easy", "medium", "hard"]

    def test_distinct_templates(self):
        picked = select_templates(CHALLENGE_TEMPLATES, ["easy"] * 4, seed="s")
        assert len({t.id for t in picked}) == 4

    def test_avoids_previous_day_when_possible(self):
        easy = [t.id for t in CHALLENGE_TEMPLATES if t.difficulty == "easy"]
        avoid = set(easy[:3])
        picked = select_templates(CHALLENGE_TEMPLATES, ["easy"], seed="s", avoid=avoid)
        assert picked[0].id == easy[3]

    def test_falls_back_to_repeat_when_pool_exhausted(self):
        easy = {t.id for t in CHALLENGE_TEMPLATES if t.difficulty == "easy"}
        picked = select_templates(CHALLENGE_TEMPLATES, ["easy"], seed="s", avoid=easy)
        assert picked[0].id in easy

    def test_borrows_other_difficulty_when_slot_pool_empty(self):
        hard = [t for t in CHALLENGE_TEMPLATES if t.difficulty == "hard"]
        picked = select_templates(hard, ["easy", "hard"], seed="s")
        assert len(picked) == 2
        assert len({t.id for t in picked}) == 2

    def test_stops_when_templates_run_out(self):
        picked = select_templates(CHALLENGE_TEMPLATES[:2], ["easy"] * 5, seed="s")
        assert len(picked) == 2
