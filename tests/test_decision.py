"""
Tests for the cache hit / miss / stale decision logic.
"""
from modelfetch.decision import FetchDecision, decide, is_missing_keys, needs_fetch
from modelfetch.models import Collection, Entity
from modelfetch.specs import CollectionSpec, EntitySpec


class TestIsMissingKeys:

    def test_no_keys_is_never_missing(self):
        assert is_missing_keys({}, None) is False
        assert is_missing_keys({}, []) is False

    def test_none_value_counts_as_missing(self):
        assert is_missing_keys({"email": None}, ["email"]) is True

    def test_single_key_string(self):
        assert is_missing_keys({"email": "a@b.c"}, "email") is False
        assert is_missing_keys({}, "email") is True


class TestNeedsFetch:

    def test_absent_candidate_needs_fetch(self):
        assert needs_fetch(None, EntitySpec("User", id="42")) is True

    def test_present_candidate_satisfies_plain_spec(self):
        user = Entity("User", "42", {"name": "Ada"})
        assert needs_fetch(user, EntitySpec("User", id="42")) is False

    def test_every_missing_ensure_key_causes_miss(self):
        user = Entity("User", "42", {"name": "Ada", "email": None})
        for key in ("email", "phone", "address"):
            spec = EntitySpec("User", id="42", ensure_keys=[key])
            assert needs_fetch(user, spec) is True

    def test_present_ensure_keys_hit(self):
        user = Entity("User", "42", {"name": "Ada", "email": "ada@example.com"})
        spec = EntitySpec("User", id="42", ensure_keys=["name", "email"])
        assert needs_fetch(user, spec) is False

    def test_needs_fetch_flag_forces_miss(self):
        user = Entity("User", "42", {"name": "Ada"})
        assert needs_fetch(user, EntitySpec("User", id="42", needs_fetch=True)) is True

    def test_needs_fetch_predicate(self):
        user = Entity("User", "42", {"name": "Ada", "version": 1})
        old = EntitySpec("User", id="42", needs_fetch=lambda e: e.get("version") < 2)
        new = EntitySpec("User", id="42", needs_fetch=lambda e: e.get("version") < 1)

        assert needs_fetch(user, old) is True
        assert needs_fetch(user, new) is False

    def test_structural_checks_run_before_predicate(self):
        calls = []

        def predicate(candidate):
            calls.append(candidate)
            return False

        user = Entity("User", "42", {})
        spec = EntitySpec("User", id="42", ensure_keys=["email"], needs_fetch=predicate)

        assert needs_fetch(user, spec) is True
        assert calls == []

    def test_id_attribute_is_satisfied_by_entity_id(self):
        user = Entity("User", "42", {"name": "Ada"})
        spec = EntitySpec("User", id="42", ensure_keys=["objectId"])

        assert needs_fetch(user, spec) is True
        assert needs_fetch(user, spec, id_attribute="objectId") is False
        assert needs_fetch(Entity("User", None, {}), spec, id_attribute="objectId") is True

    def test_collection_ensure_keys_check_meta(self):
        users = Collection("Users", [], meta={"count": 0})
        assert needs_fetch(users, CollectionSpec("Users", ensure_keys=["count"])) is False
        assert needs_fetch(users, CollectionSpec("Users", ensure_keys=["total"])) is True


class TestDecide:

    def test_miss(self):
        assert decide(None, EntitySpec("User", id="1")) is FetchDecision.MISS

    def test_hit_without_check_fresh(self):
        user = Entity("User", "1", {})
        assert decide(user, EntitySpec("User", id="1"), should_check_fresh=True) is FetchDecision.HIT

    def test_stale_when_check_fresh_allowed(self):
        user = Entity("User", "1", {})
        spec = EntitySpec("User", id="1", check_fresh=True)

        assert decide(user, spec, should_check_fresh=True) is FetchDecision.STALE
        assert decide(user, spec, should_check_fresh=False) is FetchDecision.HIT
