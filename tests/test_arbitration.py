"""Tests for conflict arbitration and change planning."""

import pytest

from dnsop.arbitration import check_dangling_targets, plan_changes
from dnsop.base.exceptions import InvalidTargetError, RecordTypeConflictError
from dnsop.model.endpoint import Endpoint

ROOT = "app.example.com"


def _ep(name=ROOT, targets=("10.0.0.1",), rtype="A", sid="", ttl=60, owners=(), props=None):
    return Endpoint(
        dns_name=name, targets=targets, record_type=rtype, set_identifier=sid,
        record_ttl=ttl, provider_specific=props or {},
    ).with_owners(owners)


# --- creation and ownership ---

class TestPlanBasics:
    def test_create_in_empty_zone(self):
        plan = plan_changes("w1", [_ep()], [], [ROOT])
        assert not plan.awaiting_validation
        assert [ep.owners() for ep in plan.changes.create] == [{"w1"}]

    def test_no_changes_when_in_sync(self):
        plan = plan_changes("w1", [_ep()], [_ep(owners={"w1"})], [ROOT])
        assert not plan.changes.has_changes()

    def test_update_own_record(self):
        plan = plan_changes("w1", [_ep(targets=("10.0.0.2",))], [_ep(owners={"w1"})], [ROOT])
        assert plan.changes.update_new[0].targets == ("10.0.0.2",)
        assert plan.changes.update_new[0].owners() == {"w1"}

    def test_join_identical_record(self):
        plan = plan_changes("w2", [_ep()], [_ep(owners={"w1"})], [ROOT])
        assert plan.changes.update_old[0].owners() == {"w1"}
        assert plan.changes.update_new[0].owners() == {"w1", "w2"}
        assert plan.changes.update_new[0].same_shape(plan.changes.update_old[0])

    def test_unowned_identical_record_left_alone(self):
        plan = plan_changes("w1", [_ep()], [_ep()], [ROOT])
        assert not plan.changes.has_changes()
        assert not plan.awaiting_validation

    def test_duplicate_desired_keys_collapse(self):
        plan = plan_changes("w1", [_ep(), _ep()], [], [ROOT])
        assert len(plan.changes.create) == 1


# --- conflicts ---

class TestConflicts:
    def test_different_data_owned_by_other(self):
        plan = plan_changes("w2", [_ep(targets=("10.0.0.9",))], [_ep(owners={"w1"})], [ROOT])
        assert plan.awaiting_validation
        assert not plan.changes.has_changes()
        assert "owned by w1" in str(plan.conflicts[0])

    def test_different_data_unowned(self):
        plan = plan_changes("w1", [_ep(ttl=300)], [_ep()], [ROOT])
        assert plan.awaiting_validation
        assert "<unowned>" in str(plan.conflicts[0])

    def test_conflict_holds_back_whole_plan(self):
        desired = [_ep(targets=("10.0.0.9",)), _ep(name="new.app.example.com")]
        plan = plan_changes("w2", desired, [_ep(owners={"w1"})], [ROOT])
        assert plan.awaiting_validation
        assert not plan.changes.create

    def test_shared_record_with_different_data(self):
        plan = plan_changes(
            "w1", [_ep(targets=("10.0.0.9",))], [_ep(owners={"w1", "w2"})], [ROOT]
        )
        assert plan.awaiting_validation

    def test_weighted_records_coexist(self):
        lb = "ie.klb.app.example.com"
        mine = _ep(lb, ("a.klb.app.example.com",), "CNAME", sid="a.klb.app.example.com",
                   props={"weight": "120"})
        theirs = _ep(lb, ("b.klb.app.example.com",), "CNAME", sid="b.klb.app.example.com",
                     props={"weight": "120"}, owners={"w2"})
        cluster = _ep("a.klb.app.example.com")
        plan = plan_changes("w1", [mine, cluster], [theirs], [ROOT])
        assert not plan.awaiting_validation
        assert len(plan.changes.create) == 2


# --- hard errors ---

class TestTypeConflict:
    def test_cname_over_foreign_a(self):
        with pytest.raises(RecordTypeConflictError, match="record type conflict") as exc:
            plan_changes(
                "w2", [_ep(targets=("lb.example.net",), rtype="CNAME")], [_ep(owners={"w1"})], [ROOT]
            )
        assert exc.value.existing_type == "A"

    def test_cname_over_unowned_a(self):
        with pytest.raises(RecordTypeConflictError):
            plan_changes("w1", [_ep(targets=("lb.example.net",), rtype="CNAME")], [_ep()], [ROOT])

    def test_own_type_change_replaces(self):
        plan = plan_changes(
            "w1", [_ep(targets=("lb.example.net",), rtype="CNAME")], [_ep(owners={"w1"})], [ROOT]
        )
        assert [ep.record_type for ep in plan.changes.create] == ["CNAME"]
        assert [ep.record_type for ep in plan.changes.delete] == ["A"]

    def test_a_and_txt_coexist(self):
        txt = _ep(targets=("hello",), rtype="TXT", owners={"w1"})
        plan = plan_changes("w2", [_ep()], [txt], [ROOT])
        assert len(plan.changes.create) == 1


class TestDanglingTargets:
    def test_missing_target_in_root_host(self):
        desired = [_ep(targets=("klb.app.example.com",), rtype="CNAME")]
        with pytest.raises(InvalidTargetError) as exc:
            plan_changes("w1", desired, [], [ROOT])
        assert str(exc.value).endswith("does not exist in the list of local or remote endpoints")
        assert "'[app.example.com]'" in str(exc.value)

    def test_target_defined_by_other_writer(self):
        desired = [_ep(targets=("klb.app.example.com",), rtype="CNAME")]
        remote = _ep("klb.app.example.com", ("x.example.net",), "CNAME", owners={"w2"})
        check_dangling_targets("w1", desired, [remote], [ROOT])

    def test_own_stale_record_does_not_count(self):
        desired = [_ep(targets=("klb.app.example.com",), rtype="CNAME")]
        stale = _ep("klb.app.example.com", ("x.example.net",), "CNAME", owners={"w1"})
        with pytest.raises(InvalidTargetError):
            check_dangling_targets("w1", desired, [stale], [ROOT])

    def test_target_outside_root_host(self):
        desired = [_ep(targets=("lb.example.net",), rtype="CNAME")]
        check_dangling_targets("w1", desired, [], [ROOT])


# --- removal ---

class TestRemoval:
    def test_delete_sole_owned(self):
        stale = _ep("old.app.example.com", owners={"w1"})
        plan = plan_changes("w1", [_ep()], [_ep(owners={"w1"}), stale], [ROOT])
        assert plan.changes.delete == [stale]

    def test_release_shared(self):
        shared = _ep("old.app.example.com", owners={"w1", "w2"})
        plan = plan_changes("w1", [], [shared], [ROOT])
        assert not plan.changes.delete
        assert plan.changes.update_new[0].owners() == {"w2"}

    def test_others_records_untouched(self):
        theirs = _ep("other.app.example.com", owners={"w2"})
        plan = plan_changes("w1", [], [theirs], [ROOT])
        assert not plan.changes.has_changes()

    def test_outside_root_host_untouched(self):
        elsewhere = _ep("shop.example.com", owners={"w1"})
        plan = plan_changes("w1", [], [elsewhere], [ROOT])
        assert not plan.changes.has_changes()

    def test_whole_zone_without_root_hosts(self):
        elsewhere = _ep("shop.example.com", owners={"w1"})
        plan = plan_changes("w1", [], [elsewhere])
        assert plan.changes.delete == [elsewhere]
