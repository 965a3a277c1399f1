"""Tests for approval tier and action definitions."""

from quotedesk.core.approval.states import (
    APPROVAL_ACTIONS,
    ApprovalAction,
    CaseStatus,
    TERMINAL_TIER,
    TIER_ORDER,
    Tier,
    higher_tiers,
    is_terminal,
    next_tier,
    previous_tier,
    tier_index,
)


class TestTierOrder:
    """Test the ordering of the sign-off chain."""

    def test_chain_order(self):
        assert TIER_ORDER == [Tier.APPLICANT, Tier.SECTION_HEAD, Tier.DIRECTOR, Tier.PRESIDENT]
        assert tier_index(Tier.APPLICANT) == 0
        assert tier_index(Tier.PRESIDENT) == 3

    def test_previous_tier(self):
        assert previous_tier(Tier.APPLICANT) is None
        assert previous_tier(Tier.SECTION_HEAD) == Tier.APPLICANT
        assert previous_tier(Tier.PRESIDENT) == Tier.DIRECTOR

    def test_next_tier(self):
        assert next_tier(Tier.APPLICANT) == Tier.SECTION_HEAD
        assert next_tier(Tier.DIRECTOR) == Tier.PRESIDENT
        assert next_tier(Tier.PRESIDENT) is None

    def test_higher_tiers(self):
        assert higher_tiers(Tier.SECTION_HEAD) == [Tier.DIRECTOR, Tier.PRESIDENT]
        assert higher_tiers(Tier.PRESIDENT) == []

    def test_terminal_tier(self):
        assert TERMINAL_TIER == Tier.PRESIDENT
        assert is_terminal(Tier.PRESIDENT)
        assert not is_terminal(Tier.DIRECTOR)


class TestActions:
    """Test action groupings."""

    def test_approval_actions(self):
        assert ApprovalAction.APPROVE_ONLY in APPROVAL_ACTIONS
        assert ApprovalAction.APPROVE_AND_FORWARD in APPROVAL_ACTIONS
        assert ApprovalAction.APPROVE_WITH_ORAL_REQUEST in APPROVAL_ACTIONS
        assert ApprovalAction.REJECT not in APPROVAL_ACTIONS
        assert ApprovalAction.CANCEL_APPLICANT_APPROVAL not in APPROVAL_ACTIONS
        assert ApprovalAction.RESEND_NOTIFICATION not in APPROVAL_ACTIONS

    def test_enum_values_parse_from_strings(self):
        assert Tier("section_head") is Tier.SECTION_HEAD
        assert ApprovalAction("reject") is ApprovalAction.REJECT
        assert CaseStatus("order_received") is CaseStatus.ORDER_RECEIVED
