"""Action risk registry tests -- tiers, defaults for unknown actions, cooldowns."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from src.opsdeck.governance.risk_tiers import DEFAULT_ACTIONS, RiskTierRegistry
from src.opsdeck.governance.schemas import ActionCategory, RiskTier, TieredAction

ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestClassification:
    def test_default_registry_loads_every_action(self):
        registry = RiskTierRegistry()
        assert len(registry) == len(DEFAULT_ACTIONS)

    def test_low_and_medium_are_automatable(self):
        registry = RiskTierRegistry()
        for tiered in registry.all_actions():
            if tiered.tier in (RiskTier.LOW, RiskTier.MEDIUM):
                assert tiered.automatable and not tiered.requires_approval
            else:
                assert not tiered.automatable and tiered.requires_approval

    def test_known_action_lookup(self):
        registry = RiskTierRegistry()
        assert registry.get_risk_level("view_data") == RiskTier.LOW
        assert registry.get_risk_level("enable_live_trading") == RiskTier.CRITICAL
        assert registry.is_automatable("run_playbook") is True
        assert registry.requires_approval("large_trade") is True

    def test_unknown_action_is_high_risk_and_needs_approval(self):
        registry = RiskTierRegistry()
        assert registry.get_tier("launch_rockets") is None
        assert registry.get_risk_level("launch_rockets") == RiskTier.HIGH
        assert registry.is_automatable("launch_rockets") is False
        assert registry.requires_approval("launch_rockets") is True

    def test_filters(self):
        registry = RiskTierRegistry()
        critical = {t.action for t in registry.actions_by_tier(RiskTier.CRITICAL)}
        assert "manage_users" in critical and "view_data" not in critical
        pricing = {t.action for t in registry.actions_by_category(ActionCategory.PRICING)}
        assert pricing == {"approve_discount", "update_price", "raise_price"}

    def test_register_action_replaces(self):
        registry = RiskTierRegistry(actions=[])
        registry.register_action(
            TieredAction(
                action="export_data",
                category=ActionCategory.DATA,
                tier=RiskTier.LOW,
                description="Export",
                automatable=True,
                requires_approval=False,
            )
        )
        assert registry.get_risk_level("export_data") == RiskTier.LOW
        assert len(registry) == 1


class TestCooldown:
    def test_action_without_cooldown_is_always_allowed(self):
        registry = RiskTierRegistry()
        registry.record_execution(ORG_ID, "run_playbook", now=NOW)
        assert registry.check_cooldown(ORG_ID, "run_playbook", now=NOW).allowed is True

    def test_first_execution_is_allowed(self):
        registry = RiskTierRegistry()
        assert registry.check_cooldown(ORG_ID, "send_notification", now=NOW).allowed is True

    def test_blocked_inside_window(self):
        registry = RiskTierRegistry()
        registry.record_execution(ORG_ID, "send_notification", now=NOW)
        check = registry.check_cooldown(ORG_ID, "send_notification", now=NOW + timedelta(minutes=2))
        assert check.allowed is False
        assert check.remaining_minutes == 3.0

    def test_allowed_after_window(self):
        registry = RiskTierRegistry()
        registry.record_execution(ORG_ID, "send_notification", now=NOW)
        check = registry.check_cooldown(ORG_ID, "send_notification", now=NOW + timedelta(minutes=5))
        assert check.allowed is True
        assert check.remaining_minutes is None

    def test_unknown_action_has_no_cooldown(self):
        registry = RiskTierRegistry()
        registry.record_execution(ORG_ID, "launch_rockets", now=NOW)
        assert registry.check_cooldown(ORG_ID, "launch_rockets", now=NOW).allowed is True

    def test_cooldown_is_scoped_to_organization(self):
        registry = RiskTierRegistry()
        registry.record_execution(ORG_ID, "send_notification", now=NOW)

        assert registry.check_cooldown(ORG_ID, "send_notification", now=NOW).allowed is False
        assert registry.check_cooldown(OTHER_ORG_ID, "send_notification", now=NOW).allowed is True
