"""Action risk registry -- which actions an agent may take on its own.

Every action an agent or scheduled job can take is classified into a risk
tier. Low and medium tiers are automatable; high and critical tiers need a
human approval request. Actions that are not registered are treated as
high risk, not automatable, and approval-required.

Some medium actions carry a cooldown so an agent cannot repeat them in a
tight loop (e.g., notifications).
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.opsdeck.governance.schemas import (
    ActionCategory,
    CooldownCheck,
    RiskTier,
    TieredAction,
)

logger = structlog.get_logger(__name__)


def _action(
    action: str,
    category: ActionCategory,
    tier: RiskTier,
    description: str,
    cooldown_minutes: float | None = None,
) -> TieredAction:
    automatable = tier in (RiskTier.LOW, RiskTier.MEDIUM)
    return TieredAction(
        action=action,
        category=category,
        tier=tier,
        description=description,
        automatable=automatable,
        requires_approval=not automatable,
        cooldown_minutes=cooldown_minutes,
    )


DEFAULT_ACTIONS: list[TieredAction] = [
    # Low
    _action("view_data", ActionCategory.DATA, RiskTier.LOW, "View any data"),
    _action("run_backtest", ActionCategory.TRADING, RiskTier.LOW, "Run strategy backtest"),
    _action("paper_trade", ActionCategory.TRADING, RiskTier.LOW, "Execute paper trades"),
    _action("view_logs", ActionCategory.AUTOMATION, RiskTier.LOW, "View audit logs"),
    # Medium
    _action("send_notification", ActionCategory.AUTOMATION, RiskTier.MEDIUM, "Send notifications", cooldown_minutes=5),
    _action("update_watchlist", ActionCategory.DATA, RiskTier.MEDIUM, "Modify watchlists"),
    _action("run_playbook", ActionCategory.AUTOMATION, RiskTier.MEDIUM, "Execute playbooks"),
    _action("small_trade", ActionCategory.TRADING, RiskTier.MEDIUM, "Execute small trades (<1% portfolio)"),
    # High
    _action("modify_strategy", ActionCategory.CONFIGURATION, RiskTier.HIGH, "Modify trading strategies"),
    _action("large_trade", ActionCategory.TRADING, RiskTier.HIGH, "Execute large trades (>1% portfolio)"),
    _action("modify_playbook", ActionCategory.AUTOMATION, RiskTier.HIGH, "Modify playbooks"),
    _action("export_data", ActionCategory.DATA, RiskTier.HIGH, "Export sensitive data"),
    _action("approve_discount", ActionCategory.PRICING, RiskTier.HIGH, "Grant a discount beyond policy"),
    _action("update_price", ActionCategory.PRICING, RiskTier.HIGH, "Change a list price"),
    _action("raise_price", ActionCategory.PRICING, RiskTier.HIGH, "Apply an agent-recommended price increase"),
    # Critical
    _action("enable_live_trading", ActionCategory.TRADING, RiskTier.CRITICAL, "Enable live trading"),
    _action("modify_risk_limits", ActionCategory.CONFIGURATION, RiskTier.CRITICAL, "Change risk limits"),
    _action("add_api_keys", ActionCategory.CONFIGURATION, RiskTier.CRITICAL, "Add/modify API keys"),
    _action("manage_users", ActionCategory.USER_MANAGEMENT, RiskTier.CRITICAL, "User management"),
    _action("disable_circuit_breakers", ActionCategory.TRADING, RiskTier.CRITICAL, "Disable safety controls"),
]


class RiskTierRegistry:
    """Lookup table of TieredAction plus last-execution times for cooldowns.

    The tier table is shared by every organization; cooldown bookkeeping is
    keyed by (organization_id, action).
    """

    def __init__(self, actions: list[TieredAction] | None = None) -> None:
        self._tiers: dict[str, TieredAction] = {}
        self._last_executed: dict[tuple[str, str], datetime] = {}
        for tiered in actions if actions is not None else DEFAULT_ACTIONS:
            self._tiers[tiered.action] = tiered

    def __len__(self) -> int:
        return len(self._tiers)

    def get_tier(self, action: str) -> TieredAction | None:
        return self._tiers.get(action)

    def get_risk_level(self, action: str) -> RiskTier:
        tiered = self._tiers.get(action)
        return tiered.tier if tiered else RiskTier.HIGH

    def is_automatable(self, action: str) -> bool:
        tiered = self._tiers.get(action)
        return tiered.automatable if tiered else False

    def requires_approval(self, action: str) -> bool:
        tiered = self._tiers.get(action)
        if tiered is None:
            return True
        return tiered.requires_approval

    def check_cooldown(
        self, organization_id: str, action: str, now: datetime | None = None
    ) -> CooldownCheck:
        tiered = self._tiers.get(action)
        if tiered is None or not tiered.cooldown_minutes:
            return CooldownCheck(allowed=True)

        last = self._last_executed.get((organization_id, action))
        if last is None:
            return CooldownCheck(allowed=True)

        now = now or datetime.now(timezone.utc)
        elapsed_minutes = (now - last).total_seconds() / 60
        if elapsed_minutes < tiered.cooldown_minutes:
            return CooldownCheck(
                allowed=False,
                remaining_minutes=round(tiered.cooldown_minutes - elapsed_minutes, 2),
            )
        return CooldownCheck(allowed=True)

    def record_execution(
        self, organization_id: str, action: str, now: datetime | None = None
    ) -> None:
        self._last_executed[(organization_id, action)] = now or datetime.now(timezone.utc)

    def actions_by_tier(self, tier: RiskTier) -> list[TieredAction]:
        return [t for t in self._tiers.values() if t.tier == tier]

    def actions_by_category(self, category: ActionCategory) -> list[TieredAction]:
        return [t for t in self._tiers.values() if t.category == category]

    def all_actions(self) -> list[TieredAction]:
        return list(self._tiers.values())

    def register_action(self, tiered: TieredAction) -> None:
        """Add or replace an action classification."""
        if tiered.action in self._tiers:
            logger.info("risk_tiers.action_replaced", action=tiered.action, tier=tiered.tier.value)
        self._tiers[tiered.action] = tiered


_registry: RiskTierRegistry | None = None


def get_risk_registry() -> RiskTierRegistry:
    """Get or create the process-wide registry."""
    global _registry
    if _registry is None:
        _registry = RiskTierRegistry()
    return _registry
