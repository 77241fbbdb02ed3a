"""Governance module -- who may do what, how risky it is, and who signs off.

Components:
- roles: static role hierarchy and role -> permission table
- risk_tiers: RiskTierRegistry of actions with tier, approval flag and cooldown
- approvals: ApprovalService (quorum approvals, rejection, expiry/escalation sweep)
- repository: ApprovalRepository for the approval_requests table
- scheduler: background loop sweeping approvals for every active organization
"""
