"""Pricing module -- competitor price tracking and discount enforcement.

Provides the margin math (min safe price, match/hold/opportunity decisions),
LLM-assisted competitor price extraction, discount violation and
underpricing checks, and the PriceSurgeonService / PricingEnforcer services
behind the pricing functions.
"""
