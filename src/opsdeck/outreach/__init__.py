"""Sniper outreach -- news signals turned into drafted cold emails.

Signals are classified by regex, drafts come from the LLM, and the prompt
used for each draft is chosen epsilon-greedily from the organization's
prompt variants.
"""
