"""Agent execution log and autonomous action records."""
