"""Continuous review watch engine: AI agent follow-up on automated PR reviews."""
