"""Slack bot surface for Rotabot."""
