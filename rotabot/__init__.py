"""Rotabot — rotating duty assignments posted to Slack."""
