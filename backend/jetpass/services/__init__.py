"""Redirect, backchannel, identity and callback services."""
