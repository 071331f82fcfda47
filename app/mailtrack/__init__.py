"""Outbound message composition, dispatch and send tracking."""
