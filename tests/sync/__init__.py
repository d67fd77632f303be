"""
Tests for background synchronization.

Covers metadata reconciliation of bare verse ids and the selection/settings
sync that must not echo its own writes.
"""
