"""Listeners and the per-request view filtering pipeline."""
