"""Ledger event logging package."""

from mitsitsy.events.logger import EventLogger

__all__ = ["EventLogger"]
