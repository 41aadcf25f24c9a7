"""Test helpers package."""

from tests.helpers.wait import wait_until, wait_until_async

__all__ = ["wait_until", "wait_until_async"]
