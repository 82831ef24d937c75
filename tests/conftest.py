"""Shared fixtures: scripted executor, fake tweaks, fake clock

Nothing here runs a real process.
"""

import threading

import pytest

from wintweaks.config.engine_config import EngineConfig
from wintweaks.core.engine import TweakEngine
from wintweaks.errors import CommandExecutionError
from wintweaks.execution.executor import CommandExecutor
from wintweaks.tweaks.base import BatchCheck, Tweak
from wintweaks.tweaks.registry import TweakRegistry


class ScriptedExecutor(CommandExecutor):
    """Returns canned output for the first matching substring

    A response that is an Exception instance is raised instead.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.queries = []
        self._lock = threading.Lock()

    def execute(self, query, check=True):
        with self._lock:
            self.queries.append(query)
        for needle, output in self.responses.items():
            if needle in query:
                if isinstance(output, Exception):
                    raise output
                return output
        return ""


class FakeTweak(Tweak):
    """In-memory tweak that counts calls and can be told to fail"""

    def __init__(self, id, active=False, batch=None, fail_check=False, fail_apply=False,
                 fail_revert=False, **meta):
        meta.setdefault("description", f"Fake tweak {id}")
        meta.setdefault("category", "Essential Tweaks")
        title = meta.pop("title", id.replace("-", " ").title())
        super().__init__(id, title, **meta)
        self.active = active
        self.batch = batch
        self.fail_check = fail_check
        self.fail_apply = fail_apply
        self.fail_revert = fail_revert
        self.check_calls = 0
        self.apply_calls = 0
        self.revert_calls = 0

    @property
    def kind(self):
        return "fake"

    @property
    def batch_check(self):
        return self.batch

    def check_state(self, executor):
        self.check_calls += 1
        if self.fail_check:
            raise CommandExecutionError(f"check failed for {self.id}")
        return self.active

    def apply_state(self, executor):
        self.apply_calls += 1
        if self.fail_apply:
            raise CommandExecutionError(f"apply failed for {self.id}")
        self.active = True

    def revert_state(self, executor):
        self.revert_calls += 1
        if self.fail_revert:
            raise CommandExecutionError(f"revert failed for {self.id}")
        self.active = False


def registry_batch(field="Flag", value="0x1"):
    return BatchCheck(target="HKCU\\Software\\Test", field=field, expected_value=f"{field}    REG_DWORD    {value}")


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    from unittest.mock import MagicMock
    return MagicMock()


@pytest.fixture
def make_engine(clock, no_sleep):
    """Factory: make_engine(tweaks, executor=None, **config_overrides)"""

    def factory(tweaks, executor=None, settings=None, **overrides):
        config = EngineConfig(**overrides)
        return TweakEngine(
            TweakRegistry(tweaks),
            executor or ScriptedExecutor(),
            settings=settings,
            config=config,
            sleep=no_sleep,
            clock=clock,
        )

    return factory
