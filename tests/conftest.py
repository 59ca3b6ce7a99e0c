import itertools
import random

import pytest
from fastapi.testclient import TestClient

from parkshare.config import Settings
from parkshare.data_loader import load_seed_spots
from parkshare.main import create_app
from parkshare.state import AppState


class FakeModel:
    """Stands in for the hosted text model; records every prompt."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = b"x" if payload is not None else b""

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def settings():
    """Settings with no credential and a fixed jitter seed."""
    return Settings(random_seed=7)


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def id_factory():
    """Deterministic ids: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def seed_spots():
    return load_seed_spots().spots


@pytest.fixture
def state(settings, seed_spots, id_factory):
    return AppState(spots=seed_spots, settings=settings, rng=random.Random(7), id_factory=id_factory)


@pytest.fixture
def api_client(settings, fake_model):
    """Return a client bound to an app that uses the fake model."""
    app = create_app(settings=settings, model=fake_model)
    with TestClient(app) as client:
        yield client
