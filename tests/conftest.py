import asyncio

import pytest

from placefinder.errors import ResolutionError
from placefinder.models import Candidate, Coordinates
from placefinder.providers import GeocodeProvider
from placefinder.sources import LocationSource

PARIS = Candidate(
    label="Paris, Île-de-France, France",
    provider_id="nominatim",
    coordinates=Coordinates(lat=48.8566, lng=2.3522),
    place_id=1,
)


class StubProvider(GeocodeProvider):
    """In-memory provider: returns canned candidates or raises."""

    def __init__(self, provider_id, results=None, error=None, details=None):
        self.provider_id = provider_id
        self.results = results or []
        self.error = error
        self.details = details
        self.queries = []
        self.resolved = []

    def search(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)

    def resolve_details(self, candidate):
        self.resolved.append(candidate)
        if candidate.is_resolved:
            return candidate
        if self.details is None:
            raise ResolutionError("no details")
        return candidate.with_coordinates(self.details)


class FakeSource(LocationSource):
    """Controller source whose answers can be held back with events."""

    def __init__(self, results=None, details=None):
        self.results = results or {}
        self.details = details
        self.calls = []
        self.resolve_calls = []
        self.gates = {}
        self.resolve_gate = None

    async def search(self, text):
        self.calls.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        result = self.results.get(text, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def resolve(self, candidate):
        self.resolve_calls.append(candidate)
        if self.resolve_gate is not None:
            await self.resolve_gate.wait()
        if isinstance(self.details, Exception):
            raise self.details
        if candidate.is_resolved:
            return candidate
        return candidate.with_coordinates(self.details)


class ChangeRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, label, coordinates):
        self.calls.append((label, coordinates))

    @property
    def last(self):
        return self.calls[-1]


async def eventually(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def recorder():
    return ChangeRecorder()
