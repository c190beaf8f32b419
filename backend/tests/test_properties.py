"""
Property-based tests for registry invariants with Hypothesis.

Registration needs a running event loop, so each example runs its
scenario with asyncio.run.
"""

import asyncio
import json

from hypothesis import given, settings, strategies as st

from sse_gateway.connection_registry import ConnectionRegistry
from sse_gateway.core.subscriber import DeliveryOutcome, handle_incoming_message

names = st.sampled_from(["A", "B", "C", "STORE001-LANE01"])


class RecordingTransport:
    def __init__(self):
        self.frames = []
        self.close_calls = 0

    def write(self, chunk):
        self.frames.append(chunk)
        return True

    def close(self):
        self.close_calls += 1

    def add_disconnect_listener(self, callback):
        pass


def run(scenario):
    return asyncio.run(scenario())


class TestRegistryProperties:
    """Invariants that hold for any registration sequence."""

    @given(sequence=st.lists(names, max_size=25))
    @settings(max_examples=50, deadline=None)
    def test_one_entry_per_name_and_newest_wins(self, sequence):
        async def scenario():
            registry = ConnectionRegistry(pod_name="prop-pod", heartbeat_interval=30.0)
            latest = {}
            transports = []
            for name in sequence:
                transport = RecordingTransport()
                transports.append(transport)
                latest[name] = registry.register(name, transport)

            assert registry.count() == len(set(sequence))
            for name, entry in latest.items():
                assert registry.get(name) is entry
                assert entry.is_alive

            live = {id(entry.transport) for entry in latest.values()}
            for transport in transports:
                assert transport.close_calls == (0 if id(transport) in live else 1)

            registry.close_all()

        run(scenario)

    @given(times=st.integers(min_value=1, max_value=10))
    @settings(max_examples=20, deadline=None)
    def test_close_n_times_equals_close_once(self, times):
        async def scenario():
            registry = ConnectionRegistry(pod_name="prop-pod", heartbeat_interval=30.0)
            transport = RecordingTransport()
            entry = registry.register("A", transport)

            results = [entry.close() for _ in range(times)]

            assert results.count(True) == 1
            assert transport.close_calls == 1
            assert not entry.heartbeat.active
            assert registry.get("A") is None

        run(scenario)

    @given(registered=st.sets(names), target=names)
    @settings(max_examples=50, deadline=None)
    def test_absent_target_never_mutates_registry(self, registered, target):
        async def scenario():
            registry = ConnectionRegistry(pod_name="prop-pod", heartbeat_interval=30.0)
            for name in registered:
                registry.register(name, RecordingTransport())
            before = {name: registry.get(name) for name in registry}

            outcome = handle_incoming_message(
                "events", json.dumps({"clientName": target, "action": "x"}), registry
            )

            if target in registered:
                assert outcome is DeliveryOutcome.DELIVERED
            else:
                assert outcome is DeliveryOutcome.NOT_LOCAL
            assert {name: registry.get(name) for name in registry} == before
            registry.close_all()

        run(scenario)
