"""Tests for the device registry and its stores."""

import asyncio
import json

import pytest

from roku_remote.discovery.models import DeviceCapabilities
from roku_remote.registry import (
    DeviceRegistry,
    JsonFileDeviceStore,
    MemoryDeviceStore,
    PostgresDeviceStore,
    create_store,
)
from roku_remote.registry.manager import ADDRESS_KEY, CAPABILITIES_KEY, VERIFIED_KEY


CAPS = DeviceCapabilities(model_name="Roku Ultra", model_number="4800X", requires_pairing=True)


class TestDeviceRegistry:
    @pytest.mark.asyncio
    async def test_starts_empty(self):
        registry = DeviceRegistry(MemoryDeviceStore())
        assert await registry.load() is None
        assert registry.current is None

    @pytest.mark.asyncio
    async def test_save_replaces_record(self):
        registry = DeviceRegistry(MemoryDeviceStore())
        first = await registry.save("10.0.0.5", CAPS, verified_at=100.0)
        second = await registry.save("10.0.0.6", DeviceCapabilities(), verified_at=200.0)
        assert registry.current is second
        assert first.address == "10.0.0.5"  # old record untouched
        assert second.last_verified_at == 200.0

    @pytest.mark.asyncio
    async def test_persists_both_entries(self):
        store = MemoryDeviceStore()
        registry = DeviceRegistry(store)
        await registry.save("10.0.0.5", CAPS)
        assert store.data[ADDRESS_KEY] == "10.0.0.5"
        assert store.data[CAPABILITIES_KEY]["requires_pairing"] is True

    @pytest.mark.asyncio
    async def test_load_restores_record(self):
        store = MemoryDeviceStore()
        await DeviceRegistry(store).save("10.0.0.5", CAPS, verified_at=123.0)

        restored = await DeviceRegistry(store).load()
        assert restored.address == "10.0.0.5"
        assert restored.capabilities == CAPS
        assert restored.last_verified_at == 123.0

    @pytest.mark.asyncio
    async def test_load_address_only(self):
        registry = DeviceRegistry(MemoryDeviceStore({ADDRESS_KEY: "10.0.0.5"}))
        record = await registry.load()
        assert record.address == "10.0.0.5"
        assert record.capabilities == DeviceCapabilities()

    @pytest.mark.asyncio
    async def test_clear_removes_both_entries(self):
        store = MemoryDeviceStore()
        registry = DeviceRegistry(store)
        await registry.save("10.0.0.5", CAPS)
        await registry.clear()
        assert registry.current is None
        assert store.data == {}

    @pytest.mark.asyncio
    async def test_invalidate_only_matching_address(self):
        registry = DeviceRegistry(MemoryDeviceStore())
        await registry.save("10.0.0.6", CAPS)
        assert await registry.invalidate("10.0.0.5") is False
        assert registry.current.address == "10.0.0.6"
        assert await registry.invalidate("10.0.0.6") is True
        assert registry.current is None

    @pytest.mark.asyncio
    async def test_store_failure_keeps_session_record(self):
        class BrokenStore(MemoryDeviceStore):
            async def set_many(self, values):
                raise OSError("disk full")

        registry = DeviceRegistry(BrokenStore())
        await registry.save("10.0.0.5", CAPS)
        assert registry.current.address == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_invalidate_waits_for_pending_save(self):
        class SlowStore(MemoryDeviceStore):
            async def set_many(self, values):
                await asyncio.sleep(0.05)
                await super().set_many(values)

        store = SlowStore()
        registry = DeviceRegistry(store)
        first = asyncio.create_task(registry.save("10.0.0.5", CAPS))
        second = asyncio.create_task(registry.save("10.0.0.9", CAPS))
        stale = asyncio.create_task(registry.invalidate("10.0.0.5"))
        await asyncio.gather(first, second)

        assert await stale is False
        assert registry.current.address == "10.0.0.9"
        assert store.data[ADDRESS_KEY] == "10.0.0.9"

    @pytest.mark.asyncio
    async def test_load_tolerates_corrupt_timestamp(self):
        store = MemoryDeviceStore({ADDRESS_KEY: "10.0.0.5", VERIFIED_KEY: "yesterday"})
        record = await DeviceRegistry(store).load()
        assert record.address == "10.0.0.5"
        assert record.last_verified_at == 0.0


class TestJsonFileDeviceStore:
    @pytest.mark.asyncio
    async def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "state" / "device.json"
        await DeviceRegistry(JsonFileDeviceStore(str(path))).save("192.168.1.30", CAPS, verified_at=5.0)

        on_disk = json.loads(path.read_text())
        assert on_disk[ADDRESS_KEY] == "192.168.1.30"

        restored = await DeviceRegistry(JsonFileDeviceStore(str(path))).load()
        assert restored.address == "192.168.1.30"
        assert restored.capabilities.requires_pairing is True

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path):
        path = tmp_path / "device.json"
        registry = DeviceRegistry(JsonFileDeviceStore(str(path)))
        await registry.save("192.168.1.30", CAPS)
        await registry.clear()
        assert json.loads(path.read_text()) == {}

    @pytest.mark.asyncio
    async def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "device.json"
        path.write_text("{not json")
        assert await DeviceRegistry(JsonFileDeviceStore(str(path))).load() is None


class TestCreateStore:
    def test_backends(self, tmp_path):
        assert isinstance(create_store({'registry': {'backend': 'memory'}}), MemoryDeviceStore)
        assert isinstance(create_store({'registry': {'backend': 'file', 'path': str(tmp_path / "d.json")}}),
                          JsonFileDeviceStore)
        db = {'host': 'localhost', 'port': 5432, 'database': 'roku', 'username': 'u', 'password': 'p'}
        assert isinstance(create_store({'registry': {'backend': 'postgres', 'database': db}}),
                          PostgresDeviceStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store({'registry': {'backend': 'redis'}})
