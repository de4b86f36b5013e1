"""
Tests for the IPFS seed data generator.

Covers:
- Deterministic source and output names
- Envelope shape written to disk
- Bounded fan-out: one batch in flight at a time
- Resume: existing output files are not re-fetched
- Per-file failures counted without stopping the run
"""
import asyncio
import json

import httpx
import pytest

from codex_api.services.seed_generator import (
    ENVELOPE_META,
    SeedGenerator,
    build_envelope,
    generate_seed_data,
    seed_filename,
    source_filename,
)


def _document_handler(calls):
    def handler(request):
        calls.append(request.url.path)
        filename = request.url.path.rsplit("/", 1)[-1]
        token = int(filename[len("Art_DeCC0_"):len("Art_DeCC0_") + 5])
        return httpx.Response(200, json={"id": token, "name": f"Codex {token}"})
    return handler


class TestNaming:
    """Names derive from the zero-padded numeric id."""

    def test_source_filename(self):
        assert source_filename(1) == "Art_DeCC0_00001.codex.json"
        assert source_filename(10000) == "Art_DeCC0_10000.codex.json"

    def test_seed_filename(self):
        assert seed_filename(42) == "codex-00042.json"

    def test_source_url(self, tmp_path):
        generator = SeedGenerator("http://ipfs.test/", "QmHash", str(tmp_path))
        assert generator.source_url(7) == "http://ipfs.test/ipfs/QmHash/Art_DeCC0_00007.codex.json"


class TestBuildEnvelope:
    """Envelope wraps one document with sync metadata."""

    def test_uses_document_id(self):
        envelope = build_envelope({"id": 12, "name": "x"}, 99)
        assert envelope["collection"] == "codex"
        assert envelope["meta"] == ENVELOPE_META
        assert envelope["data"] == [{"_sync_id": "codex-12", "id": 12, "name": "x"}]

    def test_falls_back_to_index(self):
        envelope = build_envelope({"name": "no id"}, 7)
        assert envelope["data"][0]["_sync_id"] == "codex-7"


class TestSeedGenerator:
    """End-to-end generator runs against a mock gateway."""

    @pytest.mark.asyncio
    async def test_writes_all_files(self, tmp_path):
        calls = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(_document_handler(calls))) as client:
            generator = SeedGenerator(
                "http://ipfs.test", "QmHash", str(tmp_path / "seed"),
                universe_size=5, batch_size=2, client=client,
            )
            stats = await generator.run()

        assert stats.created == 5
        assert stats.failed == 0
        assert stats.processed == 5
        assert len(calls) == 5

        written = sorted(p.name for p in (tmp_path / "seed").iterdir())
        assert written == [f"codex-0000{i}.json" for i in range(1, 6)]

        text = (tmp_path / "seed" / "codex-00003.json").read_text()
        assert text.startswith("{\n  ")
        envelope = json.loads(text)
        assert envelope["data"][0]["_sync_id"] == "codex-3"

    @pytest.mark.asyncio
    async def test_batches_run_one_after_another(self, tmp_path):
        events = []
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            token = int(request.url.path.rsplit("_", 1)[-1][:5])
            in_flight += 1
            peak = max(peak, in_flight)
            events.append(("start", token))
            await asyncio.sleep(0.01)
            in_flight -= 1
            events.append(("end", token))
            return httpx.Response(200, json={"id": token})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            generator = SeedGenerator(
                "http://ipfs.test", "QmHash", str(tmp_path),
                universe_size=7, batch_size=3, client=client,
            )
            stats = await generator.run()

        assert stats.created == 7
        assert peak == 3
        next_batch_start = events.index(("start", 4))
        first_batch_ends = [events.index(("end", token)) for token in (1, 2, 3)]
        assert max(first_batch_ends) < next_batch_start
        assert max(events.index(("end", token)) for token in (4, 5, 6)) < events.index(("start", 7))

    @pytest.mark.asyncio
    async def test_existing_files_are_not_fetched(self, tmp_path):
        seed_dir = tmp_path / "seed"
        seed_dir.mkdir()
        (seed_dir / "codex-00001.json").write_text("{}")
        (seed_dir / "codex-00002.json").write_text("{}")

        calls = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(_document_handler(calls))) as client:
            generator = SeedGenerator("http://ipfs.test", "QmHash", str(seed_dir), universe_size=3, client=client)
            stats = await generator.run()

        assert stats.skipped == 2
        assert stats.created == 1
        assert calls == ["/ipfs/QmHash/Art_DeCC0_00003.codex.json"]
        assert (seed_dir / "codex-00001.json").read_text() == "{}"

    @pytest.mark.asyncio
    async def test_second_run_makes_no_requests(self, tmp_path):
        calls = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(_document_handler(calls))) as client:
            generator = SeedGenerator("http://ipfs.test", "QmHash", str(tmp_path), universe_size=3, client=client)
            await generator.run()
            calls.clear()
            stats = await generator.run()

        assert calls == []
        assert stats.skipped == 3

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, tmp_path):
        def handler(request):
            if "00002" in request.url.path:
                return httpx.Response(404)
            if "00003" in request.url.path:
                return httpx.Response(200, content=b"not json")
            return httpx.Response(200, json={"id": 1})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            generator = SeedGenerator("http://ipfs.test", "QmHash", str(tmp_path), universe_size=4, client=client)
            stats = await generator.run()

        assert stats.created == 2
        assert stats.failed == 2
        assert len(stats.failures) == 2
        assert not (tmp_path / "codex-00002.json").exists()
        assert not (tmp_path / "codex-00003.json").exists()

    @pytest.mark.asyncio
    async def test_generate_seed_data_uses_settings(self, test_settings):
        calls = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(_document_handler(calls))) as client:
            stats = await generate_seed_data(test_settings, client=client)

        assert stats.total == test_settings.CODEX_UNIVERSE_SIZE
        assert stats.created == test_settings.CODEX_UNIVERSE_SIZE
        assert all(path.startswith("/ipfs/QmTestHash/") for path in calls)
        assert stats.to_dict()["failed"] == 0
