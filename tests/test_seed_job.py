"""
Tests for the seed job wrapper (loader + repair pass).
"""
import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from codex_api.core.exceptions import StoreNotConnectedError
from codex_api.jobs.seed import run_asset_repair_job, run_seed_job
from codex_api.services.seed_generator import SeedGenerationStats


def write_seed(settings, index, items):
    seed_dir = Path(settings.SEED_DIR)
    seed_dir.mkdir(parents=True, exist_ok=True)
    (seed_dir / f"codex-{index:05d}.json").write_text(json.dumps({"collection": "codex", "data": items}))


class TestRunSeedJob:
    @pytest.mark.asyncio
    async def test_loads_and_repairs(self, stores, test_settings, item_store):
        write_seed(test_settings, 1, [{"_sync_id": "codex-1", "id": 1, "name": "One"}])

        result = await run_seed_job(stores, test_settings, generate=False)

        assert result["status"] == "completed"
        assert result["stats"]["inserted"] == 1
        assert result["repair"]["status"] == "completed"
        assert "generation" not in result
        assert item_store.records[1]["name"] == "One"

    @pytest.mark.asyncio
    async def test_runs_generator_first(self, stores, test_settings):
        generated = SeedGenerationStats(total=10, created=10)
        with patch("codex_api.jobs.seed.generate_seed_data", new=AsyncMock(return_value=generated)) as generate:
            result = await run_seed_job(stores, test_settings)

        generate.assert_awaited_once_with(test_settings)
        assert result["generation"]["created"] == 10
        assert result["stats"]["skip_reason"] == "no_seed_files"

    @pytest.mark.asyncio
    async def test_collection_missing(self, stores, test_settings, item_store):
        item_store.exists = False
        write_seed(test_settings, 1, [{"id": 1}])

        result = await run_seed_job(stores, test_settings, generate=False)

        assert result["status"] == "skipped"
        assert result["reason"] == "collection_missing"
        assert "repair" not in result

    @pytest.mark.asyncio
    async def test_aborted_run_skips_repair(self, stores, test_settings):
        write_seed(test_settings, 1, [{"id": 1}])

        (Path(test_settings.SEED_DIR) / "codex-00002.json").write_text("{broken")

        result = await run_seed_job(stores, test_settings, generate=False)

        assert result["status"] == "aborted"
        assert result["reason"] == "seed_file_error"
        assert "repair" not in result

    @pytest.mark.asyncio
    async def test_store_unavailable(self, stores, test_settings, item_store):
        async def unreachable():
            raise StoreNotConnectedError("connection refused")

        item_store.collection_exists = unreachable

        result = await run_seed_job(stores, test_settings, generate=False)

        assert result["status"] == "failed"
        assert result["reason"] == "store_unavailable"


@pytest.mark.asyncio
async def test_asset_repair_job_schema_not_ready(stores, test_settings, item_store):
    item_store.exists = False

    result = await run_asset_repair_job(stores, test_settings)

    assert result == {"status": "skipped", "reason": "schema_not_ready"}
