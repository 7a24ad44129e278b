from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeProvider
from tablefinder.context import create_context
from tablefinder.llm.config import LLMConfig
from tablefinder.store.config import StoreConfig


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def store_config(tmp_path: Path) -> StoreConfig:
    return StoreConfig(database_url=f"sqlite:///{tmp_path / 'tablefinder.db'}")


@pytest.fixture
def ctx(store_config: StoreConfig, provider: FakeProvider):
    context = create_context(
        store_config=store_config,
        provider=provider,
        llm_config=LLMConfig(api_key="test-key", enabled=True),
    )
    yield context
    context.close()


@pytest.fixture
def store(ctx):
    return ctx.store
