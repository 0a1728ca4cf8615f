"""Tests for the embedding provider and cosine similarity."""

import asyncio
import logging
import time

import numpy as np
import pytest

from .embeddings import EmbeddingProvider, EmbeddingUnavailable, cosine_similarity


class FakeModel:
    def __init__(self, vector=(3.0, 4.0, 0.0)):
        self.vector = vector
        self.calls: list[list[str]] = []

    def encode(self, texts, normalize_embeddings=True):
        self.calls.append(list(texts))
        return np.array([self.vector for _ in texts], dtype=np.float32)


class CountingLoader:
    def __init__(self, model=None, failures=0):
        self.model = model or FakeModel()
        self.failures = failures
        self.calls = 0

    def __call__(self, model_name):
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError(f"cannot load {model_name}")
        return self.model


class TestEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_returns_unit_vector(self):
        provider = EmbeddingProvider("fake", loader=CountingLoader(), dimensions=3)
        vector = await provider.embed("  Played Cricket ")
        assert vector == pytest.approx([0.6, 0.8, 0.0])
        assert provider.is_loaded

    @pytest.mark.asyncio
    async def test_inputs_are_lowercased_and_trimmed(self):
        model = FakeModel()
        provider = EmbeddingProvider("fake", loader=CountingLoader(model), dimensions=3)
        await provider.embed_many(["  Played Cricket ", "RAN"])
        assert model.calls == [["played cricket", "ran"]]

    @pytest.mark.asyncio
    async def test_concurrent_init_loads_once(self):
        loader = CountingLoader()
        provider = EmbeddingProvider("fake", loader=loader, dimensions=3)
        await asyncio.gather(provider.init(), provider.init(), provider.embed("x"))
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_load_failure_raises_and_can_retry(self):
        loader = CountingLoader(failures=1)
        provider = EmbeddingProvider("fake", loader=loader, dimensions=3)
        with pytest.raises(EmbeddingUnavailable):
            await provider.embed("x")
        assert not provider.is_loaded

        assert await provider.embed("x") == pytest.approx([0.6, 0.8, 0.0])
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_load_failure_after_callers_time_out_is_logged(self, caplog):
        class SlowFailingLoader(CountingLoader):
            def __call__(self, model_name):
                time.sleep(0.05)
                return super().__call__(model_name)

        loader = SlowFailingLoader(failures=1)
        provider = EmbeddingProvider("fake", loader=loader, dimensions=3)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(provider.init(), timeout=0.001)

        task = provider._load_task
        with caplog.at_level(logging.ERROR):
            await asyncio.wait([task])
            await asyncio.sleep(0)
        assert provider._load_task is None
        assert "Failed to load embedding model fake" in caplog.text

        assert await provider.embed("x") == pytest.approx([0.6, 0.8, 0.0])
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self):
        provider = EmbeddingProvider("fake", loader=CountingLoader(), dimensions=384)
        with pytest.raises(EmbeddingUnavailable):
            await provider.embed("x")

    @pytest.mark.asyncio
    async def test_warmup(self):
        assert await EmbeddingProvider("fake", loader=CountingLoader(), dimensions=3).warmup()
        assert not await EmbeddingProvider(
            "fake", loader=CountingLoader(failures=1), dimensions=3
        ).warmup()

    @pytest.mark.asyncio
    async def test_embed_many_empty(self):
        loader = CountingLoader()
        provider = EmbeddingProvider("fake", loader=loader, dimensions=3)
        assert await provider.embed_many([]) == []
        assert loader.calls == 0


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == pytest.approx(0.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 0.0])
