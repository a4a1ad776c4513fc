"""Unit tests for the cached RequirementsGate."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from vector_search.application.requirements_gate import ReadinessState, RequirementsGate
from vector_search.config import Settings
from vector_search.domain.errors import ModelMissingError, ServiceUnavailableError


def _make_client(
    version_ok: bool = True,
    models: list[str] | None = None,
) -> MagicMock:
    client = MagicMock()
    client.base_url = "http://localhost:11434"
    client.model_name = "nomic-embed-text:latest"
    client.check_version = AsyncMock(return_value=version_ok)
    client.list_models = AsyncMock(
        return_value=["nomic-embed-text:latest"] if models is None else models
    )
    return client


class TestEnsureReady:
    @pytest.mark.asyncio
    async def test_gate_should_start_unknown(self) -> None:
        gate = RequirementsGate(_make_client())

        assert gate.state is ReadinessState.UNKNOWN
        assert gate.last_error is None

    @pytest.mark.asyncio
    async def test_gate_should_become_ready_when_service_and_model_present(self) -> None:
        client = _make_client()
        gate = RequirementsGate(client)

        assert await gate.ensure_ready() is True
        assert gate.state is ReadinessState.READY
        client.check_version.assert_awaited_once()
        client.list_models.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gate_should_cache_ready_without_network_calls(self) -> None:
        client = _make_client()
        gate = RequirementsGate(client)
        await gate.ensure_ready()

        assert await gate.ensure_ready() is True
        assert await gate.ensure_ready(force_notify=True) is True
        assert client.check_version.await_count == 1

    @pytest.mark.asyncio
    async def test_gate_should_report_service_unavailable(self) -> None:
        client = _make_client(version_ok=False)
        gate = RequirementsGate(client)

        assert await gate.ensure_ready() is False
        assert gate.state is ReadinessState.NOT_READY
        assert isinstance(gate.last_error, ServiceUnavailableError)
        client.list_models.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gate_should_report_unavailable_when_model_listing_fails(self) -> None:
        client = _make_client()
        client.list_models.return_value = None
        gate = RequirementsGate(client)

        assert await gate.ensure_ready() is False
        assert isinstance(gate.last_error, ServiceUnavailableError)

    @pytest.mark.asyncio
    async def test_gate_should_report_missing_model(self) -> None:
        gate = RequirementsGate(_make_client(models=["llama3:8b", "nomic-embed-text"]))

        assert await gate.ensure_ready() is False
        assert isinstance(gate.last_error, ModelMissingError)
        assert "ollama pull nomic-embed-text:latest" in str(gate.last_error)

    @pytest.mark.asyncio
    async def test_gate_should_return_cached_not_ready_without_recheck(self) -> None:
        client = _make_client(version_ok=False)
        gate = RequirementsGate(client)
        await gate.ensure_ready()

        assert await gate.ensure_ready() is False
        assert client.check_version.await_count == 1

    @pytest.mark.asyncio
    async def test_gate_should_recheck_not_ready_when_forced(self) -> None:
        client = _make_client(version_ok=False)
        gate = RequirementsGate(client)
        await gate.ensure_ready()

        client.check_version.return_value = True
        assert await gate.ensure_ready(force_notify=True) is True
        assert client.check_version.await_count == 2
        assert gate.state is ReadinessState.READY
        assert gate.last_error is None


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_settings_change_of_model_should_reset_to_unknown(self) -> None:
        gate = RequirementsGate(_make_client())
        await gate.ensure_ready()
        old = Settings()

        gate.on_settings_changed(old, old.model_copy(update={"model_name": "other"}))

        assert gate.state is ReadinessState.UNKNOWN

    @pytest.mark.asyncio
    async def test_settings_change_of_url_should_reset_to_unknown(self) -> None:
        gate = RequirementsGate(_make_client(version_ok=False))
        await gate.ensure_ready()
        old = Settings()

        gate.on_settings_changed(
            old, old.model_copy(update={"service_url": "http://gpu-box:11434"})
        )

        assert gate.state is ReadinessState.UNKNOWN
        assert gate.last_error is None

    @pytest.mark.asyncio
    async def test_unrelated_settings_change_should_keep_cache(self) -> None:
        gate = RequirementsGate(_make_client())
        await gate.ensure_ready()
        old = Settings()

        gate.on_settings_changed(old, old.model_copy(update={"max_results": 3}))

        assert gate.state is ReadinessState.READY
