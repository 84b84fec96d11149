# pylint: disable=import-error,no-name-in-module
import pytest
from pydantic import ValidationError

from config.settings import AppSettings


@pytest.mark.unit
def test_port_defaults_to_3000_and_reads_port_variable(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("APP_PORT", raising=False)
    assert AppSettings().port == 3000

    monkeypatch.setenv("PORT", "8081")
    assert AppSettings().port == 8081


@pytest.mark.unit
def test_invalid_port_is_rejected(monkeypatch):
    monkeypatch.setenv("PORT", "70000")
    with pytest.raises(ValidationError):
        AppSettings()


@pytest.mark.unit
def test_citation_prefix_defaults_to_upstream_origin(monkeypatch):
    monkeypatch.setenv("APP_UPSTREAM_BASE_URL", "https://tenant.d-velop.cloud/")
    monkeypatch.delenv("APP_LINK_PREFIX", raising=False)
    s = AppSettings()
    assert s.upstream_origin == "https://tenant.d-velop.cloud"
    assert s.citation_link_prefix == "https://tenant.d-velop.cloud"

    monkeypatch.setenv("APP_LINK_PREFIX", "https://links.example.org/")
    assert AppSettings().citation_link_prefix == "https://links.example.org"


@pytest.mark.unit
def test_mcp_path_is_normalised(monkeypatch):
    monkeypatch.setenv("APP_MCP_PATH", "rpc/")
    assert AppSettings().mcp_path == "/rpc"

    monkeypatch.setenv("APP_MCP_PATH", "/")
    with pytest.raises(ValidationError):
        AppSettings()


@pytest.mark.unit
def test_prod_without_explicit_origins_denies_cors(monkeypatch):
    monkeypatch.setenv("APP_ENVIRONMENT", "prod")
    monkeypatch.delenv("APP_ALLOWED_ORIGINS", raising=False)
    assert AppSettings().cors_origins == []


@pytest.mark.unit
def test_polling_defaults_wait_five_seconds_without_limit(monkeypatch):
    monkeypatch.delenv("APP_POLL_INTERVAL_SECONDS", raising=False)
    monkeypatch.delenv("APP_POLL_MAX_ATTEMPTS", raising=False)
    s = AppSettings()
    assert s.poll_interval_seconds == 5.0
    assert s.poll_max_attempts is None
    assert s.assistant_id == "54110538-f15b-4ea2-a88d-264ebe19f790"
