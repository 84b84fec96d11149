from __future__ import annotations

import json
import os

import pytest

from dvelop_mcp.cli import __main__ as cli_main
from dvelop_mcp.cli.commands import describe_tools, to_json


@pytest.mark.integration
def test_describe_tools_lists_schemas(registry):
    tools = describe_tools(registry)
    by_name = {t["name"]: t for t in tools}
    assert set(by_name) == {"ask-assistant", "list-users", "create-task", "list-tasks"}
    assert by_name["create-task"]["output_schema"] is None
    assert "question" in by_name["ask-assistant"]["input_schema"]["properties"]
    assert by_name["list-tasks"]["title"] == "List Tasks"


@pytest.mark.integration
def test_tools_command_prints_json(capsys):
    cli_main.main(["tools"])
    out = capsys.readouterr().out
    payload = json.loads(out)
    assert {t["name"] for t in payload} == {"ask-assistant", "list-users", "create-task", "list-tasks"}


@pytest.mark.integration
def test_to_json_is_stable_and_keeps_unicode():
    assert to_json({"b": 1, "a": "✅"}) == '{\n  "a": "✅",\n  "b": 1\n}'


@pytest.mark.integration
def test_missing_subcommand_exits_with_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main([])
    assert excinfo.value.code == 2


@pytest.mark.integration
def test_serve_passes_port_override_to_uvicorn(monkeypatch):
    from config.settings import get_settings
    from dvelop_mcp.cli import commands

    captured = {}

    def _fake_run(app, host, port, log_config):
        captured.update(app=app, host=host, port=port)

    monkeypatch.setattr(commands.uvicorn, "run", _fake_run)
    monkeypatch.delenv("PORT", raising=False)
    try:
        cli_main.main(["serve", "--host", "127.0.0.1", "--port", "4010"])
    finally:
        os.environ.pop("PORT", None)
        get_settings.cache_clear()

    assert captured["host"] == "127.0.0.1"
    assert captured["port"] == 4010
    assert captured["app"].title == "d.velop pilot MCP server"
