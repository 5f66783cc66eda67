"""
Command-line parsing and exit codes.
"""

import pytest

from portlease import cli


def test_run_without_command_fails(capsys, monkeypatch):
    monkeypatch.setenv("PORTLEASE_URL", "http://127.0.0.1:1")

    assert cli.main(["run", "svc"]) == 1
    assert "No command specified" in capsys.readouterr().err


def test_unreachable_daemon_exits_nonzero(capsys):
    assert cli.main(["--url", "http://127.0.0.1:1", "list"]) == 1
    assert "Cannot reach portlease daemon" in capsys.readouterr().err


def test_lease_options_parse():
    parser = cli.build_parser()
    args = parser.parse_args(["run", "web", "--ttl", "30", "--tag", "a", "--tag", "b"])

    assert args.service_name == "web"
    assert args.ttl == 30
    assert args.tag == ["a", "b"]


def test_subcommand_required():
    with pytest.raises(SystemExit):
        cli.main([])


@pytest.mark.asyncio
async def test_lookup_prints_lowest_or_all_ports(app, capsys, monkeypatch):
    from httpx import ASGITransport, AsyncClient

    from portlease.client import PortLeaseClient

    manager = app.state.manager
    await manager.allocate("api")
    await manager.allocate("api")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        client = PortLeaseClient(base_url="http://test", http_client=http_client)
        parser = cli.build_parser()

        assert await cli._lookup(client, parser.parse_args(["lookup", "api"])) == 0
        assert await cli._lookup(client, parser.parse_args(["lookup", "api", "--all"])) == 0
        assert await cli._lookup(client, parser.parse_args(["lookup", "ghost"])) == 1

    captured = capsys.readouterr()
    assert captured.out.split() == ["9000", "9000", "9001"]
    assert "No port found for service: ghost" in captured.err
