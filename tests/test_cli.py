"""
Test suite for the command-line interface.
"""

import json

import pytest
import yaml

from txsubmit.cli import build_config, create_parser, run_keys, run_submit


def parse(*argv):
    return create_parser().parse_args(list(argv))


def printed(capsys) -> str:
    """Last line written to stdout; log events may precede it."""
    lines = capsys.readouterr().out.strip().splitlines()
    return lines[-1] if lines else ""


class TestParser:
    """Tests for argument parsing."""

    def test_submit_arguments(self):
        args = parse(
            "submit",
            "--strategy", "strategy.yaml",
            "--transactions", "transactions.json",
            "--chains", "chains.yaml",
            "--dry-run",
        )

        assert args.command == "submit"
        assert args.strategy == "strategy.yaml"
        assert args.dry_run is True
        assert args.receipts is None

    def test_submit_requires_strategy(self):
        with pytest.raises(SystemExit):
            parse("submit", "--transactions", "t.json", "--chains", "c.yaml")

    def test_keys_arguments(self):
        args = parse("keys", "create", "--role", "validator", "--chain", "test1", "--index", "2")

        assert args.action == "create"
        assert args.role == "validator"
        assert args.index == 2

    def test_unknown_role_rejected(self):
        with pytest.raises(SystemExit):
            parse("keys", "create", "--role", "admin")


class TestBuildConfig:
    """Tests for command-line overrides."""

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("TXSUBMIT_LOG_LEVEL", "WARNING")
        args = parse(
            "submit",
            "--strategy", "s.yaml",
            "--transactions", "t.yaml",
            "--chains", "c.yaml",
            "--log-level", "DEBUG",
            "--database-url", "sqlite+aiosqlite:///r.db",
        )

        config = build_config(args)

        assert config.log_level == "DEBUG"
        assert config.database_url == "sqlite+aiosqlite:///r.db"

    def test_environment_used_without_flags(self, monkeypatch):
        monkeypatch.setenv("TXSUBMIT_ENVIRONMENT", "staging")

        config = build_config(parse("keys", "show", "--role", "deployer"))

        assert config.environment == "staging"


class TestRunKeys:
    """Tests for the keys command."""

    @pytest.mark.asyncio
    async def test_create_show_rotate_delete(self, tmp_path, capsys):
        store = tmp_path / "keys.json"
        base = ["--role", "relayer", "--environment", "test", "--key-store", str(store)]

        def run(action):
            args = parse("keys", action, *base)
            return run_keys(args, build_config(args))

        assert await run("create") == 0
        created = printed(capsys)
        assert created.startswith("agent-test-key-relayer: 0x")

        assert await run("show") == 0
        assert printed(capsys) == created

        assert await run("rotate") == 0
        assert printed(capsys) != created

        assert await run("delete") == 0
        assert json.loads(store.read_text()) == {}
        assert await run("show") == 1

    @pytest.mark.asyncio
    async def test_validator_key_requires_chain(self, tmp_path, capsys):
        args = parse("keys", "create", "--role", "validator", "--key-store", str(tmp_path / "keys.json"))

        assert await run_keys(args, build_config(args)) == 1
        assert "chain" in capsys.readouterr().err


class TestRunSubmit:
    """Tests for the submit command."""

    @pytest.mark.asyncio
    async def test_unknown_chain_reports_error(self, tmp_path, capsys):
        (tmp_path / "chains.yaml").write_text(
            yaml.safe_dump({"test1": {"rpc_url": "http://localhost:8545"}})
        )
        (tmp_path / "strategy.yaml").write_text(
            yaml.safe_dump({"chain": "nowhere", "submitter": {"type": "direct"}})
        )
        (tmp_path / "transactions.json").write_text("[]")
        args = parse(
            "submit",
            "--strategy", str(tmp_path / "strategy.yaml"),
            "--transactions", str(tmp_path / "transactions.json"),
            "--chains", str(tmp_path / "chains.yaml"),
        )

        assert await run_submit(args, build_config(args)) == 1
        assert "Unknown chain: nowhere" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_empty_strategy_file(self, tmp_path, capsys):
        (tmp_path / "chains.yaml").write_text("{}")
        (tmp_path / "strategy.yaml").write_text("")
        (tmp_path / "transactions.yaml").write_text("[]")
        args = parse(
            "submit",
            "--strategy", str(tmp_path / "strategy.yaml"),
            "--transactions", str(tmp_path / "transactions.yaml"),
            "--chains", str(tmp_path / "chains.yaml"),
        )

        assert await run_submit(args, build_config(args)) == 1
        assert "Submission strategy required" in capsys.readouterr().err
