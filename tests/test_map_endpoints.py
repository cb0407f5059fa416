"""Tests for configuration, credentials and the batch mapping run."""

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from fakes import FakeCommAPI

from endpoint_mapper import map_endpoints
from endpoint_mapper.discovery import MappingSession, NodeResult, ReportGenerator
from endpoint_mapper.map_endpoints import (
    DEFAULT_ROOT_NODES,
    CredentialError,
    get_base_url,
    get_default_config,
    load_api_key,
    load_config,
    run_mapping,
    select_nodes,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host CommAPI settings out of the tests."""
    for name in ("COMMAPI_URL", "COMMAPI_KEY", "COMMAPI_KEY_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def two_root_tree():
    return {
        "DriverAid": {"endpoints": {"Data": 1}, "nodes": ["Hud"]},
        "DriverAid/Hud": {"endpoints": {"Visible": True}, "nodes": []},
        "TimeOfDay": {"endpoints": {"Hour": 12}, "nodes": []},
    }


@pytest.fixture
def mapper_config(tmp_path):
    """Config writing under tmp_path with no pacing delay."""
    config = get_default_config()
    config["base_url"] = "http://commapi.test"
    config["root_nodes"] = ["DriverAid", "TimeOfDay"]
    config["rate_limit"]["delay_ms"] = 0
    config["output"]["endpoints_dir"] = str(tmp_path / "endpoints")
    config["output"]["reports_dir"] = str(tmp_path / "reports")
    return config


# ============================================================================
# Configuration
# ============================================================================


class TestConfig:
    """Test configuration loading."""

    def test_defaults(self):
        """Test default values match the simulator's CommAPI."""
        config = get_default_config()
        assert config["base_url"] == "http://localhost:31270"
        assert config["api_key_header"] == "DTGCommKey"
        assert config["root_nodes"] == DEFAULT_ROOT_NODES
        assert config["rate_limit"] == {"delay_ms": 250, "timeout_ms": 5000}
        assert config["exploration"]["max_depth"] == 20
        assert config["api_key_path"].endswith("CommAPIKey.txt")

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing config file falls back to defaults."""
        assert load_config(tmp_path / "missing.yaml") == get_default_config()

    def test_yaml_deep_merge(self, tmp_path):
        """Test nested sections merge over the defaults."""
        config_path = tmp_path / "mapper.yaml"
        config_path.write_text(
            yaml.dump(
                {
                    "mapper": {
                        "root_nodes": ["Player"],
                        "rate_limit": {"delay_ms": 50},
                        "exploration": {"max_depth": 3},
                    },
                },
            ),
        )

        config = load_config(config_path)

        assert config["root_nodes"] == ["Player"]
        assert config["rate_limit"] == {"delay_ms": 50, "timeout_ms": 5000}
        assert config["exploration"]["max_depth"] == 3
        assert config["exploration"]["path_separator"] == "/"

    def test_shipped_config_loads(self):
        """Test the repository config parses to the defaults."""
        shipped = Path(__file__).parent.parent / "config" / "mapper.yaml"
        config = load_config(shipped)

        assert config["root_nodes"] == DEFAULT_ROOT_NODES
        assert config["exploration"]["retry_failed_endpoints"] is False

    def test_base_url_env_override(self, monkeypatch):
        """Test COMMAPI_URL wins over config."""
        monkeypatch.setenv("COMMAPI_URL", "http://192.168.1.5:31270/")
        assert get_base_url({"base_url": "http://localhost:31270"}) == "http://192.168.1.5:31270"

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            (None, ["DriverAid", "TimeOfDay", "Player"]),
            (["Player", "DriverAid"], ["DriverAid", "Player"]),
            (["Extra"], ["Extra"]),
        ],
    )
    def test_select_nodes(self, requested, expected):
        """Test node selection keeps configured order."""
        config = {"root_nodes": ["DriverAid", "TimeOfDay", "Player"]}
        assert select_nodes(config, requested) == expected


# ============================================================================
# Credentials
# ============================================================================


class TestLoadApiKey:
    """Test reading the shared key."""

    def test_reads_key_file(self, tmp_path):
        """Test the key file is read and stripped."""
        key_file = tmp_path / "CommAPIKey.txt"
        key_file.write_text("abc123\n")

        assert load_api_key({"api_key_path": str(key_file)}) == "abc123"

    def test_env_key_wins(self, monkeypatch, tmp_path):
        """Test COMMAPI_KEY is used without touching the file."""
        monkeypatch.setenv("COMMAPI_KEY", "from-env")
        assert load_api_key({"api_key_path": str(tmp_path / "missing.txt")}) == "from-env"

    def test_env_key_path(self, monkeypatch, tmp_path):
        """Test COMMAPI_KEY_PATH overrides the configured path."""
        key_file = tmp_path / "other.txt"
        key_file.write_text("other-key")
        monkeypatch.setenv("COMMAPI_KEY_PATH", str(key_file))

        assert load_api_key({"api_key_path": str(tmp_path / "missing.txt")}) == "other-key"

    def test_missing_file(self, tmp_path):
        """Test a missing key file is a credential error."""
        with pytest.raises(CredentialError, match="Failed to read API key"):
            load_api_key({"api_key_path": str(tmp_path / "missing.txt")})

    def test_empty_file(self, tmp_path):
        """Test an empty key file is a credential error."""
        key_file = tmp_path / "CommAPIKey.txt"
        key_file.write_text("  \n")

        with pytest.raises(CredentialError, match="empty"):
            load_api_key({"api_key_path": str(key_file)})


# ============================================================================
# Batch run
# ============================================================================


class TestRunMapping:
    """Test sequential processing of root nodes."""

    @pytest.mark.asyncio
    async def test_maps_nodes_in_order(self, mapper_config, tmp_path, two_root_tree):
        """Test each root node is mapped in configured order."""
        api = FakeCommAPI(two_root_tree)

        session = await run_mapping(mapper_config, "secret", transport=api.transport())

        assert [r.target_node for r in session.results] == ["DriverAid", "TimeOfDay"]
        assert [r.endpoint_count for r in session.results] == [2, 1]
        assert api.listings == ["DriverAid", "DriverAid/Hud", "TimeOfDay"]
        assert session.completed_at is not None
        assert session.rate_limiter_stats["requests_made"] == 6

        for node in ("DriverAid", "TimeOfDay"):
            document = json.loads((tmp_path / "endpoints" / f"{node}_endpoints.json").read_text())
            assert document["completed"] is True
        assert len(list((tmp_path / "reports").glob("report_*.txt"))) == 2

    @pytest.mark.asyncio
    async def test_second_run_skips_everything(self, mapper_config, two_root_tree):
        """Test completed nodes are skipped on a rerun."""
        await run_mapping(mapper_config, "secret", transport=FakeCommAPI(two_root_tree).transport())

        api = FakeCommAPI(two_root_tree)
        session = await run_mapping(mapper_config, "secret", transport=api.transport())

        assert session.skipped == ["DriverAid", "TimeOfDay"]
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_sends_key_header(self, mapper_config, two_root_tree):
        """Test every request carries the configured key header."""
        api = FakeCommAPI(two_root_tree)
        keys = []
        original = api.handler

        def handler(request):
            keys.append(request.headers.get("DTGCommKey"))
            return original(request)

        api.handler = handler
        await run_mapping(mapper_config, "secret", nodes=["TimeOfDay"], transport=api.transport())

        assert keys == ["secret", "secret"]

    @pytest.mark.asyncio
    async def test_session_summary(self, mapper_config, tmp_path, two_root_tree):
        """Test the session summary JSON."""
        session = await run_mapping(
            mapper_config,
            "secret",
            transport=FakeCommAPI(two_root_tree).transport(),
        )
        path = ReportGenerator(tmp_path / "reports").generate_session_summary(session)

        summary = json.loads(path.read_text())
        assert summary["statistics"] == {
            "nodes_total": 2,
            "nodes_skipped": 0,
            "endpoints_total": 3,
        }
        assert [n["target_node"] for n in summary["nodes"]] == ["DriverAid", "TimeOfDay"]


# ============================================================================
# Entry point
# ============================================================================


class TestMain:
    """Test process exit codes."""

    def test_missing_credentials_exit_code(self, monkeypatch, tmp_path):
        """Test a missing key aborts before any traversal."""
        config_path = tmp_path / "mapper.yaml"
        config_path.write_text(yaml.dump({"mapper": {"api_key_path": str(tmp_path / "none.txt")}}))
        monkeypatch.setattr(sys, "argv", ["commapi-map", "--config", str(config_path)])

        with patch.object(map_endpoints, "run_mapping", new=AsyncMock()) as run:
            assert map_endpoints.main() == 1

        run.assert_not_called()

    def test_success_exit_code(self, monkeypatch, tmp_path):
        """Test a completed batch exits zero and writes the summary."""
        monkeypatch.setenv("COMMAPI_KEY", "secret")
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "commapi-map",
                "--config",
                str(tmp_path / "missing.yaml"),
                "--reports-dir",
                str(tmp_path / "reports"),
                "--node",
                "TimeOfDay",
            ],
        )
        session = MappingSession(results=[NodeResult(target_node="TimeOfDay", completed=True)])

        with patch.object(map_endpoints, "run_mapping", new=AsyncMock(return_value=session)) as run:
            assert map_endpoints.main() == 0

        assert run.call_args.args[2] == ["TimeOfDay"]
        assert (tmp_path / "reports" / "mapping-session.json").exists()

    def test_unexpected_error_exit_code(self, monkeypatch, tmp_path):
        """Test an unhandled error exits non-zero."""
        monkeypatch.setenv("COMMAPI_KEY", "secret")
        monkeypatch.setattr(sys, "argv", ["commapi-map", "--config", str(tmp_path / "missing.yaml")])

        with patch.object(map_endpoints, "run_mapping", new=AsyncMock(side_effect=RuntimeError("boom"))):
            assert map_endpoints.main() == 1
