"""Tests for configuration loading and validation."""

import pytest

from algo_did.config import (
    ExactMultiplePolicy,
    StatusCodes,
    StoreConfig,
    StoreLimits,
    apply_env_overrides,
    build_config,
    load_config,
    save_config,
)
from algo_did.context import ProjectContext
from algo_did.errors import ConfigurationError


class TestStoreLimits:
    """Test store limit validation."""

    def test_defaults(self):
        limits = StoreLimits()
        assert limits.slot_capacity == 32768
        assert limits.per_byte_rate == 400
        assert limits.per_slot_rate == 2500
        assert limits.write_payload == 2002
        assert limits.metadata_fixed_bytes == 65

    def test_frozen(self):
        limits = StoreLimits()
        with pytest.raises(Exception):
            limits.slot_capacity = 1

    @pytest.mark.parametrize("overrides", [
        {"slot_capacity": 0},
        {"write_ops_per_batch": 0},
        {"per_byte_rate": -1},
        {"envelope_overhead": 2048},
        {"reference_floor": 1},
        {"write_ops_per_batch": 17},
        {"noop_padding": 16},
    ])
    def test_inconsistent_limits_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            StoreLimits(**overrides)

    def test_check_against_accepts_matching_ledger(self):
        StoreLimits().check_against(max_group_size=16, max_references=8)

    def test_check_against_reference_limit(self):
        with pytest.raises(ConfigurationError, match="reference"):
            StoreLimits().check_against(max_group_size=16, max_references=4)

    def test_check_against_group_limit(self):
        with pytest.raises(ConfigurationError, match="group"):
            StoreLimits().check_against(max_group_size=8, max_references=8)


class TestStoreConfig:
    """Test top-level configuration."""

    def test_defaults(self):
        config = StoreConfig()
        assert config.app_id == 0
        assert config.exact_multiple == ExactMultiplePolicy.TRAILING_SLOT
        assert config.parallel_slots == 1
        assert config.write_retries == 0
        assert config.algod.address == "http://localhost:4001"

    def test_status_codes_distinct(self):
        with pytest.raises(ConfigurationError):
            StatusCodes(ready=1)

    def test_parallel_slots_positive(self):
        with pytest.raises(ConfigurationError):
            StoreConfig(parallel_slots=0)

    def test_write_retries_non_negative(self):
        with pytest.raises(ConfigurationError):
            StoreConfig(write_retries=-1)

    def test_build_config_wraps_validation_errors(self):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            build_config({"app_id": "not-a-number"})

    def test_build_config_policy_from_string(self):
        config = build_config({"exact_multiple": "exact"})
        assert config.exact_multiple == ExactMultiplePolicy.EXACT


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_connection_overrides(self, monkeypatch):
        monkeypatch.setenv("ALGOD_ADDRESS", "http://node:8080")
        monkeypatch.setenv("KMD_WALLET_NAME", "mine")
        config = build_config({"algod": {"token": "t"}})
        assert config.algod.address == "http://node:8080"
        assert config.algod.token == "t"
        assert config.kmd.wallet_name == "mine"

    def test_app_id_override(self, monkeypatch):
        monkeypatch.setenv("ALGO_DID_APP_ID", "1234")
        assert apply_env_overrides({"app_id": 1})["app_id"] == 1234

    def test_app_id_must_be_integer(self, monkeypatch):
        monkeypatch.setenv("ALGO_DID_APP_ID", "abc")
        with pytest.raises(ConfigurationError):
            apply_env_overrides({})

    def test_input_not_mutated(self, monkeypatch):
        monkeypatch.setenv("ALGOD_TOKEN", "x")
        data = {"algod": {"address": "a"}}
        apply_env_overrides(data)
        assert data == {"algod": {"address": "a"}}


class TestLoadSave:
    """Test reading and writing .algo-did/config.yaml."""

    def test_defaults_outside_project(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config() == StoreConfig()

    def test_defaults_when_file_missing(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        assert load_config(ctx) == StoreConfig()

    def test_save_load_round_trip(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        config = StoreConfig(app_id=42, exact_multiple=ExactMultiplePolicy.EXACT, write_retries=2)
        save_config(config, ctx)
        assert ctx.config_path.exists()
        assert load_config(ctx) == config

    def test_no_temp_files_left(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        save_config(StoreConfig(), ctx)
        assert [p.name for p in ctx.storage_dir.iterdir()] == ["config.yaml"]

    def test_found_from_subdirectory(self, tmp_path, monkeypatch):
        ctx = ProjectContext.init(tmp_path)
        save_config(StoreConfig(app_id=7), ctx)
        sub = tmp_path / "a" / "b"
        sub.mkdir(parents=True)
        monkeypatch.chdir(sub)
        assert load_config().app_id == 7

    def test_malformed_yaml(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        ctx.config_path.write_text("app_id: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_config(ctx)

    def test_non_mapping(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        ctx.config_path.write_text("- one\n- two\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(ctx)

    def test_inconsistent_limits_in_file(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        ctx.config_path.write_text("limits:\n  reference_floor: 1\n")
        with pytest.raises(ConfigurationError):
            load_config(ctx)


class TestProjectContext:
    """Test project root discovery."""

    def test_not_in_project(self, tmp_path):
        with pytest.raises(ValueError):
            ProjectContext(tmp_path)

    def test_is_initialized(self, tmp_path):
        assert not ProjectContext.is_initialized(tmp_path)
        ProjectContext.init(tmp_path)
        assert ProjectContext.is_initialized(tmp_path)

    def test_paths(self, tmp_path):
        ctx = ProjectContext.init(tmp_path)
        assert ctx.root == tmp_path.resolve()
        assert ctx.config_path == tmp_path.resolve() / ".algo-did" / "config.yaml"
