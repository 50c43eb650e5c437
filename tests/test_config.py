"""
Tests for config loading, validation and the CLI entry point.
"""

import json

import yaml

from main import load_config, main, validate_config


class TestValidateConfig:
    def test_valid(self, valid_config):
        assert validate_config(valid_config) == (True, None)

    def test_missing_section(self, valid_config):
        del valid_config["storage"]
        ok, msg = validate_config(valid_config)
        assert not ok
        assert "storage" in msg

    def test_unknown_backend(self, valid_config):
        valid_config["detection"]["backend"] = "magic"
        ok, msg = validate_config(valid_config)
        assert not ok
        assert "backend" in msg

    def test_remote_requires_url(self, valid_config):
        valid_config["detection"]["backend"] = "remote"
        valid_config["detection"]["remote"] = {"url": ""}
        ok, msg = validate_config(valid_config)
        assert not ok
        assert "remote.url" in msg

    def test_remote_with_url(self, valid_config):
        valid_config["detection"]["backend"] = "remote"
        valid_config["detection"]["remote"] = {"url": "http://model:8080", "timeout_s": 5}
        assert validate_config(valid_config) == (True, None)

    def test_remote_timeout_exceeds_detection_timeout(self, valid_config):
        valid_config["detection"]["backend"] = "remote"
        valid_config["detection"]["timeout_s"] = 5.0
        valid_config["detection"]["remote"] = {"url": "http://model:8080", "timeout_s": 10}
        ok, msg = validate_config(valid_config)
        assert not ok
        assert "remote.timeout_s" in msg

    def test_remote_timeout_equal_to_detection_timeout(self, valid_config):
        valid_config["detection"]["backend"] = "remote"
        valid_config["detection"]["timeout_s"] = 10.0
        valid_config["detection"]["remote"] = {"url": "http://model:8080", "timeout_s": 10}
        assert validate_config(valid_config) == (True, None)

    def test_remote_default_timeout_checked(self, valid_config):
        valid_config["detection"]["backend"] = "remote"
        valid_config["detection"]["timeout_s"] = 2.0
        valid_config["detection"]["remote"] = {"url": "http://model:8080"}
        assert not validate_config(valid_config)[0]

    def test_threshold_range(self, valid_config):
        valid_config["detection"]["presence_threshold"] = 1.0
        assert not validate_config(valid_config)[0]

    def test_negative_seed(self, valid_config):
        valid_config["detection"]["seed"] = -1
        assert not validate_config(valid_config)[0]

    def test_physics_positive(self, valid_config):
        valid_config["physics"]["watt_per_sqm"] = 0
        assert not validate_config(valid_config)[0]

    def test_workflow_attempts(self, valid_config):
        valid_config["workflow"]["max_attempts"] = 0
        assert not validate_config(valid_config)[0]

    def test_backoff_factor(self, valid_config):
        valid_config["workflow"]["backoff_factor"] = 0.5
        assert not validate_config(valid_config)[0]

    def test_port(self, valid_config):
        valid_config["web"] = {"port": 70000}
        assert not validate_config(valid_config)[0]

    def test_log_level(self, valid_config):
        valid_config["log_level"] = "LOUD"
        assert not validate_config(valid_config)[0]


class TestLoadConfig:
    def test_default_only(self, temp_config_dir):
        cfg = load_config(str(temp_config_dir / "config.yaml"))
        assert cfg["detection"]["seed"] == 7
        assert cfg["physics"]["watt_per_sqm"] == 180

    def test_local_overrides_merge(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text(
            yaml.safe_dump({"detection": {"seed": 9}, "log_level": "DEBUG"})
        )
        cfg = load_config(str(temp_config_dir / "config.yaml"))
        assert cfg["detection"]["seed"] == 9
        assert cfg["detection"]["presence_threshold"] == 0.3
        assert cfg["log_level"] == "DEBUG"

    def test_explicit_file_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text(yaml.safe_dump({"detection": {"seed": 9}}))
        explicit = temp_config_dir / "prod.yaml"
        explicit.write_text(yaml.safe_dump({"detection": {"seed": 11}}))
        cfg = load_config(str(explicit))
        assert cfg["detection"]["seed"] == 11
        assert cfg["detection"]["backend"] == "simulated"


def _write_config(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(yaml.safe_dump({
        "detection": {"backend": "simulated", "seed": 3},
        "storage": {"local_database_path": str(tmp_path / "data" / "results.sqlite")},
        "log_path": str(tmp_path / "logs" / "app.log"),
        "log_level": "INFO",
    }))
    return str(config_dir / "config.yaml")


class TestMain:
    def test_detect_then_export(self, tmp_path, capsys):
        config_path = _write_config(tmp_path)

        code = main(["--config", config_path, "detect",
                     "--sample-id", "S1", "--lat", "12.97", "--lon", "77.59",
                     "--claim-id", "C1"])
        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["sample_id"] == "S1"

        out_file = tmp_path / "out" / "results.json"
        code = main(["--config", config_path, "export", "--format", "json",
                     "--output", str(out_file)])
        assert code == 0
        exported = json.loads(out_file.read_text())
        assert exported[0]["claim_id"] == "C1"

    def test_batch_file_saved_by_excel(self, tmp_path, capsys):
        config_path = _write_config(tmp_path)
        csv_path = tmp_path / "claims.csv"
        csv_path.write_text("Latitude,Longitude,Sample ID\r\n12.9,77.5,S1\r\n", encoding="utf-8-sig")

        code = main(["--config", config_path, "batch", str(csv_path)])
        assert code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["verified"] == 1

    def test_batch_with_rejected_row(self, tmp_path, capsys):
        config_path = _write_config(tmp_path)
        csv_path = tmp_path / "claims.csv"
        csv_path.write_text("sample_id,lat,lon\nS1,12.9,77.5\nS2,95.0,77.5\n")

        code = main(["--config", config_path, "batch", str(csv_path)])
        assert code == 2
        summary = json.loads(capsys.readouterr().out)
        assert summary["verified"] == 1
        assert summary["rejected"] == 1

    def test_invalid_config(self, tmp_path):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "default.yaml").write_text(yaml.safe_dump({"log_level": "INFO"}))
        assert main(["--config", str(config_dir / "config.yaml"), "export"]) == 1
