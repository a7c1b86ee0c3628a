"""配置加载测试。"""
import pytest

from hostwatch.config import MonitorConfig, _parse_interval, load_config
from hostwatch.errors import ConfigError


def _write(tmp_path, text):
    p = tmp_path / "hostwatch.yaml"
    p.write_text(text)
    return str(p)


FULL = """
threshold: 75
hosts: [web-01, "db-01:2222"]
sample_count: 12
sample_interval: 5m
command_timeout: 20
ssh:
  username: monitor
  password: pw
smtp:
  server: relay.example.com
  port: 587
  from: monitor@example.com
  to: ops@example.com, oncall@example.com
  subject: CPU alert
  start_tls: true
disk:
  path: /data
  threshold: 15
"""


class TestLoadConfig:
    def test_full_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HOSTWATCH_SSH_PASSWORD", raising=False)
        cfg = load_config(_write(tmp_path, FULL))
        assert cfg.threshold == 75
        assert cfg.hosts == ["web-01", "db-01:2222"]
        assert cfg.sample_count == 12
        assert cfg.sample_interval == 300
        assert cfg.command_timeout == 20
        assert cfg.ssh.username == "monitor"
        assert cfg.ssh.password == "pw"
        assert cfg.smtp.server == "relay.example.com"
        assert cfg.smtp.port == 587
        assert cfg.smtp.sender == "monitor@example.com"
        assert cfg.smtp.recipients == ["ops@example.com", "oncall@example.com"]
        assert cfg.smtp.start_tls is True
        assert cfg.disk.path == "/data"
        assert cfg.disk.threshold == 15

    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, "hosts: [a]\n"))
        assert cfg.threshold == 80
        assert cfg.sample_count == 60
        assert cfg.sample_interval == 60
        assert cfg.effective_host_timeout == 60 * (60 + 1) + 120
        assert cfg.smtp.retries == 3

    def test_empty_file(self, tmp_path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg.hosts == []

    def test_env_overrides_passwords(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOSTWATCH_SSH_PASSWORD", "from-env")
        monkeypatch.setenv("HOSTWATCH_SMTP_PASSWORD", "smtp-env")
        cfg = load_config(_write(tmp_path, FULL))
        assert cfg.ssh.password == "from-env"
        assert cfg.smtp.password == "smtp-env"

    def test_recipient_list(self, tmp_path):
        cfg = load_config(_write(tmp_path, "smtp:\n  to: [a@x.com, b@x.com]\n"))
        assert cfg.smtp.recipients == ["a@x.com", "b@x.com"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_credentials_are_read_only(self, tmp_path):
        cfg = load_config(_write(tmp_path, FULL))
        with pytest.raises(Exception):
            cfg.ssh.password = "changed"

    @pytest.mark.parametrize("text", [
        "sample_count: 0\n",
        "sample_interval: -1\n",
        "threshold: 150\n",
        "threshold: high\n",
        "hosts: ['']\n",
        "max_parallel: 0\n",
        "disk:\n  threshold: -5\n",
        "sample_interval: soon\n",
        "sample_interval: .inf\n",
        "hosts: {web-01: true}\n",
        "- just\n- a list\n",
        "threshold: [unclosed\n",
    ])
    def test_invalid_values(self, tmp_path, text):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, text))


class TestParseInterval:
    @pytest.mark.parametrize("val,expected", [
        (15, 15), ("15", 15), ("15s", 15), ("2m", 120), ("1h", 3600),
        (0.5, 0.5), ("0.5", 0.5), ("0.25s", 0.25), ("1.5m", 90),
    ])
    def test_shorthand(self, val, expected):
        assert _parse_interval(val) == expected


def test_explicit_host_timeout():
    cfg = MonitorConfig(host_timeout=90)
    assert cfg.effective_host_timeout == 90


class TestHosts:
    def test_single_string_is_one_host(self, tmp_path):
        cfg = load_config(_write(tmp_path, "hosts: web-01\n"))
        assert cfg.hosts == ["web-01"]

    def test_comma_separated_string(self, tmp_path):
        cfg = load_config(_write(tmp_path, "hosts: web-01, db-01:2222\n"))
        assert cfg.hosts == ["web-01", "db-01:2222"]


class TestHostTimeout:
    def test_counter_query_time_included(self):
        """每次采样在远端还要额外等待 1 秒，间隔为 0 时也不能提前超时。"""
        cfg = MonitorConfig(sample_count=150, sample_interval=0)
        assert cfg.effective_host_timeout == 150 * 1 + 120
        assert cfg.effective_host_timeout > 150

    def test_fractional_interval_rounded_up(self):
        cfg = MonitorConfig(sample_count=3, sample_interval=0.5)
        assert cfg.effective_host_timeout == 125


def test_fractional_sample_interval(tmp_path):
    cfg = load_config(_write(tmp_path, "hosts: [a]\nsample_interval: 0.5\nhost_timeout: 1.5m\n"))
    assert cfg.sample_interval == 0.5
    assert cfg.host_timeout == 90
