import pytest

from netboot import config
from netboot.config import ExchangeConfig, LinkConfig, parse_hostport
from netboot.errors import InvalidValueError


class TestExchangeConfig:
    def test_defaults(self):
        cfg = ExchangeConfig()

        assert cfg.read_timeout == 3.0
        assert cfg.write_timeout == 3.0
        assert cfg.local_udp_addr_v4() == ("0.0.0.0", 68)
        assert cfg.remote_udp_addr_v4() == ("255.255.255.255", 67)
        assert cfg.local_udp_addr_v6() == ("::", 546)
        assert cfg.remote_udp_addr_v6() == ("ff02::1:2", 547)

    def test_overrides(self):
        cfg = ExchangeConfig(local_addr=("192.0.2.10", 1068), remote_addr=("192.0.2.1", 1067))

        assert cfg.local_udp_addr_v4() == ("192.0.2.10", 1068)
        assert cfg.remote_udp_addr_v4() == ("192.0.2.1", 1067)

    @pytest.mark.parametrize("method", ["local_udp_addr_v6", "remote_udp_addr_v6"])
    def test_v4_address_for_v6(self, method):
        cfg = ExchangeConfig(local_addr=("192.0.2.10", 546), remote_addr=("192.0.2.1", 547))

        with pytest.raises(InvalidValueError):
            getattr(cfg, method)()

    def test_not_an_address(self):
        with pytest.raises(InvalidValueError):
            ExchangeConfig(remote_addr=("dhcp.example.com", 67)).remote_udp_addr_v4()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NETBOOT_READ_TIMEOUT", "7.5")
        monkeypatch.setenv("NETBOOT_REMOTE_ADDR", "[2001:db8::1]:547")

        cfg = ExchangeConfig.from_env()

        assert cfg.read_timeout == 7.5
        assert cfg.write_timeout == 3.0
        assert cfg.local_addr is None
        assert cfg.remote_udp_addr_v6() == ("2001:db8::1", 547)

    def test_from_env_bad_number(self, monkeypatch):
        monkeypatch.setenv("NETBOOT_WRITE_TIMEOUT", "soon")

        with pytest.raises(InvalidValueError):
            ExchangeConfig.from_env()

    def test_from_env_file(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("NETBOOT_READ_TIMEOUT=9\n")
        monkeypatch.setattr(config, "ENV_LOCATIONS", [tmp_path / "missing", env_file])

        assert config.load_env_files() == env_file
        assert ExchangeConfig.from_env().read_timeout == 9.0


def test_link_config_from_env(monkeypatch):
    monkeypatch.setenv("NETBOOT_POLL_INTERVAL", "0.5")

    link = LinkConfig.from_env()

    assert link.poll_interval == 0.5
    assert link.timeout == config.DEFAULT_LINK_TIMEOUT


@pytest.mark.parametrize("value,expected", [
    ("192.0.2.1:67", ("192.0.2.1", 67)),
    ("[ff02::1:2]:547", ("ff02::1:2", 547)),
])
def test_parse_hostport(value, expected):
    assert parse_hostport(value) == expected


@pytest.mark.parametrize("value", ["192.0.2.1", ":67", "192.0.2.1:dhcp"])
def test_parse_hostport_invalid(value):
    with pytest.raises(InvalidValueError):
        parse_hostport(value)
