import pytest

from configparser import ConfigParser

from vunit.vunit import VUnitConfig
from vunit.exceptions import CriticalError


@pytest.fixture(autouse=True)
def vunit_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("VUNIT_DIR", str(tmp_path / "vunit"))
    monkeypatch.setenv("INFURA_ID", "test-id")
    monkeypatch.delenv("VUNIT_COMPILER_URL", raising=False)
    monkeypatch.delenv("VUNIT_COMPILER_TOKEN", raising=False)
    return tmp_path / "vunit"


def test_creates_the_data_dir_and_defaults(vunit_dir):
    config = VUnitConfig()
    assert (vunit_dir / "config.ini").exists()
    assert config.get("rpc") == "localhost"
    assert config.slot_width == 32
    assert config.obfuscated is False
    assert config.contracts == []
    assert config.account is None
    assert config.chain_id is None
    assert config.compiler_url == "https://api.chainsatlas.com"


def test_config_path_rpc():
    config = VUnitConfig()
    config.set("rpc", "infura-sepolia")
    config.set_api_from_config_path()
    assert "sepolia.infura.io/v3/test-id" in config.eth.host


rpc_types_tests = [
    ("infura", "mainnet.infura.io/v3/", None, True),
    ("ganache", "localhost", 7545, True),
    ("infura-mainnet", "mainnet.infura.io/v3/", None, True),
    ("infura-sepolia", "sepolia.infura.io/v3/", None, True),
    ("localhost", "localhost", 8545, True),
    ("localhost:9022", "localhost", 9022, True),
    ("pinfura", None, None, False),
    ("infura-finkeby", None, None, False),
]


@pytest.mark.parametrize("rpc_type,host,port,success", rpc_types_tests)
def test_set_rpc(rpc_type, host, port, success):
    config = VUnitConfig()
    if success:
        config._set_rpc(rpc_type)
        assert host in config.eth.host
        assert config.eth.port == port
    else:
        with pytest.raises(CriticalError):
            config._set_rpc(rpc_type)


def test_infura_without_key(monkeypatch):
    monkeypatch.delenv("INFURA_ID")
    config = VUnitConfig()
    config.set_api_rpc("infura-mainnet")
    assert config.eth is None


def test_rpc_config_addition():
    config = ConfigParser()
    config.add_section("defaults")
    VUnitConfig._add_rpc_option(config)
    assert config.has_section("defaults")
    assert config.get("defaults", "rpc") == "localhost"


def test_options_persist():
    config = VUnitConfig()
    config.set("compiler_token", "secret")
    config.add_contract("0x" + "11" * 20)
    config.add_contract("0x" + "22" * 20)
    config.add_contract("0x" + "11" * 20)

    reloaded = VUnitConfig()
    assert reloaded.compiler_token == "secret"
    assert reloaded.contracts == ["0x" + "11" * 20, "0x" + "22" * 20]


def test_environment_overrides(monkeypatch):
    config = VUnitConfig()
    config.set("compiler_token", "from-file")
    monkeypatch.setenv("VUNIT_COMPILER_URL", "http://localhost:5000")
    monkeypatch.setenv("VUNIT_COMPILER_TOKEN", "from-env")
    assert config.compiler_url == "http://localhost:5000"
    assert config.compiler_token == "from-env"


@pytest.mark.parametrize(
    "option,value,attribute",
    [
        ("slot_width", "16", "slot_width"),
        ("slot_width", "wide", "slot_width"),
        ("receipt_timeout", "-1", "receipt_timeout"),
        ("poll_interval", "soon", "poll_interval"),
        ("chain_id", "mainnet", "chain_id"),
    ],
)
def test_invalid_options(option, value, attribute):
    config = VUnitConfig()
    config.set(option, value)
    with pytest.raises(CriticalError):
        getattr(config, attribute)


def test_typed_options():
    config = VUnitConfig()
    config.set("slot_width", "64")
    config.set("obfuscated", "true")
    config.set("receipt_timeout", "30")
    config.set("chain_id", "11155111")
    assert config.slot_width == 64
    assert config.obfuscated is True
    assert config.receipt_timeout == 30.0
    assert config.chain_id == 11155111
