import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import stablecoin`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from stablecoin.addressing import Keypair  # noqa: E402
from stablecoin.config import get_config_manager  # noqa: E402
from stablecoin.program import StablecoinProgram  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Every test starts from default configuration with no STABLECOIN_* env."""
    for key in list(os.environ):
        if key.startswith("STABLECOIN_"):
            monkeypatch.delenv(key, raising=False)
    get_config_manager().reset()
    yield
    get_config_manager().reset()


def keypair(n: int) -> Keypair:
    """Deterministic keypair number ``n``."""
    return Keypair.from_seed(bytes([n]) * 32)


@pytest.fixture
def admin():
    return keypair(1).identity


@pytest.fixture
def alice():
    return keypair(2).identity


@pytest.fixture
def bob():
    return keypair(3).identity


@pytest.fixture
def mint_handle():
    return keypair(100).identity


@pytest.fixture
def program():
    return StablecoinProgram.in_memory(clock=lambda: 1_700_000_000)


@pytest.fixture
def basic_coin(program, admin, mint_handle):
    """A registry without compliance mode."""
    program.initialize(admin, mint_handle, "Basic Dollar", "BUSD", "https://example.com/busd.json", 6)
    return program


@pytest.fixture
def compliant_coin(program, admin, mint_handle):
    """A registry with permanent delegate and transfer hook."""
    program.initialize(
        admin, mint_handle, "Compliant Dollar", "CUSD", "https://example.com/cusd.json", 6,
        permanent_delegate=True, transfer_hook=True, default_frozen=False,
    )
    return program
