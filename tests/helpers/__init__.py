"""Test helpers module for shared test utilities.

- constants: Addresses, keys and chain id used across tests
- factories: Artifact, build-info and configuration writers
- network: FakeNetwork, an in-memory Network for executor and CLI tests,
  and mock_web3 for driving the real web3 adapter
"""

from tests.helpers.constants import (
    CHAIN_ID,
    FACTORY,
    FEE_RECIPIENT,
    OWNER,
    PRIVATE_KEY,
    PRIVATE_KEY_ADDRESS,
    WETH,
)
from tests.helpers.factories import (
    function_abi,
    make_config_data,
    write_artifact,
    write_build_info,
    write_config,
)
from tests.helpers.network import FakeNetwork, Submission, mock_web3

__all__ = [
    # Constants
    "CHAIN_ID",
    "FACTORY",
    "FEE_RECIPIENT",
    "OWNER",
    "PRIVATE_KEY",
    "PRIVATE_KEY_ADDRESS",
    "WETH",
    # Fakes
    "FakeNetwork",
    "Submission",
    "mock_web3",
    # Factories
    "function_abi",
    "make_config_data",
    "write_artifact",
    "write_build_info",
    "write_config",
]
