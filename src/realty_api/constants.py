"""Constants for the realty dApp client."""

from enum import Enum

from web3 import Web3

from .types import AuthorizationModel, ContractName

# Wallet transport request methods
ETH_REQUEST_ACCOUNTS = "eth_requestAccounts"
ETH_ACCOUNTS = "eth_accounts"
ETH_CHAIN_ID = "eth_chainId"
ETH_GET_BALANCE = "eth_getBalance"
WALLET_SWITCH_CHAIN = "wallet_switchEthereumChain"
WALLET_ADD_CHAIN = "wallet_addEthereumChain"

# Wallet transport events
ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"
WALLET_EVENTS = (ACCOUNTS_CHANGED, CHAIN_CHANGED)

# EIP-1193 provider error codes
USER_REJECTED_CODE = 4001
UNAUTHORIZED_CODE = 4100
UNRECOGNIZED_CHAIN_CODE = 4902
INTERNAL_ERROR_CODE = -32603
EXECUTION_REVERTED_CODE = 3

# Error(string) revert selector
REVERT_SELECTOR = bytes.fromhex("08c379a0")

ZERO_BYTES32 = b"\x00" * 32
NATIVE_DECIMALS = 18


def _role_id(name: str) -> bytes:
    return bytes(Web3.keccak(text=name))


class Role(bytes, Enum):
    """Well-known AccessControl role identifiers."""

    DEFAULT_ADMIN_ROLE = ZERO_BYTES32
    ADMIN_ROLE = _role_id("ADMIN_ROLE")
    MINTER_ROLE = _role_id("MINTER_ROLE")
    BURNER_ROLE = _role_id("BURNER_ROLE")
    COMPLIANCE_OFFICER_ROLE = _role_id("COMPLIANCE_OFFICER_ROLE")
    FRACTIONALIZER_ROLE = _role_id("FRACTIONALIZER_ROLE")


# Explicit per-contract dispatch; never inferred from the ABI.
AUTHORIZATION_MODELS = {
    ContractName.COMPLIANCE_REGISTRY: AuthorizationModel.ROLE_BASED,
    ContractName.TITLE_NFT: AuthorizationModel.ROLE_BASED,
    ContractName.FRACTIONALIZER: AuthorizationModel.ROLE_BASED,
    ContractName.RENT_POOL_MERKLE: AuthorizationModel.SINGLE_OWNER,
}

# Message fragments emitted by providers when the signer/network moved mid-call
NETWORK_NOISE_MARKERS = (
    "underlying network changed",
    "network changed",
    "chain mismatch",
    "disconnected from chain",
)
