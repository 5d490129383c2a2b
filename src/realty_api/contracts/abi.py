"""Contract interfaces of the deployed realty contracts."""

from __future__ import annotations

from typing import Any

from ..types import ContractName

_PROPERTY_DATA = {
    "name": "data",
    "type": "tuple",
    "components": [
        {"name": "location", "type": "string"},
        {"name": "value", "type": "uint256"},
        {"name": "area", "type": "uint256"},
        {"name": "propertyType", "type": "string"},
        {"name": "isVerified", "type": "bool"},
    ],
}

_FRACTIONALIZATION_DATA = {
    "name": "",
    "type": "tuple",
    "components": [
        {"name": "tokenAddress", "type": "address"},
        {"name": "totalSupply", "type": "uint256"},
        {"name": "fractionalizer", "type": "address"},
        {"name": "timestamp", "type": "uint256"},
        {"name": "isActive", "type": "bool"},
    ],
}


def _param(spec: str | dict) -> dict:
    if isinstance(spec, dict):
        return dict(spec)
    type_, _, name = spec.partition(" ")
    return {"name": name, "type": type_}


def _function(
    name: str,
    inputs: list[str | dict] | None = None,
    outputs: list[str | dict] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [_param(item) for item in inputs or []],
        "outputs": [_param(item) for item in outputs or []],
        "stateMutability": mutability,
    }


def _view(name: str, inputs: list[str | dict] | None = None, outputs: list[str | dict] | None = None) -> dict:
    return _function(name, inputs, outputs, mutability="view")


_PAUSABLE = [
    _function("pause"),
    _function("unpause"),
    _view("paused", outputs=["bool"]),
]

_ACCESS_CONTROL = [
    _view("hasRole", ["bytes32 role", "address account"], ["bool"]),
    _function("grantRole", ["bytes32 role", "address account"]),
    _function("revokeRole", ["bytes32 role", "address account"]),
]

ComplianceRegistry_abi = [
    _view("isKYCed", ["address user"], ["bool"]),
    _view("isKYCValid", ["address user"], ["bool"]),
    _view(
        "getKYCInfo",
        ["address user"],
        ["bool kycStatus", "uint256 timestamp", "uint256 expiry", "bool isValid"],
    ),
    _view("getEncryptedKYCData", ["address user"], ["bytes32"]),
    _view("commitmentHashes", ["address user"], ["bytes32"]),
    _function(
        "setKYC",
        ["address user", "bool status", "uint256 expiryTimestamp", "bytes32 encryptedData"],
    ),
    _function("batchSetKYC", ["address[] users", "bool status", "uint256 expiryTimestamp"]),
    _function("setEncryptedKYCData", ["address user", "bytes32 encryptedData"]),
    _function("setCommitment", ["bytes32 commitment"]),
    _function("revokeKYC", ["address user"]),
    _function("batchRevokeKYC", ["address[] users"]),
    *_PAUSABLE,
    *_ACCESS_CONTROL,
]

TitleNFT_abi = [
    _view("ownerOf", ["uint256 tokenId"], ["address"]),
    _view("tokenURI", ["uint256 tokenId"], ["string"]),
    _view("getPropertyData", ["uint256 tokenId"], [_PROPERTY_DATA]),
    _view("getPropertyOwner", ["uint256 tokenId"], ["address"]),
    _view("getMintTimestamp", ["uint256 tokenId"], ["uint256"]),
    _view("getDocURI", ["uint256 tokenId"], ["string"]),
    _view("getEncryptedMetadata", ["uint256 tokenId"], ["bytes32"]),
    _view("balanceOf", ["address owner"], ["uint256"]),
    _view("tokenOfOwnerByIndex", ["address owner", "uint256 index"], ["uint256"]),
    _view("totalSupply", outputs=["uint256"]),
    _view("tokenByIndex", ["uint256 index"], ["uint256"]),
    _function("mintTitle", ["address to", "string metadataURI", _PROPERTY_DATA], ["uint256"]),
    _function("burn", ["uint256 id"]),
    _function("updateMetadataURI", ["uint256 tokenId", "string newURI"]),
    _function("setEncryptedMetadata", ["uint256 tokenId", "bytes32 encryptedData"]),
    _function("updatePropertyData", ["uint256 tokenId", _PROPERTY_DATA]),
    _function("verifyProperty", ["uint256 tokenId"]),
    *_PAUSABLE,
    *_ACCESS_CONTROL,
]

Fractionalizer_abi = [
    _view("getFractionalizationData", ["uint256 tokenId"], [_FRACTIONALIZATION_DATA]),
    _view("isPropertyFractionalized", ["uint256 tokenId"], ["bool"]),
    _view("getPropertyFromToken", ["address tokenAddress"], ["uint256"]),
    _view("fractionalizationFee", outputs=["uint256"]),
    _view("feeRecipient", outputs=["address"]),
    _view("title", outputs=["address"]),
    _view("registry", outputs=["address"]),
    _function(
        "fractionalize",
        ["uint256 tokenId", "string name", "string symbol", "uint256 totalSupply"],
        ["address"],
        mutability="payable",
    ),
    _function("defractionalize", ["uint256 tokenId"]),
    _function("emergencyDefractionalize", ["uint256 tokenId"]),
    _function("setFractionalizationFee", ["uint256 newFee"]),
    _function("setFeeRecipient", ["address newRecipient"]),
    _function("withdrawFees"),
    *_PAUSABLE,
    *_ACCESS_CONTROL,
]

RentPoolMerkle_abi = [
    _view("getEpochTotalDeposits", ["uint256 epochId"], ["uint256"]),
    _view("isClaimed", ["uint256 epochId", "address user"], ["bool"]),
    _view("epochRoot", ["uint256 epochId"], ["bytes32"]),
    _view("getEncryptedAmount", ["uint256 epochId", "address user"], ["bytes32"]),
    _view("stable", outputs=["address"]),
    _view("owner", outputs=["address"]),
    _function("depositRent", ["uint256 epochId", "uint256 amount"]),
    _function("setEpochRoot", ["uint256 epochId", "bytes32 root"]),
    _function("claim", ["uint256 epochId", "uint256 amount", "bytes32[] proof"]),
    _function("setEncryptedAmount", ["uint256 epochId", "bytes32 encryptedAmount"]),
    _function("emergencyWithdraw", ["address token", "uint256 amount"]),
]

GuardedERC20_abi = [
    _view("name", outputs=["string"]),
    _view("symbol", outputs=["string"]),
    _view("decimals", outputs=["uint8"]),
    _view("totalSupply", outputs=["uint256"]),
    _view("balanceOf", ["address account"], ["uint256"]),
    _view("allowance", ["address owner", "address spender"], ["uint256"]),
    _view("enforceKYC", outputs=["bool"]),
    _view("registry", outputs=["address"]),
    _function("transfer", ["address to", "uint256 amount"], ["bool"]),
    _function("approve", ["address spender", "uint256 amount"], ["bool"]),
    _function("transferFrom", ["address from", "address to", "uint256 amount"], ["bool"]),
    _function("burn", ["uint256 amount"]),
]

CONTRACT_ABIS: dict[ContractName, list[dict[str, Any]]] = {
    ContractName.COMPLIANCE_REGISTRY: ComplianceRegistry_abi,
    ContractName.TITLE_NFT: TitleNFT_abi,
    ContractName.FRACTIONALIZER: Fractionalizer_abi,
    ContractName.RENT_POOL_MERKLE: RentPoolMerkle_abi,
}


def find_function(abi: list[dict[str, Any]], name: str, arity: int | None = None) -> dict[str, Any] | None:
    """Return the ABI entry for ``name`` (matching ``arity`` when given)."""
    for entry in abi:
        if entry.get("type") != "function" or entry.get("name") != name:
            continue
        if arity is None or len(entry.get("inputs", [])) == arity:
            return entry
    return None
