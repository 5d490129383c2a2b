"""Uniform authorization checks across the role-based and owner-based contracts."""

from __future__ import annotations

import logging

from ..constants import AUTHORIZATION_MODELS, Role
from ..exceptions import RealtyProtocolError, ValidationError
from ..types import AuthorizationModel, ContractName
from ..utils import addresses_equal, format_address, to_bytes32
from .gateway import CallGateway

logger = logging.getLogger(__name__)

RoleId = Role | bytes | str


class RoleResolver:
    """Answer "may ``address`` call privileged methods of ``contract``?".

    Role-based contracts are asked ``hasRole(role, address)``; the single-owner
    rent pool compares ``owner()`` to ``address`` ignoring case and ignores the
    role id. Any read failure answers ``False``.
    """

    def __init__(self, gateway: CallGateway) -> None:
        self._gateway = gateway

    @staticmethod
    def model_of(contract: ContractName | str) -> AuthorizationModel:
        try:
            return AUTHORIZATION_MODELS[ContractName(contract)]
        except (KeyError, ValueError) as exc:
            raise ValidationError("Unknown contract", field="contract", value=contract) from exc

    async def has_authorization(
        self,
        contract: ContractName | str,
        role_id: RoleId | None,
        address: str,
    ) -> bool:
        try:
            model = self.model_of(contract)
            name = ContractName(contract)
            if model is AuthorizationModel.SINGLE_OWNER:
                owner = await self._gateway.read(name, "owner")
                return addresses_equal(owner, address)

            if role_id is None:
                raise ValidationError(
                    f"{name.value} requires a role id", field="role_id", value=role_id
                )
            return bool(
                await self._gateway.read(
                    name,
                    "hasRole",
                    (to_bytes32(role_id, field="role_id"), format_address(address, field="address")),
                )
            )
        except RealtyProtocolError as exc:
            logger.debug("Authorization check on %s failed closed: %s", contract, exc)
            return False

    async def has_role(self, contract: ContractName | str, role_id: RoleId, address: str) -> bool:
        return await self.has_authorization(contract, role_id, address)

    async def is_owner(self, contract: ContractName | str, address: str) -> bool:
        return await self.has_authorization(contract, None, address)
