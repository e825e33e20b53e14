"""Client for the contracts endpoints."""

from typing import Optional

from services.api import ApiClient
from signing.models import Contract, CreateContractRequest

SIGNATURE_TYPES = ("tenant", "hoster", "guarantor")


class ContractService(ApiClient):

    async def create_contract(self, data: CreateContractRequest) -> Contract:
        body = await self.request(
            "POST", "/contracts", "Failed to create contract",
            json=data.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return Contract.model_validate(body)

    async def get_contract(self, contract_id: str) -> Contract:
        body = await self.request("GET", f"/contracts/{contract_id}", "Failed to fetch contract")
        return Contract.model_validate(body)

    async def sign_contract(
        self,
        contract_id: str,
        signature_type: str,
        guarantor_id: Optional[str],
        signature: str,
    ) -> Contract:
        """Record one signature; returns the server's latest contract snapshot."""
        if signature_type not in SIGNATURE_TYPES:
            raise ValueError(f"Unknown signature type: {signature_type}")
        payload = {"signatureType": signature_type, "signature": signature}
        if guarantor_id is not None:
            payload["guarantorId"] = guarantor_id
        body = await self.request("POST", f"/contracts/{contract_id}/sign", "Failed to sign contract", json=payload)
        return Contract.model_validate(body)
