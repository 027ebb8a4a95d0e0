"""
Base model for wire contracts
Optional fields may be omitted but are never nullable
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class ContractModel(BaseModel):
    """
    Strict contract base

    An omitted optional field stays absent from the canonical form; an
    explicit null would serialize as ``"field":null`` and produce a plan
    hash no other service computes, so it is rejected at the boundary.
    """

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def reject_explicit_null(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            for key, value in data.items():
                if value is None:
                    raise ValueError(f"{key} must be omitted rather than null")
        return data
