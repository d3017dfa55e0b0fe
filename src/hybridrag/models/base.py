"""
Base model shared by every record.
"""

from pydantic import BaseModel, ConfigDict


class HybridRagBaseModel(BaseModel):
    """
    Base model for every hybridrag record.
    Validates on assignment and rejects unknown fields.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        extra="forbid",
    )
