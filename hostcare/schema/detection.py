"""
Detection record: one item found by a detector.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class DetectionRecord(BaseModel):
    """A single finding. Immutable once emitted."""

    item_id: str = Field(validation_alias=AliasChoices("item_id", "itemId", "id"))
    category: str = Field(default="general", validation_alias=AliasChoices("category", "type", "kind"))
    display_name: str = Field(
        default="",
        validation_alias=AliasChoices("display_name", "displayName", "name"),
    )
    matched_rule: str = Field(
        default="",
        validation_alias=AliasChoices("matched_rule", "matchedRule", "rule"),
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata", "details", "extra"),
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)
