"""Migration policy model."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    field_serializer,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from s3_tier_mcp.domain.models import StorageClass
from s3_tier_mcp.errors import ValidationError
from s3_tier_mcp.masks import Mask
from s3_tier_mcp.utils.time import utc_now


def _new_policy_id() -> str:
    return uuid4().hex


def _coerce_mask(v: Any) -> Mask:
    if isinstance(v, Mask):
        return v
    if not isinstance(v, dict):
        raise ValueError("mask must be an object with mode, pattern and case_sensitive")
    if "mode" not in v or "pattern" not in v:
        raise ValueError("mask requires 'mode' and 'pattern'")
    case_sensitive = v.get("case_sensitive", False)
    if not isinstance(case_sensitive, bool):
        raise ValueError("mask.case_sensitive must be a boolean")
    name = v.get("name")
    return Mask.create(
        mode=v["mode"],
        pattern=v["pattern"],
        case_sensitive=case_sensitive,
        name=name if isinstance(name, str) else None,
    )


MaskField = Annotated[
    Mask,
    PlainValidator(_coerce_mask),
    PlainSerializer(lambda mask: mask.to_dict(), return_type=dict),
]


class Policy(BaseModel):
    """A persisted {bucket, mask, destination class, restore flag} rule.

    Policies are immutable once created; editing one means saving a new entry.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_policy_id, min_length=1)
    bucket: str = Field(min_length=1)
    mask: MaskField
    destination_class: StorageClass
    restore_first: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    notes: str | None = Field(default=None)

    @field_validator("destination_class", mode="before")
    @classmethod
    def _validate_destination_class(cls, v: Any) -> StorageClass:
        return StorageClass.parse(v)

    @field_validator("restore_first", mode="before")
    @classmethod
    def _validate_restore_first(cls, v: Any) -> bool:
        if not isinstance(v, bool):
            raise ValueError("restore_first must be a boolean")
        return v

    @field_serializer("destination_class")
    def _serialize_destination_class(self, destination_class: StorageClass) -> str:
        return destination_class.value

    @field_serializer("created_at")
    def _serialize_created_at(self, created_at: datetime) -> str:
        return created_at.isoformat()

    @classmethod
    def create(
        cls,
        bucket: str,
        mask: Mask | dict[str, object],
        destination_class: StorageClass | str,
        restore_first: bool = False,
        notes: str | None = None,
    ) -> "Policy":
        return cls.from_record(
            {
                "bucket": bucket,
                "mask": mask,
                "destination_class": destination_class,
                "restore_first": restore_first,
                "notes": notes,
            }
        )

    @classmethod
    def from_record(cls, data: dict[str, object]) -> "Policy":
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(_summarize(exc)) from exc

    def to_record(self) -> dict[str, object]:
        return self.model_dump(mode="json")

    def summary(self) -> str:
        return f"{self.mask.name} -> {self.destination_class.value} ({self.bucket})"


def _summarize(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "policy"
        parts.append(f"{location}: {error.get('msg')}")
    return "Invalid policy: " + "; ".join(parts)
