"""Shared pydantic configuration for scheduling records."""

from datetime import date
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from scheduling.errors import ValidationError

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

# Fields named ``date`` shadow the type inside a class body.
CalendarDate = date

ModelT = TypeVar("ModelT", bound=BaseModel)


class RecordModel(BaseModel):
    """Closed record: unknown fields are rejected, camelCase at the boundary."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """Render as a boundary dict (camelCase keys, ISO strings)."""
        return self.model_dump(mode="json", by_alias=True)


def parse_record(model: type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` into ``model``, raising the scheduling ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ValidationError(
            f"Invalid {model.__name__}: {'; '.join(problems)}",
            {"errors": problems},
        ) from None
