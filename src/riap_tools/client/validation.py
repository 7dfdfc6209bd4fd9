"""Pre-flight validation of Riap requests."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from .exceptions import RiapValidationError


class RiapRequest(BaseModel):
    """Shape every Riap request must have before it is sent.

    Only used for checking: the request dict goes on the wire as the caller
    built it, extra keys included.
    """

    model_config = ConfigDict(extra="allow")

    action: StrictStr = Field(pattern=r"^\w+$")
    uri: StrictStr | None = None
    v: Literal["1.1", "1.2"] | None = None

    @field_validator("v", mode="before")
    @classmethod
    def version_as_string(cls, v):
        """Accept 1.1 as well as "1.1"."""
        if isinstance(v, float):
            return str(v)
        return v


def check_request(request: dict) -> None:
    """Validate ``request``.

    Raises:
        RiapValidationError: With a message naming the offending field
    """
    if not request.get("action"):
        raise RiapValidationError("Please specify action")
    try:
        RiapRequest.model_validate(request)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"]) or "request"
        raise RiapValidationError(f"Invalid request: {field}: {err['msg']}")
