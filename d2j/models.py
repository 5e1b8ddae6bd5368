"""Shared data types used across the session, query and gateway modules."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, field_validator

PUBLIC_SCHEMA = "public"


class ConnectionParameters(BaseModel):
    """Everything needed to reach a PostgreSQL database.

    Serialized with the camelCase keys the session payload has always used
    (``databaseName``, ``sslModeEnabled``); either spelling is accepted on input.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(gt=0, le=65535)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)
    database_name: str = Field(alias="databaseName", min_length=1)
    ssl_mode_enabled: bool = Field(default=False, alias="sslModeEnabled")

    @field_validator("host", "username", "database_name")
    @classmethod
    def _strip_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    def to_json_bytes(self) -> bytes:
        """Serialize with wire aliases for encryption."""

        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, payload: bytes) -> ConnectionParameters:
        return cls.model_validate_json(payload)


@dataclass(frozen=True, slots=True)
class TableDescriptor:
    """A table as reported by the catalog."""

    schema_name: str
    table_name: str

    @property
    def is_public(self) -> bool:
        return self.schema_name == PUBLIC_SCHEMA


@dataclass(frozen=True, slots=True)
class QuerySpec:
    """Description of the rows to fetch as JSON."""

    table_name: str
    fields: tuple[str, ...] = field(default_factory=tuple)
    where: str = ""
    limit: int = 0

    def __post_init__(self) -> None:
        if not self.table_name or not self.table_name.strip():
            raise ValueError("table_name is required")
        if self.limit < 0:
            raise ValueError("limit must not be negative")
        object.__setattr__(self, "fields", tuple(self.fields))


__all__ = ["ConnectionParameters", "PUBLIC_SCHEMA", "QuerySpec", "TableDescriptor"]
