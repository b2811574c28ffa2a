"""Declaration records: the common shape every declaration producer emits.

Records are plain pydantic models so they can be written by hand (YAML/JSON),
produced by a build-time tool, or created by the code-first and schema-first
producers. The collector normalizes them into descriptors on submission.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from schemabind.model.descriptors import ResolverDescriptor, TypeKind


class Origin(str, Enum):
    CODE_FIRST = "code_first"
    SCHEMA_FIRST = "schema_first"
    RECORD_FILE = "record_file"


class NullableFlags(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    outer: bool = False
    items: bool = False


NullableSpec = bool | Literal["items", "itemsAndList"] | NullableFlags


class RecordBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    description: str | None = None
    deprecation_reason: str | None = Field(None, alias="deprecationReason")
    origin: Origin = Origin.RECORD_FILE
    site: str | None = None


class TypeRefRecord(BaseModel):
    """A type reference as declared by a producer.

    ``nullable`` accepts the shorthands used by producers; ``items_nullable`` is an
    explicit override of the items flag. The collector turns both into flags.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str
    list_depth: int = Field(0, alias="listDepth", ge=0)
    nullable: NullableSpec = False
    items_nullable: bool | None = Field(None, alias="itemsNullable")


class ArgumentRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str
    type_ref: TypeRefRecord = Field(alias="typeRef")
    default: Any = None
    description: str | None = None
    constraints: list[str] = Field(default_factory=list)

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set


class TypeRecord(RecordBase):
    record: Literal["type"] = "type"
    name: str
    kind: TypeKind = TypeKind.OBJECT
    properties: list[str] | None = None


class FieldRecord(RecordBase):
    record: Literal["field"] = "field"
    owner_type: str = Field(alias="ownerType")
    field_name: str = Field(alias="fieldName")
    type_ref: TypeRefRecord = Field(alias="typeRef")
    default: Any = None
    arguments: list[ArgumentRecord] = Field(default_factory=list)
    args_type: str | None = Field(None, alias="argsType")
    constraints: list[str] = Field(default_factory=list)

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @property
    def qualified_name(self) -> str:
        return f"{self.owner_type}.{self.field_name}"


Declaration = Annotated[TypeRecord | FieldRecord, Field(discriminator="record")]


class DeclarationFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    declarations: list[Declaration] = Field(default_factory=list)


@dataclass
class DeclarationSet:
    """Everything a producer emits: declaration records plus the resolvers it found."""

    records: list[TypeRecord | FieldRecord] = field(default_factory=list)
    resolvers: list[ResolverDescriptor] = field(default_factory=list)

    def extend(self, other: "DeclarationSet") -> None:
        self.records.extend(other.records)
        self.resolvers.extend(other.resolvers)
