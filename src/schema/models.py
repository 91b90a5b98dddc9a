"""CRM schema model: the description of every database to provision.

Schemas arrive from the editor UI as camelCase JSON (``targetDatabaseKey``,
``syncedPropertyName``) and from YAML templates as snake_case; both
spellings are accepted. Instances are frozen once built so a schema cannot
change underneath a provisioning run.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PropertyType(str, Enum):
    """Closed set of property types the record store can create."""

    title = "title"
    rich_text = "rich_text"
    number = "number"
    select = "select"
    multi_select = "multi_select"
    date = "date"
    people = "people"
    url = "url"
    email = "email"
    phone_number = "phone_number"
    relation = "relation"


class _SchemaBase(BaseModel):
    """Shared config: camelCase aliases, snake_case accepted, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class SelectOption(_SchemaBase):
    """One choice of a select or multi-select property."""

    name: str
    color: str | None = None


class RelationConfig(_SchemaBase):
    """Dependency edge from a relation property to another database.

    Attributes:
        target_database_key: Key of the database the relation points at.
        synced_property_name: Name of the reciprocal property created
            on the target database.
    """

    target_database_key: str
    synced_property_name: str


class PropertyDefinition(_SchemaBase):
    """A typed property of a database."""

    name: str
    type: PropertyType
    options: list[SelectOption] | None = None
    relation: RelationConfig | None = None

    @property
    def is_relation(self) -> bool:
        """Whether this property is wired up after all databases exist."""
        return self.type == PropertyType.relation


class DatabaseDefinition(_SchemaBase):
    """A database to create, identified by a caller-chosen key."""

    key: str
    name: str
    icon: str | None = None
    description: str | None = None
    properties: list[PropertyDefinition] = Field(default_factory=list)

    @property
    def relation_properties(self) -> list[PropertyDefinition]:
        """Relation properties in definition order."""
        return [p for p in self.properties if p.is_relation]


class CRMSchema(_SchemaBase):
    """The full set of interrelated databases to provision."""

    databases: list[DatabaseDefinition] = Field(default_factory=list)

    @property
    def relation_count(self) -> int:
        """Total relation properties across all databases."""
        return sum(len(db.relation_properties) for db in self.databases)

    @property
    def total_steps(self) -> int:
        """Steps in a provisioning run: parent page, databases, relations."""
        return 1 + len(self.databases) + self.relation_count

    def get_database(self, key: str) -> DatabaseDefinition | None:
        """Find a database definition by key."""
        for database in self.databases:
            if database.key == key:
                return database
        return None
