from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator, model_validator

# -ENUMS for validation and type safety
# Built-in field types. Other type strings are valid once a handler is registered.
class FieldType(str, Enum):
    TAXONOMY_TERM_REFERENCE = "taxonomy_term_reference"
    ENTITY_REFERENCE = "entityreference"
    TEXT = "text"
    LIST_TEXT = "list_text"
    LIST_INTEGER = "list_integer"
    NUMBER_INTEGER = "number_integer"
    NUMBER_DECIMAL = "number_decimal"
    BOOLEAN = "boolean"

class SortType(str, Enum):
    NONE = "none"
    PROPERTY = "property"
    FIELD = "field"

class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

class WidgetType(str, Enum):
    SELECT = "options_select"
    BUTTONS = "options_buttons"
    AUTOCOMPLETE = "autocomplete"

class RouteState(str, Enum):
    IDLE = "idle"
    RESOLVED = "resolved"
    IGNORED = "ignored"

CARDINALITY_UNLIMITED = -1

# --- METADATA ---

class EntityKindInfo(BaseModel):
    name: str
    label: Optional[str] = None
    fieldable: bool = True
    bundles: List[str] = Field(default_factory=list)
    bundle_labels: Dict[str, str] = Field(default_factory=dict)
    label_property: Optional[str] = None

    @model_validator(mode='after')
    def add_implicit_bundle(self):
        # Fieldable kinds without sub-typing carry one bundle named after the kind.
        if self.fieldable and not self.bundles:
            self.bundles = [self.name]
        return self

    def bundle_label(self, bundle: str) -> str:
        return self.bundle_labels.get(bundle, bundle)

class SortSettings(BaseModel):
    type: SortType = SortType.NONE
    property: Optional[str] = None
    # Written as "field_name:column", e.g. "field_priority:value".
    field: Optional[str] = None
    direction: SortDirection = SortDirection.ASC

class FieldSettings(BaseModel):
    model_config = {"extra": "allow"}

    # Entity references
    target_type: Optional[str] = None
    target_bundles: List[str] = Field(default_factory=list)
    sort: SortSettings = Field(default_factory=SortSettings)
    # Taxonomy term references
    vocabulary: Optional[str] = None

class FieldDefinition(BaseModel):
    name: str
    # A FieldType value, or any type registered with a handler.
    type: str
    cardinality: int = 1
    settings: FieldSettings = Field(default_factory=FieldSettings)

    @field_validator('type', mode='before')
    @classmethod
    def type_as_string(cls, value):
        return value.value if isinstance(value, FieldType) else value

    @field_validator('cardinality')
    @classmethod
    def check_cardinality(cls, value: int) -> int:
        if value != CARDINALITY_UNLIMITED and value < 1:
            raise ValueError("cardinality must be -1 (unlimited) or a positive integer")
        return value

    @property
    def multiple(self) -> bool:
        return self.cardinality != 1

class OptionLimitSettings(BaseModel):
    enabled: bool = False
    matching_fields: List[str] = Field(default_factory=list)
    # True hides every option while a matching field is empty.
    empty_behavior: bool = False

    @field_validator('matching_fields')
    @classmethod
    def dedupe_matching_fields(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(name for name in value if name))

class FieldInstance(BaseModel):
    field_name: str
    entity_kind: str
    bundle: str
    label: Optional[str] = None
    required: bool = False
    weight: int = 0
    widget: WidgetType = WidgetType.SELECT
    default_value: List[Dict[str, Any]] = Field(default_factory=list)
    option_limit: OptionLimitSettings = Field(default_factory=OptionLimitSettings)

    @property
    def display_label(self) -> str:
        return self.label or self.field_name

class Entity(BaseModel):
    kind: str
    bundle: str
    id: Optional[str] = None
    label: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    fields: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, value):
        return None if value is None else str(value)

    @property
    def is_new(self) -> bool:
        return self.id is None

# --- QUERY PLAN ---

class QueryCondition(BaseModel):
    field_name: str
    column: str
    values: List[str]
    operator: Literal["IN"] = "IN"

class QueryOrdering(BaseModel):
    source: Literal["property", "field"]
    key: str
    column: Optional[str] = None
    direction: SortDirection = SortDirection.ASC

class QueryPlan(BaseModel):
    target_kind: str
    target_bundles: List[str]
    conditions: List[QueryCondition] = Field(default_factory=list)
    ordering: Optional[QueryOrdering] = None
    tags: List[str] = Field(default_factory=list)

    def condition_for(self, field_name: str) -> Optional[QueryCondition]:
        return next((c for c in self.conditions if c.field_name == field_name), None)

# --- OPTIONS ---

OptionValue = Union[str, Dict[str, str]]

class OptionList(BaseModel):
    options: Dict[str, OptionValue] = Field(default_factory=dict)
    is_empty: bool = False
    message: Optional[str] = None
    advisory_fields: List[str] = Field(default_factory=list)

class WidgetShape(BaseModel):
    multiple: bool = False
    optgroups: bool = False
    # One of the NONE_OPTION_LABELS keys, or None for no "none" choice.
    empty_option: Optional[str] = None

# --- SETTINGS FORM ---

class SettingsControl(BaseModel):
    name: str
    type: Literal["checkbox", "checkboxes"]
    title: str
    default_value: Any = None
    options: Dict[str, str] = Field(default_factory=dict)
    disabled: bool = False
    description: Optional[str] = None

class SettingsForm(BaseModel):
    field_name: str
    available: bool
    controls: List[SettingsControl] = Field(default_factory=list)

# --- FORM STRUCTURE ---

class FormElement(BaseModel):
    key: str
    # Set on a field's top-level container only.
    field_name: Optional[str] = None
    children: List["FormElement"] = Field(default_factory=list)

    def child(self, key: str) -> Optional["FormElement"]:
        return next((c for c in self.children if c.key == key), None)

FormElement.model_rebuild()

class StatusMessage(BaseModel):
    type: Literal["status", "warning", "error"] = "status"
    message: str

class FieldFragment(BaseModel):
    field_name: str
    path: List[str]
    options: Optional[OptionList] = None
    widget: Optional[WidgetShape] = None
    error: Optional[str] = None

class RouteResult(BaseModel):
    state: RouteState
    field_name: Optional[str] = None
    source_field: Optional[str] = None

# --- PYDANTIC MODELS for API requests

class FormBuildRequest(BaseModel):
    entity_kind: str
    bundle: str
    entity_id: Optional[str] = None
    # Live submitted values keyed by field name, absent on a first render.
    values: Optional[Dict[str, Any]] = None

class PartialUpdateRequest(FormBuildRequest):
    values: Dict[str, Any] = Field(default_factory=dict)
    triggering_element: List[str] = Field(..., min_length=1, description="Structural path of the element that changed.")

class FormBuildResponse(BaseModel):
    fields: Dict[str, FieldFragment] = Field(default_factory=dict)
    messages: List[StatusMessage] = Field(default_factory=list)

class PartialUpdateResponse(BaseModel):
    state: RouteState
    field_name: Optional[str] = None
    fragment: Optional[FieldFragment] = None
    messages: List[StatusMessage] = Field(default_factory=list)
