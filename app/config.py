# app/config.py
from typing import Dict

# --- DATABASE CONFIGURATION ---
MONGO_URI: str = "mongodb://localhost:27017/"
#MONGO_URI: str = "mongodb://db:27017/" # for docker containers
MONGO_DB_NAME: str = "OptionLimit"

# Collections read at startup. Field instances are also written back when
# option limit settings are saved.
ENTITY_KINDS_COLLECTION: str = "entity_kinds"
FIELD_DEFINITIONS_COLLECTION: str = "field_definitions"
FIELD_INSTANCES_COLLECTION: str = "field_instances"
ENTITIES_COLLECTION: str = "entities"


# --- LOGGING ---
LOG_LEVEL: str = "INFO"


# --- OPTION LIMIT ---
# Base tag for every option query; a per-field tag is derived from it.
OPTION_LIMIT_QUERY_TAG: str = "option_limit"

# Value no stored item can hold. Used to force an empty result when a
# matching field is empty and the "hide all" behavior is on.
NO_MATCH_SENTINEL: str = "__option_limit_no_match__"

# Key of the explicit "none" option in select and radio widgets.
NONE_OPTION_KEY: str = "_none"

# Submitted values that mean "no value".
EMPTY_SUBMITTED_VALUES = (None, "", NONE_OPTION_KEY)

TAXONOMY_TERM_KIND: str = "taxonomy_term"

# Language key under each field container of an entity form.
FORM_LANGUAGE_KEY: str = "und"


# --- WIDGET LABELS ---
# Passed through the request's translate callable before display.
NONE_OPTION_LABELS: Dict[str, str] = {
    "option_none": "- None -",
    "option_select": "- Select a value -",
    "option_na": "N/A",
}

# Widgets able to render nested option groups.
OPTGROUP_WIDGETS = ("options_select",)


# --- MESSAGES ---
NO_OPTIONS_MESSAGE: str = (
    "There are no options available for {field}. "
    "The options depend on the values of: {matching_fields}."
)
NO_COMMON_FIELDS_MESSAGE: str = (
    "There are no fields shared by this bundle and the referenced bundles, "
    "so the options of this field cannot be limited."
)
STORE_FAILURE_MESSAGE: str = "The options for {field} could not be loaded."
