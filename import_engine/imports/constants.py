"""Constants for the supplier import workflow."""


# Import session steps
class ImportStep:
    """Import session step constants."""
    UPLOAD = "upload"
    CHOOSE_SHEET = "choose_sheet"
    MAP = "map"
    NORMALIZE = "normalize"
    PREVIEW = "preview"
    APPEND = "append"
    COMPLETE = "complete"


# Session purposes
class ImportMode:
    """What an uploaded sheet is for."""
    PURCHASE_ORDER = "purchase_order"  # new line items
    APPEND = "append"  # backfill columns onto expected items by serial


# Fields whose values are checked against learned knowledge and grouped for review
NORMALIZATION_FIELDS = ["product_type", "supplier", "brand", "model", "specifications.cpu"]

# A commit cannot produce line items without these mappings
REQUIRED_COMMIT_FIELDS = ["unit_cost", "brand"]

# Spec fields parsed into component lists at preview time
COMPONENT_FIELDS = ["specifications.ram", "specifications.storage"]

SPEC_FIELD_PREFIXES = ("specifications.", "specs.")

# Rows shown per sheet while choosing a sheet
SHEET_PREVIEW_ROWS = 6

# Sample values kept per mapped column
MAPPING_SAMPLE_SIZE = 5

# Expected items updated per fan-out batch on the append path
APPEND_BATCH_SIZE = 50

# Characters of the duplicate serial list echoed back in a conflict message
DUPLICATE_SERIALS_MESSAGE_LIMIT = 100
