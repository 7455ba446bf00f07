"""Default configuration constants for the Stage Weight Planner."""

# Stage weights of one scope always add up to this total
TOTAL_WEIGHT = 100.0

# Tolerances
WEIGHT_TOLERANCE = 0.01   # Sum invariant checked by the engine
SAVE_TOLERANCE = 0.1      # Gate for the Save button in the settings screens
FLOAT_EPSILON = 0.0001    # Tiny negative remainders are cleaned to 0

# Section weights are stored x100 (500 = 5.00% of the project)
SECTION_TOTAL_DEFAULT = 10000.0

# Display codes
DISABLED_ORDINAL = "00"
CODE_SEPARATOR = "-"

# Standard master weights per stage code (percent of a project)
STANDARD_WEIGHTS = {
    "KO": 5.0,    # Kickoff
    "SD": 12.5,   # Schematic Design
    "DD": 17.5,   # Design Development
    "ED": 22.5,   # Engineering Design
    "PC": 12.5,   # Procurement
    "CN": 25.0,   # Construction
    "HO": 5.0,    # Handover
}

STAGE_NAMES = {
    "KO": "Kickoff",
    "SD": "Schematic Design",
    "DD": "Design Development",
    "ED": "Engineering Design",
    "PC": "Procurement",
    "CN": "Construction",
    "HO": "Handover",
}

STAGE_CATEGORIES = {
    "KO": "General",
    "SD": "Design",
    "DD": "Design",
    "ED": "Design",
    "PC": "Build",
    "CN": "Build",
    "HO": "General",
}

# Stages enabled by "Reset to Standard" per project type code
SCOPE_ACTIVE_SETS = {
    "DSN": ["KO", "SD", "DD", "ED", "HO"],
    "BLD": ["KO", "PC", "CN", "HO"],
    "DNB": ["KO", "SD", "DD", "ED", "PC", "CN", "HO"],
}

# Master scope preference: Design & Build first, then Build
MASTER_TYPE_CODES = ["DNB", "BLD"]

# Project types seeded for a new workspace
PROJECT_TYPES = [
    ("DNB", "Design & Build"),
    ("DSN", "Design Only"),
    ("BLD", "Build Only"),
]

# Record kinds handled by the template store
RECORD_KINDS = ["stage", "section", "task"]

# Task insert placement modes
INSERT_MODES = ["end", "above", "below", "subtask"]

# Concurrent persistence
SYNC_MAX_WORKERS = 8

# Newly discovered master stages stay disabled in every other scope
NEW_ITEM_ENABLED_DEFAULT = False
