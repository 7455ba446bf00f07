"""Schema validation for uploaded stage template files."""

from dataclasses import dataclass, field
from typing import List
import pandas as pd
from config.defaults import TOTAL_WEIGHT, SAVE_TOLERANCE


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


STAGE_REQUIRED_COLUMNS = [
    "Stage Code",
    "Stage Name",
    "Default Weight (%)",
]

SECTION_REQUIRED_COLUMNS = [
    "Section Code",
    "Section Name",
    "Weight",
]

TASK_REQUIRED_COLUMNS = [
    "Task Key",
    "Section Code",
    "Task Name",
    "Weight",
]


def _check_required_columns(df: pd.DataFrame, required: List[str], file_label: str) -> ValidationResult:
    result = ValidationResult()
    missing = [col for col in required if col not in df.columns]
    if missing:
        result.is_valid = False
        result.errors.append(f"{file_label}: Missing required columns: {', '.join(missing)}")
    if df.empty:
        result.is_valid = False
        result.errors.append(f"{file_label}: File contains no data rows.")
    return result


def _check_weights(df: pd.DataFrame, column: str, file_label: str, result: ValidationResult):
    weights = pd.to_numeric(df[column], errors="coerce")
    if weights.isna().any():
        result.is_valid = False
        result.errors.append(f"{file_label}: {column} must be numeric.")
    elif (weights < 0).any():
        result.is_valid = False
        result.errors.append(f"{file_label}: {column} cannot be negative.")


def validate_stages(df: pd.DataFrame) -> ValidationResult:
    result = _check_required_columns(df, STAGE_REQUIRED_COLUMNS, "Stage List")
    if not result.is_valid:
        return result

    _check_weights(df, "Default Weight (%)", "Stage List", result)

    codes = df["Stage Code"].astype(str).str.strip().str.upper()
    dupes = codes.duplicated(keep=False)
    if dupes.any():
        result.is_valid = False
        result.errors.append(f"Stage List: Duplicate stage codes: {sorted(codes[dupes].unique().tolist())}")

    if result.is_valid:
        total = pd.to_numeric(df["Default Weight (%)"]).sum()
        if abs(total - TOTAL_WEIGHT) >= SAVE_TOLERANCE:
            result.warnings.append(
                f"Stage List: Default weights add up to {total:.2f}%, not {TOTAL_WEIGHT:.0f}%. "
                "Scope weights are normalized, but the master list cannot be saved until it balances."
            )

    return result


def validate_sections(df: pd.DataFrame) -> ValidationResult:
    result = _check_required_columns(df, SECTION_REQUIRED_COLUMNS, "Sections")
    if not result.is_valid:
        return result

    _check_weights(df, "Weight", "Sections", result)

    dupes = df.duplicated(subset=["Section Code"], keep=False)
    if dupes.any():
        result.is_valid = False
        result.errors.append(f"Sections: Duplicate section codes: {df[dupes]['Section Code'].unique().tolist()}")

    return result


def validate_tasks(df: pd.DataFrame) -> ValidationResult:
    result = _check_required_columns(df, TASK_REQUIRED_COLUMNS, "Tasks")
    if not result.is_valid:
        return result

    _check_weights(df, "Weight", "Tasks", result)

    dupes = df.duplicated(subset=["Task Key"], keep=False)
    if dupes.any():
        result.is_valid = False
        result.errors.append(f"Tasks: Duplicate task keys: {df[dupes]['Task Key'].unique().tolist()}")

    if "Parent Key" in df.columns:
        keys = set(df["Task Key"].astype(str).str.strip())
        parents = df["Parent Key"].dropna().astype(str).str.strip()
        unknown = sorted(set(p for p in parents if p) - keys)
        if unknown:
            result.is_valid = False
            result.errors.append(f"Tasks: Unknown parent keys: {unknown}")

    return result


def validate_cross_file(sections_df: pd.DataFrame, tasks_df: pd.DataFrame) -> ValidationResult:
    """Check that tasks reference known sections and root tasks add up to their section."""
    result = ValidationResult()
    section_codes = set(sections_df["Section Code"].astype(str).str.strip().str.upper())
    task_sections = set(tasks_df["Section Code"].astype(str).str.strip().str.upper())

    unknown = task_sections - section_codes
    if unknown:
        result.warnings.append(
            f"Tasks for unknown sections: {', '.join(sorted(unknown))}. These will be ignored."
        )

    roots = tasks_df
    if "Parent Key" in tasks_df.columns:
        roots = tasks_df[tasks_df["Parent Key"].isna() | (tasks_df["Parent Key"].astype(str).str.strip() == "")]
    root_sums = roots.groupby(roots["Section Code"].astype(str).str.strip().str.upper())["Weight"].sum()

    for _, row in sections_df.iterrows():
        code = str(row["Section Code"]).strip().upper()
        if code not in root_sums.index:
            continue
        if abs(root_sums[code] - float(row["Weight"])) >= SAVE_TOLERANCE:
            result.warnings.append(
                f"Section {code}: tasks add up to {root_sums[code]:.2f}, section weight is "
                f"{float(row['Weight']):.2f}. Task weights will be rescaled to the section."
            )
    return result
