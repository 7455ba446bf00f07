"""File upload parsing - CSV/XLSX into WeightedNode lists."""

import pandas as pd
from typing import Dict, List, Tuple
from models.node import WeightedNode
from engine.renumber import split_display_code


def _text(row, column: str, default: str = "") -> str:
    value = row.get(column)
    if value is None or pd.isna(value):
        return default
    return str(value).strip()


def parse_stages(df: pd.DataFrame) -> List[WeightedNode]:
    """Convert a master stage DataFrame into stage nodes (enabled, positioned, coded)."""
    stages = []
    for idx, (_, row) in enumerate(df.iterrows(), start=1):
        code = _text(row, "Stage Code").upper()
        position = int(row["Position"]) if "Position" in df.columns and pd.notna(row.get("Position")) else idx
        enabled = True
        if "Active" in df.columns and pd.notna(row.get("Active")):
            enabled = str(row["Active"]).strip().lower() in ("1", "true", "yes", "y")
        display_code = _text(row, "Display Code", f"{position:02d}-{code}")
        _, abbr = split_display_code(display_code, code)
        stages.append(WeightedNode(
            id=code,
            natural_key=code,
            name=_text(row, "Stage Name"),
            weight=float(row["Default Weight (%)"]),
            enabled=enabled,
            category=_text(row, "Category"),
            position=position,
            code=display_code,
            abbr=abbr,
        ))
    return stages


def parse_sections(df: pd.DataFrame) -> List[WeightedNode]:
    """Convert a section DataFrame into root nodes keyed by section code."""
    sections = []
    for idx, (_, row) in enumerate(df.iterrows(), start=1):
        code = _text(row, "Section Code").upper()
        sections.append(WeightedNode(
            id=code,
            natural_key=code,
            name=_text(row, "Section Name"),
            weight=float(row["Weight"]),
            position=idx,
            code=code,
        ))
    return sections


def parse_tasks(df: pd.DataFrame, sections: List[WeightedNode]) -> List[WeightedNode]:
    """Convert a task DataFrame into nodes.

    Root tasks hang under their section node; rows with a Parent Key hang
    under that task. Rows of unknown sections are skipped.
    """
    section_ids = {s.natural_key: s.id for s in sections}
    tasks = []
    for idx, (_, row) in enumerate(df.iterrows(), start=1):
        key = _text(row, "Task Key")
        parent_key = _text(row, "Parent Key") if "Parent Key" in df.columns else ""
        section_id = section_ids.get(_text(row, "Section Code").upper())
        if section_id is None:
            # Unknown section; reported by validate_cross_file
            continue
        parent_id = parent_key or section_id
        tasks.append(WeightedNode(
            id=key,
            natural_key=key,
            name=_text(row, "Task Name"),
            weight=float(row["Weight"]),
            parent_id=parent_id,
            position=idx,
        ))
    return tasks


def load_file(uploaded_file) -> pd.DataFrame:
    """Load an uploaded file (CSV or XLSX) into a DataFrame."""
    name = uploaded_file.name.lower()
    if name.endswith(".csv"):
        return pd.read_csv(uploaded_file)
    elif name.endswith(".xlsx") or name.endswith(".xls"):
        return pd.read_excel(uploaded_file, engine="openpyxl")
    else:
        raise ValueError(f"Unsupported file format: {name}. Use CSV or XLSX.")


# Expected sheet names for multi-tab Excel (case-insensitive matching)
SHEET_ALIASES = {
    "stages": ["stages", "stage", "stage list", "master stages", "stage master"],
    "sections": ["sections", "section", "stage sections"],
    "tasks": ["tasks", "task", "stage tasks", "wbs"],
}


def _match_sheet(sheet_names: List[str], category: str) -> str:
    """Find a sheet name matching the given category. Returns the matched name or raises."""
    aliases = SHEET_ALIASES[category]
    lower_map = {s.lower().strip(): s for s in sheet_names}
    for alias in aliases:
        if alias in lower_map:
            return lower_map[alias]
    raise ValueError(
        f"Could not find a sheet for '{category}'. "
        f"Expected one of: {aliases}. "
        f"Found sheets: {sheet_names}"
    )


def load_multi_sheet_excel(uploaded_file) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Load a single Excel file with 3 tabs: Stages, Sections, Tasks.

    Sheet names are matched case-insensitively. Returns (stages_df, sections_df, tasks_df).
    """
    xl = pd.ExcelFile(uploaded_file, engine="openpyxl")
    sheet_names = xl.sheet_names

    stages_df = pd.read_excel(xl, sheet_name=_match_sheet(sheet_names, "stages"))
    sections_df = pd.read_excel(xl, sheet_name=_match_sheet(sheet_names, "sections"))
    tasks_df = pd.read_excel(xl, sheet_name=_match_sheet(sheet_names, "tasks"))

    return stages_df, sections_df, tasks_df


def build_stage_trees(
    sections_df: pd.DataFrame,
    tasks_df: pd.DataFrame,
    fallback_stage: str = "",
) -> Dict[str, List[WeightedNode]]:
    """Group sections (and their tasks) by stage code into one tree per stage.

    Section sheets without a Stage Code column belong to fallback_stage.
    """
    if "Stage Code" in sections_df.columns:
        stage_codes = sections_df["Stage Code"].astype(str).str.strip().str.upper()
    else:
        stage_codes = pd.Series([fallback_stage.upper()] * len(sections_df), index=sections_df.index)

    trees: Dict[str, List[WeightedNode]] = {}
    for stage_code in stage_codes.unique():
        if not stage_code:
            continue
        sections = parse_sections(sections_df[stage_codes == stage_code])
        trees[stage_code] = sections + parse_tasks(tasks_df, sections)
    return trees
