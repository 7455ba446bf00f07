"""Generate the standard stage catalogue and a seeded template store."""

import pandas as pd
import os

from models.project_type import ProjectType
from data.store import InMemoryTemplateStore
from data.loader import parse_stages, parse_sections, parse_tasks
from config.defaults import STANDARD_WEIGHTS, STAGE_NAMES, STAGE_CATEGORIES, PROJECT_TYPES


def generate_stages_df() -> pd.DataFrame:
    """Master stage list: seven waterfall stages with the standard default weights."""
    rows = []
    for position, code in enumerate(STANDARD_WEIGHTS, start=1):
        rows.append({
            "Stage Code": code,
            "Stage Name": STAGE_NAMES[code],
            "Category": STAGE_CATEGORIES[code],
            "Position": position,
            "Default Weight (%)": STANDARD_WEIGHTS[code],
        })
    return pd.DataFrame(rows)


def generate_sections_df() -> pd.DataFrame:
    """Kickoff sections. Weights are x100 (500 = 5.00% of the project)."""
    sections = [
        ("KO-01", "General Information", 30),
        ("KO-02", "Client Brief & Objectives", 120),
        ("KO-03", "Scope of Work Definition", 100),
        ("KO-04", "Site Data Collection", 80),
        ("KO-05", "Regulation & Zoning Check", 80),
        ("KO-06", "Initial Budget Range", 50),
        ("KO-07", "Project Schedule Draft", 30),
        ("KO-08", "Kickoff Approval", 10),
    ]
    return pd.DataFrame([
        {"Stage Code": "KO", "Section Code": code, "Section Name": name, "Weight": weight}
        for code, name, weight in sections
    ])


def generate_tasks_df() -> pd.DataFrame:
    """Kickoff tasks per section; root tasks of a section add up to its weight."""
    tasks = [
        ("ko-01-01", "KO-01", "Cover", 3),
        ("ko-01-02", "KO-01", "Table of Contents", 3),
        ("ko-01-03", "KO-01", "Purpose of Kickoff", 6),
        ("ko-01-04", "KO-01", "Kickoff Scope & Deliverables", 8),
        ("ko-01-05", "KO-01", "Workflow Overview", 3),
        ("ko-01-06", "KO-01", "Project Understanding", 7),
        ("ko-02-01", "KO-02", "Client Needs & Vision", 54),
        ("ko-02-02", "KO-02", "Functional Requirements", 30),
        ("ko-02-03", "KO-02", "Budget Expectation", 18),
        ("ko-02-04", "KO-02", "Timeline Expectation", 18),
        ("ko-03-01", "KO-03", "Design Scope", 40),
        ("ko-03-02", "KO-03", "Construction Scope", 40),
        ("ko-03-03", "KO-03", "Exclusions & Assumptions", 20),
        ("ko-04-01", "KO-04", "Site Photos and Videos", 32),
        ("ko-04-02", "KO-04", "Existing Drawings", 16),
        ("ko-04-03", "KO-04", "Measurement & Verification", 32),
        ("ko-05-01", "KO-05", "Zoning Regulation", 24),
        ("ko-05-02", "KO-05", "Building Code Check", 40),
        ("ko-05-03", "KO-05", "Height & GSB Analysis", 16),
        ("ko-06-01", "KO-06", "Design Fee", 15),
        ("ko-06-02", "KO-06", "Construction Cost Benchmark", 20),
        ("ko-06-03", "KO-06", "Area vs Cost Analysis", 15),
        ("ko-07-01", "KO-07", "Stage Timeline", 12),
        ("ko-07-02", "KO-07", "Milestone Definition", 18),
        ("ko-08-01", "KO-08", "Internal Approval", 4),
        ("ko-08-02", "KO-08", "Client Approval", 5),
        ("ko-08-03", "KO-08", "Notes", 1),
    ]
    return pd.DataFrame([
        {"Task Key": key, "Section Code": section, "Task Name": name, "Weight": weight, "Parent Key": None}
        for key, section, name, weight in tasks
    ])


def task_scope_key(type_id: str, stage_code: str) -> str:
    """Sections and tasks are stored per project type and stage."""
    return f"{type_id}/{stage_code}"


def seed_store(store: InMemoryTemplateStore = None) -> InMemoryTemplateStore:
    """A store with the three project types and the master (Design & Build) templates."""
    store = store or InMemoryTemplateStore()
    for code, name in PROJECT_TYPES:
        store.add_project_type(ProjectType(id=code.lower(), code=code, name=name))

    master_key = PROJECT_TYPES[0][0].lower()
    for stage in parse_stages(generate_stages_df()):
        store.create("stage", master_key, stage)

    sections = parse_sections(generate_sections_df())
    ko_key = task_scope_key(master_key, "KO")
    for section in sections:
        store.create("section", ko_key, section)
    for task in parse_tasks(generate_tasks_df(), sections):
        store.create("task", ko_key, task)

    return store


def generate_sample_csvs(output_dir: str):
    """Write sample CSV files to the given directory."""
    os.makedirs(output_dir, exist_ok=True)
    generate_stages_df().to_csv(os.path.join(output_dir, "stages.csv"), index=False)
    generate_sections_df().to_csv(os.path.join(output_dir, "sections.csv"), index=False)
    generate_tasks_df().to_csv(os.path.join(output_dir, "tasks.csv"), index=False)


def generate_sample_excel(output_dir: str):
    """Write a single multi-tab Excel file with all three datasets."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "stage_templates.xlsx")
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        generate_stages_df().to_excel(writer, sheet_name="Stages", index=False)
        generate_sections_df().to_excel(writer, sheet_name="Sections", index=False)
        generate_tasks_df().to_excel(writer, sheet_name="Tasks", index=False)


if __name__ == "__main__":
    out = os.path.join(os.path.dirname(__file__), "..", "sample_files")
    generate_sample_csvs(out)
    generate_sample_excel(out)
    print("Sample CSV and Excel files generated in sample_files/")
