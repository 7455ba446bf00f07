"""Typed wrapper around st.session_state for application data."""

import streamlit as st
from typing import List, Optional
from datetime import datetime
from models.node import WeightedNode
from models.sync import ScopeLoad
from models.audit import AuditEntry
from data.store import InMemoryTemplateStore
from data.sync_service import ScopeSyncService
from data.sample_data import seed_store
from config.defaults import SAVE_TOLERANCE, NEW_ITEM_ENABLED_DEFAULT, SECTION_TOTAL_DEFAULT


def initialize_session_state():
    """Initialize all session state keys with defaults."""
    if "template_store" not in st.session_state:
        store = seed_store()
        st.session_state["template_store"] = store
        st.session_state["sync_service"] = ScopeSyncService(store)

    defaults = {
        "master_stages": None,
        "scopes": {},
        "task_trees": {},
        "dirty": {},
        "audit_log": [],
        "active_type_id": None,
        "rule_config": {
            "save_tolerance": SAVE_TOLERANCE,
            "new_item_enabled": NEW_ITEM_ENABLED_DEFAULT,
            "section_total_default": SECTION_TOTAL_DEFAULT,
        },
    }
    for key, default in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = default


# --- Getters ---

def get_store() -> InMemoryTemplateStore:
    return st.session_state["template_store"]


def get_service() -> ScopeSyncService:
    return st.session_state["sync_service"]


def get_master_stages() -> Optional[List[WeightedNode]]:
    return st.session_state.get("master_stages")


def get_scope(scope_key: str) -> Optional[ScopeLoad]:
    return st.session_state.get("scopes", {}).get(scope_key)


def get_task_tree(tree_key: str) -> Optional[List[WeightedNode]]:
    return st.session_state.get("task_trees", {}).get(tree_key)


def get_active_type_id() -> Optional[str]:
    return st.session_state.get("active_type_id")


def get_audit_log() -> List[AuditEntry]:
    return st.session_state.get("audit_log", [])


def get_rule_config() -> dict:
    return st.session_state.get("rule_config", {})


def is_dirty(key: str) -> bool:
    return st.session_state.get("dirty", {}).get(key, False)


def get_dirty_keys() -> List[str]:
    return [k for k, v in st.session_state.get("dirty", {}).items() if v]


# --- Setters ---

def set_master_stages(stages: Optional[List[WeightedNode]]):
    st.session_state["master_stages"] = stages


def set_scope(scope_key: str, scope: Optional[ScopeLoad]):
    if scope is None:
        st.session_state["scopes"].pop(scope_key, None)
    else:
        st.session_state["scopes"][scope_key] = scope


def set_task_tree(tree_key: str, tree: Optional[List[WeightedNode]]):
    if tree is None:
        st.session_state["task_trees"].pop(tree_key, None)
    else:
        st.session_state["task_trees"][tree_key] = tree


def set_active_type_id(type_id: str):
    st.session_state["active_type_id"] = type_id


def set_rule_config(config: dict):
    st.session_state["rule_config"] = config
    if "sync_service" in st.session_state:
        st.session_state["sync_service"].new_enabled = config.get("new_item_enabled", NEW_ITEM_ENABLED_DEFAULT)


def mark_dirty(key: str, dirty: bool = True):
    st.session_state["dirty"][key] = dirty


def reset_store(store: InMemoryTemplateStore):
    """Swap in a freshly loaded store and drop every cached tree."""
    st.session_state["template_store"] = store
    st.session_state["sync_service"] = ScopeSyncService(
        store, new_enabled=get_rule_config().get("new_item_enabled", NEW_ITEM_ENABLED_DEFAULT),
    )
    st.session_state["master_stages"] = None
    st.session_state["scopes"] = {}
    st.session_state["task_trees"] = {}
    st.session_state["dirty"] = {}


# --- Audit ---

def add_audit_entry(
    action: str,
    scope_key: str,
    field_changed: str,
    old_value: str,
    new_value: str,
    node_key: Optional[str] = None,
    rationale: str = "",
):
    entry = AuditEntry(
        timestamp=datetime.now(),
        action=action,
        scope_key=scope_key,
        node_key=node_key,
        field_changed=field_changed,
        old_value=old_value,
        new_value=new_value,
        rationale=rationale,
    )
    st.session_state["audit_log"].append(entry)


def clear_derived_cache():
    """Drop cached scopes and task trees so the next view re-syncs against the master."""
    st.session_state["scopes"] = {}
    st.session_state["task_trees"] = {}
    for key in get_dirty_keys():
        if key.startswith(("scope:", "tasks:")):
            st.session_state["dirty"][key] = False
