import io
import logging

import streamlit as st

from debtordiff.cli import load_config, run_command
from debtordiff.errors import DebtorDiffError

st.set_page_config(page_title="Overdue items", layout="centered")

DEFAULTS = {
    "workbook_path": "./overdue.xlsx",
    "config_path": "./config.yaml",
    "dry_run": True,
    "log_output": "",
    "notices": [],
}

for key, default in DEFAULTS.items():
    st.session_state.setdefault(key, default)

ICONS = {"info": "ℹ️", "success": "✅", "warning": "⚠️", "error": "❌"}

st.title("Overdue items")
st.write("Reconcile the imported debtors report and run the actions chosen in the overdue items sheet.")

with st.sidebar:
    st.header("Inputs")
    st.text_input("Workbook (.xlsx)", key="workbook_path")
    st.text_input("Config YAML", key="config_path")
    st.checkbox("Dry run (log emails instead of sending)", key="dry_run")
    log_level = st.selectbox("Log level", options=["INFO", "DEBUG", "WARNING", "ERROR"], index=0)


def _run(command: str) -> None:
    handler = logging.StreamHandler(stream=io.StringIO())
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))
    try:
        config = load_config(st.session_state["config_path"] or None)
        summary = run_command(
            command,
            config,
            st.session_state["workbook_path"],
            dry_run=st.session_state["dry_run"],
        )
        st.session_state["notices"] = summary.notices
    except DebtorDiffError as exc:
        st.error(f"Run failed: {exc}")
    except Exception as exc:
        st.exception(exc)
    finally:
        handler.flush()
        st.session_state["log_output"] = handler.stream.getvalue()
        root_logger.removeHandler(handler)


st.subheader("Menu")
process_col, actions_col, reset_col = st.columns(3)
if process_col.button("Process debtors report", use_container_width=True):
    with st.spinner("Reconciling..."):
        _run("start-process")
if actions_col.button("Execute actions", use_container_width=True):
    with st.spinner("Executing actions..."):
        _run("execute-actions")
if reset_col.button("Clear debtors report", use_container_width=True):
    _run("reset-data")

for notice in st.session_state.get("notices", []):
    st.toast(f"**{notice.title}**\n\n{notice.message}", icon=ICONS.get(notice.severity))
    if notice.severity == "error":
        st.error(f"{notice.title}: {notice.message}")
    elif notice.severity == "warning":
        st.warning(f"{notice.title}: {notice.message}")
    else:
        st.info(f"{notice.title}: {notice.message}")

st.subheader("Console Output")
st.text_area("Logs", value=st.session_state.get("log_output", ""), height=200)

st.markdown(
    """
### Notes
- The panel wraps the same CLI commands, so `config.yaml` applies here too.
- Close the workbook in Excel before running; each run saves it in place.
- Rows whose email could not be sent keep their action and are retried on the next run.
"""
)
