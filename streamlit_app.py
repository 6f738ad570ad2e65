from __future__ import annotations

import logging
import os
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import streamlit as st

import backlog_forecast
from backlog_forecast.data.db import connect, default_db_path, init_db
from backlog_forecast.app.pages import ai_analysis, history, simulator

logging.basicConfig(
    level=os.getenv("BACKLOG_FORECAST_LOG_LEVEL", "INFO").upper(),
    format="%(levelname)s %(message)s",
)

st.set_page_config(page_title="Backlog Time Machine", layout="wide")

# --- DB init (once per app start) ---
con = connect(default_db_path())
init_db(con)

# --- Sidebar navigation ---
st.sidebar.title("Backlog Time Machine")

build_number = (
    os.getenv("APP_BUILD")
    or os.getenv("BUILD_NUMBER")
    or backlog_forecast.__version__
)
st.sidebar.caption(f"Build: {build_number}")

PAGES = {
    "Future Simulator": lambda: simulator.render(con),
    "AI Analysis": lambda: ai_analysis.render(con),
    "Snapshot history": lambda: history.render(con),
}

params = st.query_params
page_param = params.get("page")

nav_target = st.session_state.pop("nav_to_page", None)
if nav_target:
    st.session_state["sidebar_page_default"] = nav_target
elif page_param in PAGES:
    st.session_state["sidebar_page_default"] = page_param

page_labels = list(PAGES.keys())
default_index = 0
current_page = st.session_state.get("sidebar_page_default")
if current_page in page_labels:
    default_index = page_labels.index(current_page)

selected = st.sidebar.radio("Pages", page_labels, index=default_index, key="sidebar_page")
st.session_state.pop("sidebar_page_default", None)

# --- Render selected page ---
PAGES[selected]()
