"""Streamlit dashboard for git-density, reading from the FastAPI backend."""
from __future__ import annotations

import sys

import httpx
import plotly.graph_objects as go
import streamlit as st

API_URL = "http://localhost:8000"
for arg in sys.argv:
    if arg.startswith("--api-url="):
        API_URL = arg.split("=", 1)[1]

st.set_page_config(page_title="git-density", layout="wide")


@st.cache_data(ttl=60)
def fetch(endpoint: str, params: dict | None = None) -> list | dict | None:
    try:
        resp = httpx.get(f"{API_URL}{endpoint}", params=params, timeout=30)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()
    except httpx.ConnectError:
        st.error(f"Cannot connect to API at {API_URL}. Is the server running?")
        st.stop()


# ── Sidebar ─────────────────────────────────────────────────────────

st.sidebar.title("git-density")

repos = fetch("/api/repos") or []
if not repos:
    st.sidebar.warning("No repositories found. Run `analyze-density <path> --all` first.")
    st.stop()

selected_repo = st.sidebar.selectbox("Repository", repos)

runs = fetch("/api/runs", params={"repo": selected_repo}) or []
if not runs:
    st.sidebar.warning("No runs for this repository.")
    st.stop()

run_labels = [f"{str(r['created_at'])[:19]}  ({r['total_hours']:.2f} h)" for r in runs]
selected_idx = st.sidebar.selectbox(
    "Run", range(len(runs)), format_func=lambda i: run_labels[i]
)
run_id = runs[selected_idx]["run_id"]

run = fetch(f"/api/runs/{run_id}")
if not run:
    st.error("Run not found.")
    st.stop()

tab_overview, tab_hours, tab_density = st.tabs(["Overview", "Hours", "Density"])

# ── Overview ────────────────────────────────────────────────────────

with tab_overview:
    st.header("Overview")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Commits", run["total_commits"])
    c2.metric("Total Hours", f"{run['total_hours']:.2f}")
    c3.metric("Authors", run["author_count"])
    c4.metric("Hunks", run["hunk_count"])
    st.caption(
        f"Session break after {run['max_commit_diff_minutes']} min, "
        f"first commit of a session credited with {run['first_commit_addition_minutes']} min."
    )

# ── Hours ───────────────────────────────────────────────────────────

with tab_hours:
    st.header("Estimated Hours per Author")
    authors = fetch(f"/api/runs/{run_id}/authors") or []
    if authors:
        fig = go.Figure(go.Bar(
            x=[a["hours"] for a in authors],
            y=[a["author_email"] for a in authors],
            orientation="h",
        ))
        fig.update_layout(height=max(300, 30 * len(authors)), xaxis_title="Hours")
        st.plotly_chart(fig, use_container_width=True)

        spans = fetch(f"/api/runs/{run_id}/spans") or []
        email = st.selectbox("Spans of", [a["author_email"] for a in authors])
        st.dataframe(
            [
                {k: v for k, v in s.items() if k not in ("run_id", "author_email")}
                for s in spans if s["author_email"] == email
            ],
            use_container_width=True,
        )
    else:
        st.info("No commits in this run.")

# ── Density ─────────────────────────────────────────────────────────

with tab_density:
    st.header("Change Structure")
    natures = run["blocks_by_nature"]
    fig = go.Figure(go.Pie(labels=list(natures), values=list(natures.values()), hole=0.4))
    fig.update_layout(height=350)
    st.plotly_chart(fig, use_container_width=True)

    m1, m2 = st.columns(2)
    m1.metric("Lines added", run["lines_added"])
    m2.metric("Lines deleted", run["lines_deleted"])

    hunks = fetch(f"/api/runs/{run_id}/hunks") or []
    if hunks:
        st.dataframe(
            [{k: v for k, v in h.items() if k != "run_id"} for h in hunks],
            use_container_width=True,
        )
