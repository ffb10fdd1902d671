from __future__ import annotations

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query

from git_density.infrastructure.run_store import RunStore
from git_density.web.models import (
    AuthorHoursRow,
    AuthorSpanRow,
    FileHunkRow,
    HunkBlockRow,
    RunDetail,
    RunSummary,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_path = getattr(app.state, "db_path", None)
    app.state.store = RunStore(db_path=db_path)
    yield
    app.state.store.close()


app = FastAPI(title="git-density", lifespan=lifespan)


def _store() -> RunStore:
    return app.state.store


def _run_dict_to_detail(row: dict) -> RunDetail:
    """Convert a raw runs dict to RunDetail, parsing JSON fields."""
    row = dict(row)
    if isinstance(row.get("blocks_by_nature"), str):
        row["blocks_by_nature"] = json.loads(row["blocks_by_nature"])
    return RunDetail(**row)


@app.get("/api/repos", response_model=list[str])
def list_repos():
    return _store().list_repos()


@app.get("/api/runs", response_model=list[RunSummary])
def list_runs(repo: str = Query(..., description="Repository path")):
    return [RunSummary(**r) for r in _store().list_runs_for_repo(repo)]


@app.get("/api/runs/{run_id}", response_model=RunDetail)
def get_run(run_id: str):
    row = _store().get_run(run_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return _run_dict_to_detail(row)


# Child endpoint definitions: (url_suffix, response_model, store_method_name)
_CHILD_ENDPOINTS: list[tuple[str, type, str]] = [
    ("authors", AuthorHoursRow, "get_author_hours"),
    ("spans", AuthorSpanRow, "get_author_spans"),
    ("hunks", FileHunkRow, "get_file_hunks"),
    ("blocks", HunkBlockRow, "get_hunk_blocks"),
]


def _make_child_endpoint(model, store_method_name):
    """Factory to create a child endpoint handler."""
    def handler(run_id: str):
        _assert_run_exists(run_id)
        return [model(**r) for r in getattr(_store(), store_method_name)(run_id)]
    return handler


for _suffix, _model, _method in _CHILD_ENDPOINTS:
    app.get(
        f"/api/runs/{{run_id}}/{_suffix}",
        response_model=list[_model],
    )(_make_child_endpoint(_model, _method))


def _assert_run_exists(run_id: str) -> None:
    if _store().get_run(run_id) is None:
        raise HTTPException(status_code=404, detail="Run not found")
