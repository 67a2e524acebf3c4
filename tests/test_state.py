"""Tests for the persisted state."""

import json
from pathlib import Path

import pytest

from ship_local.exceptions import StateException
from ship_local.state import (
    FileStateStore,
    State,
    StateEmpty,
    StateLoaded,
    StateLoadError,
)


async def test_empty(tmp_path: Path) -> None:
    """Test loading state before anything was persisted."""
    store = FileStateStore(tmp_path / ".ship" / "state.json")
    assert await store.try_load() == StateEmpty()


async def test_serialize(tmp_path: Path) -> None:
    """Test persisting the chart url and content sha."""
    state_file = tmp_path / ".ship" / "state.json"
    store = FileStateStore(state_file)
    await store.serialize_chart_url("stable/demo")
    await store.serialize_content_sha("abc123")

    assert await store.try_load() == StateLoaded(
        State(chart_url="stable/demo", content_sha="abc123")
    )
    assert json.loads(state_file.read_text()) == {
        "v1": {"chartURL": "stable/demo", "contentSHA": "abc123"}
    }


async def test_new_chart_url_clears_sha(tmp_path: Path) -> None:
    """Test a fingerprint is not kept for a different chart."""
    store = FileStateStore(tmp_path / "state.json")
    await store.serialize_chart_url("stable/demo")
    await store.serialize_content_sha("abc123")
    await store.serialize_chart_url("stable/demo")
    assert await store.try_load() == StateLoaded(
        State(chart_url="stable/demo", content_sha="abc123")
    )
    await store.serialize_chart_url("stable/other")
    assert await store.try_load() == StateLoaded(State(chart_url="stable/other"))


@pytest.mark.parametrize(
    "content",
    ["not json", "[]", '{"v1": "oops"}'],
    ids=["invalid-json", "not-object", "invalid-state"],
)
async def test_load_error(tmp_path: Path, content: str) -> None:
    """Test an unreadable state file is reported distinctly from missing state."""
    state_file = tmp_path / "state.json"
    state_file.write_text(content)
    result = await FileStateStore(state_file).try_load()
    assert isinstance(result, StateLoadError)


async def test_serialize_over_load_error(tmp_path: Path) -> None:
    """Test persisting replaces an unreadable state file."""
    state_file = tmp_path / "state.json"
    state_file.write_text("not json")
    store = FileStateStore(state_file)
    await store.serialize_chart_url("stable/demo")
    assert await store.try_load() == StateLoaded(State(chart_url="stable/demo"))


async def test_remove_state_file(tmp_path: Path) -> None:
    """Test removing state."""
    state_file = tmp_path / "state.json"
    store = FileStateStore(state_file)
    await store.serialize_chart_url("stable/demo")
    await store.remove_state_file()
    assert not state_file.exists()
    assert await store.try_load() == StateEmpty()
    # Removing missing state is a no-op
    await store.remove_state_file()


async def test_write_failure(tmp_path: Path) -> None:
    """Test a state file that can't be written."""
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = FileStateStore(blocker / "state.json")
    with pytest.raises(StateException, match="Unable to write state file"):
        await store.serialize_chart_url("stable/demo")
