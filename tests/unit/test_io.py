"""Unit tests for hit tables and run logging."""

import json
import logging

import pandas as pd
import pytest
import yaml

from hitclue.core.clustering import ClusteringEngine
from hitclue.io import (
    HIT_COLUMNS,
    ensure_output_dir,
    get_logger,
    get_timestamped_log_path,
    load_hits,
    log_json,
    log_yaml,
    split_events,
    write_dataframe,
)


class TestLoadHits:
    """Tests for load_hits."""

    def test_load(self, hits_csv, mock_hits):
        df = load_hits(hits_csv)
        assert len(df) == len(mock_hits)
        assert set(HIT_COLUMNS) <= set(df.columns)
        assert df["layer"].dtype.kind == "i"
        assert df["weight"].dtype.kind == "f"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_hits(tmp_path / "nope.csv")

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"x": [0.0], "y": [0.0]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="missing columns"):
            load_hits(path)

    def test_layer_values_not_truncated(self, tmp_path):
        path = tmp_path / "fractional.csv"
        pd.DataFrame(
            {"x": [0.0, 1.0], "y": [0.0, 0.0], "layer": [1, 2.7], "weight": [1.0, 1.0]}
        ).to_csv(path, index=False)
        df = load_hits(path)
        assert df["layer"].tolist() == [1.0, 2.7]
        with pytest.raises(ValueError, match="E003_LAYER_OUT_OF_RANGE"):
            ClusteringEngine().set_points_from_frame(df)

    def test_missing_layer_rejected_on_load_into_engine(self, tmp_path):
        path = tmp_path / "missing_layer.csv"
        path.write_text("x,y,layer,weight\n0.0,0.0,,1.0\n1.0,0.0,0,1.0\n")
        df = load_hits(path)
        with pytest.raises(ValueError, match="E003_LAYER_OUT_OF_RANGE"):
            ClusteringEngine().set_points_from_frame(df)


class TestSplitEvents:
    """Tests for split_events."""

    def test_without_event_column(self, small_hits):
        events = list(split_events(small_hits))
        assert len(events) == 1
        assert events[0][0] == 0
        assert len(events[0][1]) == len(small_hits)

    def test_with_event_column(self, multi_event_hits):
        events = list(split_events(multi_event_hits))
        assert [event_id for event_id, _ in events] == [0, 1, 2]
        assert sum(len(hits) for _, hits in events) == len(multi_event_hits)
        assert all(hits.index[0] == 0 for _, hits in events)


class TestOutputHelpers:
    """Tests for output directories and CSV writing."""

    def test_ensure_output_dir(self, tmp_path):
        path = ensure_output_dir(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_write_dataframe(self, tmp_path):
        path = write_dataframe(pd.DataFrame({"a": [1, 2]}), tmp_path / "out" / "t.csv")
        assert pd.read_csv(path)["a"].tolist() == [1, 2]


class TestRunLogging:
    """Tests for the run log helpers."""

    def test_timestamped_path(self, tmp_path):
        path = get_timestamped_log_path(tmp_path / "hitclue.log")
        assert path.parent == tmp_path
        assert path.name.startswith("hitclue_")
        assert path.suffix == ".log"

    def test_get_logger_writes_file(self, tmp_path):
        logger, path = get_logger("hitclue.test_io", tmp_path / "run.log", timestamped=False)
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert path == tmp_path / "run.log"
        assert "hello" in path.read_text()
        assert logger.level == logging.INFO

    def test_get_logger_replaces_file_handler(self, tmp_path):
        logger, _ = get_logger("hitclue.test_io_twice", tmp_path / "a.log", timestamped=False)
        logger, _ = get_logger("hitclue.test_io_twice", tmp_path / "b.log", timestamped=False)
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1

    def test_log_json(self, tmp_path):
        path = tmp_path / "records.jsonl"
        log_json(path, {"event": 1})
        log_json(path, {"event": 2})
        lines = path.read_text().splitlines()
        assert [json.loads(line)["event"] for line in lines] == [1, 2]

    def test_log_yaml(self, tmp_path):
        path = tmp_path / "config.log"
        log_yaml(path, {"clue": {"dc": 2.0}})
        text = path.read_text()
        assert text.endswith("---\n")
        assert yaml.safe_load(text.split("---")[0]) == {"clue": {"dc": 2.0}}
