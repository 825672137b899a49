"""Tests for history summaries, node inference and Hobli/Taluk/District fallback."""

import math

import numpy as np
import pytest

from karnataka_rainfall.exceptions import NoDataError
from karnataka_rainfall.pipeline.hierarchy import HistoryRecord, build_hierarchy
from karnataka_rainfall.pipeline.predict import (
    predict_for_node,
    resolve_history,
    summarize_history,
)
from karnataka_rainfall.pipeline.preprocess import Level

from conftest import StubModel, make_observations, make_row


class TestSummarizeHistory:

    def test_means_ignore_nan(self):
        records = [
            HistoryRecord(800.0, -5.0, 750.0),
            HistoryRecord(math.nan, 5.0, 810.0),
            HistoryRecord(900.0, math.nan, 920.0),
        ]

        assert summarize_history(records) == (850.0, 0.0)

    def test_all_nan_deviation_is_zero(self):
        records = [HistoryRecord(800.0, math.nan, 750.0)]
        assert summarize_history(records) == (800.0, 0.0)

    def test_all_nan_normal_is_nan(self):
        mean_normal, _ = summarize_history([HistoryRecord(math.nan, 1.0, 2.0)])
        assert math.isnan(mean_normal)


class TestPredictForNode:

    def test_encodes_summary_with_target_year(self, stub_model):
        records = [HistoryRecord(800.0, -4.0, 760.0), HistoryRecord(900.0, 6.0, 950.0)]

        value = predict_for_node(stub_model, records, Level.TALUK, 2025)

        assert value == 900.0
        (X,) = stub_model.calls
        np.testing.assert_allclose(X, [[850.0, 1.0, 1.0, 0, 1, 0]])

    def test_negative_predictions_are_clamped(self):
        model = StubModel(value=-42.0)
        records = [HistoryRecord(100.0, 0.0, 90.0)]

        assert predict_for_node(model, records, Level.HOBLI, 2024) == 0.0

    def test_empty_history(self, stub_model):
        with pytest.raises(NoDataError):
            predict_for_node(stub_model, [], Level.DISTRICT, 2024)
        assert stub_model.calls == []

    def test_history_without_normal(self, stub_model):
        records = [HistoryRecord(math.nan, 1.0, 50.0)]
        with pytest.raises(NoDataError):
            predict_for_node(stub_model, records, Level.DISTRICT, 2024)


@pytest.fixture
def fallback_hierarchy():
    observations = []
    for year, (t_normal, t_dep) in zip(
        (2020, 2021, 2022), ((700, -10), (760, 5), (820, 20))
    ):
        observations += make_observations(
            [
                make_row("D", "Mysuru", "786", "812", "3"),
                make_row("T", "Hunsur", str(t_normal), "800", str(t_dep)),
            ],
            year=year,
        )
    observations += make_observations(
        [
            make_row("D", "Chamarajanagar", "720", "700", "-3"),
            make_row("T", "Kollegal", "750", "740", "-1"),
            make_row("H", "Hanur", "760", "745", "-2"),
        ],
        year=2022,
    )
    return build_hierarchy(observations)


class TestResolveHistory:

    def test_hobli_history_wins(self, fallback_hierarchy):
        resolved = resolve_history(fallback_hierarchy, "Chamarajanagar", "Kollegal", "Hanur")

        assert resolved.level is Level.HOBLI
        assert resolved.key == "H|Hanur|Chamarajanagar|Kollegal"
        assert len(resolved.records) == 1

    def test_falls_back_to_taluk(self, fallback_hierarchy, stub_model):
        resolved = resolve_history(fallback_hierarchy, "Mysuru", "Hunsur", "Bilikere")

        assert resolved.level is Level.TALUK
        assert resolved.key == "T|Hunsur|Mysuru"
        assert len(resolved.records) == 3

        predict_for_node(stub_model, resolved.records, resolved.level, 2020)
        (X,) = stub_model.calls
        np.testing.assert_allclose(X, [[760.0, 5.0, 0.0, 0, 1, 0]])

    def test_falls_back_to_district(self, fallback_hierarchy):
        resolved = resolve_history(fallback_hierarchy, "Mysuru", "Periyapatna", "Bettadapura")

        assert resolved.level is Level.DISTRICT
        assert resolved.key == "D|Mysuru"
        assert len(resolved.records) == 3

    def test_district_only_selection(self, fallback_hierarchy):
        resolved = resolve_history(fallback_hierarchy, "Mysuru")
        assert resolved.level is Level.DISTRICT

    def test_no_history_anywhere(self, fallback_hierarchy):
        with pytest.raises(NoDataError) as excinfo:
            resolve_history(fallback_hierarchy, "Kodagu", "Virajpet", "Ammathi")
        assert excinfo.value.context["district"] == "Kodagu"
