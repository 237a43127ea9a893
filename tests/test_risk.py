"""Tests for the risk calculator wiring."""

import math

import pytest

from dashflow import Invalid, Session, ValidationError
from dashflow.risk import (
    INVALID_INPUT_MESSAGE,
    RISK_FIELDS,
    RiskCalculator,
    bmi,
    format_risk,
    logistic_model,
    risk_percent,
)

FORM = {"Age": 30, "Pregnancies": 1, "BMI": 25, "Glucose": 100}


class _StubModel:
    """Returns 0.42 for the reference inputs, records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, age, pregnancies, bmi_value, glucose):
        self.calls.append((age, pregnancies, bmi_value, glucose))
        return 0.42 if glucose == 100 else 0.6789


class TestCollaborators:
    def test_bmi(self):
        assert bmi(81.0, 1.8) == pytest.approx(25.0)

    def test_bmi_guards_zero_height(self):
        with pytest.raises(ValidationError):
            bmi(70.0, 0)

    def test_risk_percent(self):
        assert risk_percent(0.42) == 42.0
        assert risk_percent(0.123456) == 12.35

    def test_format_risk(self):
        assert format_risk(42.0) == "42.00%"
        assert format_risk(Invalid()) == INVALID_INPUT_MESSAGE

    def test_logistic_model(self):
        model = logistic_model(0.0, (0, 0, 0, 0))
        assert model(30, 1, 25, 100) == 0.5
        model = logistic_model(-1.0, (0, 0, 0, 0.01))
        assert model(30, 1, 25, 100) == pytest.approx(1 / (1 + math.exp(0)))

    def test_logistic_model_needs_four_coefficients(self):
        with pytest.raises(ValueError):
            logistic_model(0.0, (1, 2))


class TestRiskCalculation:
    def test_reads_percent(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model)
        calc.store.update(FORM)
        assert s.read("risk") == 42.0

    def test_new_batch_reuses_unchanged_fields(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model)
        calc.store.update(FORM)
        s.read("risk")

        with s.batch():
            s.write("Glucose", 150)

        assert s.read("risk") == 67.89
        assert model.calls == [(30, 1, 25, 100), (30, 1, 25, 150)]
        assert s.graph.node("risk").inbound == set(RISK_FIELDS)

    def test_batched_trigger_evaluates_once(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model)

        calc.submit(FORM)

        assert len(model.calls) == 1
        assert calc.rendered == ["42.00%"]

    def test_editing_fields_does_not_compute(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model)
        for name, value in FORM.items():
            s.write(name, value)
        assert model.calls == []
        assert calc.rendered == []
        s.trigger("Calculate")
        assert len(model.calls) == 1
        assert calc.last_result == "42.00%"

    def test_pressing_twice_reuses_cache(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model)
        calc.submit(FORM)
        s.trigger("Calculate")
        assert len(model.calls) == 1
        assert calc.rendered == ["42.00%", "42.00%"]

    def test_blank_field(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model)
        calc.submit({**FORM, "Glucose": None})
        assert model.calls == []
        assert calc.last_result == INVALID_INPUT_MESSAGE

    def test_on_render_callback(self):
        s = Session()
        seen = []
        calc = RiskCalculator(s, _StubModel(), on_render=seen.append)
        calc.submit(FORM)
        assert seen == ["42.00%"]


class TestDerivedBmi:
    def test_zero_height_renders_message(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model, derive_bmi=True)

        calc.submit({"Age": 30, "Pregnancies": 1, "Glucose": 100, "Weight": 70, "Height": 0})

        assert isinstance(s.read("BMI"), Invalid)
        assert isinstance(s.read("risk"), Invalid)
        assert s.read("risk").source == "BMI"
        assert model.calls == []
        assert calc.last_result == INVALID_INPUT_MESSAGE

    def test_valid_height(self):
        s = Session()
        model = _StubModel()
        calc = RiskCalculator(s, model, derive_bmi=True)
        calc.submit({"Age": 30, "Pregnancies": 1, "Glucose": 100, "Weight": 81.0, "Height": 1.8})
        assert model.calls[0][2] == pytest.approx(25.0)
        assert calc.last_result == "42.00%"
