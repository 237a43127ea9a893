"""Risk calculator wiring — the dashboard's collaborators on the graph.

The statistical model is a plain function of four numbers returning a
probability. Everything around it is wired as nodes: the four form fields
are Sources (or BMI is derived from height and weight), ``risk`` is a
Derived node over them, and the rendered result is a trigger observer bound
to the "Calculate" button. Editing a field recomputes nothing; pressing the
button evaluates ``risk`` once against all fields together.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Sequence

from dashflow._errors import ValidationError
from dashflow.invalid import MISSING, Invalid
from dashflow.session import Session
from dashflow.store import Store

RISK_FIELDS = ("Age", "Pregnancies", "BMI", "Glucose")
INVALID_INPUT_MESSAGE = "inputs blank, please check"

Model = Callable[[float, float, float, float], float]


def bmi(weight_kg: float, height_m: float) -> float:
    """Body mass index. Zero or negative height is rejected, not divided by."""
    if height_m <= 0:
        raise ValidationError(f"height must be positive, got {height_m!r}")
    return weight_kg / height_m**2


def risk_percent(probability: float) -> float:
    """Probability as a percentage rounded to two decimals."""
    return round(probability * 100, 2)


def format_risk(value: Any) -> str:
    if isinstance(value, Invalid):
        return INVALID_INPUT_MESSAGE
    return f"{value:.2f}%"


def logistic_model(intercept: float, coefficients: Sequence[float]) -> Model:
    """Fixed-formula classifier: sigmoid of a linear score.

    Usage:
        model = logistic_model(-8.4, (0.03, 0.12, 0.09, 0.035))
        model(30, 1, 25, 100)  # probability in [0, 1]
    """
    coefficients = tuple(coefficients)
    if len(coefficients) != len(RISK_FIELDS):
        raise ValueError(f"expected {len(RISK_FIELDS)} coefficients, got {len(coefficients)}")

    def predict(*features: float) -> float:
        score = intercept + sum(c * x for c, x in zip(coefficients, features))
        return 1.0 / (1.0 + math.exp(-score))

    return predict


class RiskCalculator:
    """The risk form, its Derived score and the "Calculate" result."""

    def __init__(
        self,
        session: Session,
        model: Model,
        *,
        derive_bmi: bool = False,
        trigger_id: str = "Calculate",
        on_render: Callable[[str], None] | None = None,
    ) -> None:
        self.session = session
        self.trigger_id = trigger_id
        self.rendered: list[str] = []
        self._on_render = on_render

        fields = ["Age", "Pregnancies", "Glucose"]
        if derive_bmi:
            fields += ["Weight", "Height"]
        else:
            fields.append("BMI")
        self.store = Store(session, {name: MISSING for name in fields})

        if derive_bmi:
            session.define_derived("BMI", bmi, inputs=("Weight", "Height"))
        session.define_derived(
            "risk",
            lambda *features: risk_percent(model(*features)),
            inputs=RISK_FIELDS,
        )
        session.define_observer(
            "risk_result",
            self._render,
            mode="trigger",
            trigger_id=trigger_id,
            inputs=("risk",),
        )

    def _render(self, risk: Any) -> str:
        text = format_risk(risk)
        self.rendered.append(text)
        if self._on_render is not None:
            self._on_render(text)
        return text

    def submit(self, values: dict[str, Any]) -> None:
        """Write the form in one batch, then press the button."""
        self.store.update(values)
        self.session.trigger(self.trigger_id)

    @property
    def last_result(self) -> str | None:
        return self.rendered[-1] if self.rendered else None
