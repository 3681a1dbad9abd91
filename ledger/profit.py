"""Pluggable daily profit models.

An investment stores the model name and its rate, so historical positions keep
paying what they were created with even if the configuration changes later.
"""
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Tuple

from flask import current_app

CENTS = Decimal("0.01")


class ProfitModel:
    name = None
    config_key = None

    def daily_profit(self, principal: Decimal, rate: Decimal) -> Decimal:
        raise NotImplementedError

    def default_rate(self) -> Decimal:
        return Decimal(str(current_app.config[self.config_key]))


class PercentageProfit(ProfitModel):
    """principal x daily rate (10% a day pays 70% over a 7-day term)"""
    name = "percentage"
    config_key = "DAILY_PROFIT_RATE"

    def daily_profit(self, principal, rate):
        return (Decimal(str(principal)) * Decimal(str(rate))).quantize(CENTS, rounding=ROUND_DOWN)


class FlatProfit(ProfitModel):
    """Fixed amount per day regardless of principal."""
    name = "flat"
    config_key = "FLAT_DAILY_PROFIT"

    def daily_profit(self, principal, rate):
        return Decimal(str(rate)).quantize(CENTS, rounding=ROUND_DOWN)


PROFIT_MODELS: Dict[str, ProfitModel] = {
    model.name: model for model in (PercentageProfit(), FlatProfit())
}


def get_profit_model(name: str) -> ProfitModel:
    try:
        return PROFIT_MODELS[name]
    except KeyError:
        raise ValueError(f"Unknown profit model '{name}'. Expected one of {sorted(PROFIT_MODELS)}")


def resolve_terms(principal: Decimal, model_name: str = None, rate: Decimal = None) -> Tuple[str, Decimal, Decimal]:
    """Return (model name, rate, daily profit) for a new investment."""
    model = get_profit_model(model_name or current_app.config["PROFIT_MODEL"])
    if rate is None:
        rate = model.default_rate()
    return model.name, Decimal(str(rate)), model.daily_profit(principal, rate)
