"""Promotion plans and their SOL prices."""

from dataclasses import dataclass


class InvalidPlan(ValueError):
    pass


@dataclass(frozen=True)
class Plan:
    name: str
    price_sol: float
    duration: str
    description: str

    def to_pricing(self):
        return {
            "price": str(self.price_sol),
            "currency": "SOL",
            "duration": self.duration,
            "description": self.description,
        }


PLANS = {
    "Basic": Plan("Basic", 0.1, "10 minutes", "Quick promotion in 10 minutes"),
    "Advanced": Plan("Advanced", 0.5, "3 hours", "Extended promotion over 3 hours"),
}


def get_plan(name) -> Plan:
    plan = PLANS.get(name)
    if plan is None:
        raise InvalidPlan("Invalid plan. Must be Basic or Advanced")
    return plan


def pricing_table():
    return {name: plan.to_pricing() for name, plan in PLANS.items()}

