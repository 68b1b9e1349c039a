"""
Plan benefits: specialist discounts and emergency consultation allowances.
"""

from typing import Optional

# Family plans share the benefits of their base plan
PLAN_DISCOUNTS = {"free": 0, "basic": 30, "premium": 50, "ultra": 70}

# None means unlimited
EMERGENCY_ALLOWANCES = {"free": 0, "basic": 2, "premium": None, "ultra": None}

PLAN_DISPLAY_NAMES = {"free": "Gratuito", "basic": "Basic", "premium": "Premium", "ultra": "Ultra"}

PLAN_CYCLE_DAYS = 30


def base_plan(plan: Optional[str]) -> str:
    """Strip the family suffix: 'premium_family' -> 'premium'. Unknown or empty plans are 'free'"""
    if not plan:
        return "free"
    name = plan.lower().removesuffix("_family")
    return name if name in PLAN_DISCOUNTS else "free"


def is_family_plan(plan: Optional[str]) -> bool:
    return bool(plan) and plan.lower().endswith("_family")


def get_discount_percentage(plan: Optional[str]) -> int:
    return PLAN_DISCOUNTS[base_plan(plan)]


def calculate_price_with_discount(base_price: int, plan: Optional[str]) -> dict:
    """
    Apply the plan's specialist discount to a price in cents.

    Returns:
        {"final_price", "discount_percentage", "discount_amount"} all in cents / percent
    """
    percentage = get_discount_percentage(plan)
    discount_amount = (base_price * percentage) // 100
    return {
        "final_price": base_price - discount_amount,
        "discount_percentage": percentage,
        "discount_amount": discount_amount,
    }


def format_plan_name(plan: Optional[str]) -> str:
    name = PLAN_DISPLAY_NAMES[base_plan(plan)]
    if is_family_plan(plan) and base_plan(plan) != "free":
        return f"{name} Família"
    return name


def has_unlimited_emergencies(plan: Optional[str]) -> bool:
    return EMERGENCY_ALLOWANCES[base_plan(plan)] is None


def emergency_allowance_for(plan: Optional[str]) -> Optional[int]:
    """Monthly emergency consultations for a plan (None = unlimited)"""
    return EMERGENCY_ALLOWANCES[base_plan(plan)]


def should_charge_for_emergency(plan: Optional[str], consultations_left: Optional[int]) -> bool:
    """Unlimited plans never pay; counted plans pay only once their allowance is used up"""
    if has_unlimited_emergencies(plan):
        return False
    if base_plan(plan) == "basic" and consultations_left is not None and consultations_left > 0:
        return False
    return True


# Plans created on startup and by seed_subscription_plans.py
DEFAULT_PLANS = [
    {
        "name": "free",
        "display_name": "Gratuito",
        "price": 0,
        "emergency_consultations": "0",
        "specialist_discount": 0,
        "insurance_coverage": False,
        "features": ["Acesso ao marketplace de parceiros", "Agendamento de consultas"],
        "is_default": False,
    },
    {
        "name": "basic",
        "display_name": "Basic",
        "price": 10000,
        "emergency_consultations": "2",
        "specialist_discount": 30,
        "insurance_coverage": True,
        "features": ["2 consultas de emergência por mês", "30% de desconto com especialistas", "Seguro"],
        "is_default": True,
    },
    {
        "name": "premium",
        "display_name": "Premium",
        "price": 13900,
        "emergency_consultations": "unlimited",
        "specialist_discount": 50,
        "insurance_coverage": True,
        "features": ["Consultas de emergência ilimitadas", "50% de desconto com especialistas", "Seguro"],
        "is_default": False,
    },
]
