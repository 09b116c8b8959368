# settlements/calculator.py
"""
Monthly settlement arithmetic.

Pure functions over Decimals: no database access and no exceptions. Callers
clamp missing or negative inputs to zero (core.money.coerce_amount /
coerce_days) before calling; a non-positive divisor makes the component that
depends on it zero. Values are kept at full precision; rounding to cents
happens only in rounded_figures for display.
"""
from decimal import Decimal

from core.money import ZERO, round_money

COMMISSION_RATE = Decimal('0.05')
GOAL_THRESHOLD_GTQ = Decimal('30000')
GOAL_BONUS_USD = Decimal('100')

MONEY_FIELDS = (
    'base_salary_usd',
    'prorated_salary_usd',
    'commissionable_income_gtq',
    'commission_gtq',
    'commission_usd',
    'goal_bonus_usd',
    'total_usd',
    'total_gtq',
)


def prorated_salary(base_salary_usd, work_days, total_days):
    """Base salary for the days actually worked; multiply before dividing"""
    if total_days <= 0:
        return ZERO
    return Decimal(base_salary_usd) * Decimal(work_days) / Decimal(total_days)


def commission(commissionable_income_gtq):
    """5% of commissionable income, in Quetzales"""
    return Decimal(commissionable_income_gtq) * COMMISSION_RATE


def to_usd(amount_gtq, exchange_rate):
    if exchange_rate <= 0:
        return ZERO
    return Decimal(amount_gtq) / Decimal(exchange_rate)


def goal_reached(commissionable_income_gtq):
    """The goal is met at exactly the threshold"""
    return Decimal(commissionable_income_gtq) >= GOAL_THRESHOLD_GTQ


def calculate_settlement(work_days, total_days, base_salary_usd, exchange_rate, commissionable_income_gtq):
    """
    Derive every settlement figure from the operator's inputs.

    Args:
        work_days: days worked (int >= 0, may exceed total_days)
        total_days: days in the month (int)
        base_salary_usd: full monthly salary (Decimal >= 0)
        exchange_rate: Quetzales per dollar (Decimal)
        commissionable_income_gtq: sum of commissionable item totals (Decimal >= 0)

    Returns:
        dict keyed by Settlement field names
    """
    base_salary_usd = Decimal(base_salary_usd)
    exchange_rate = Decimal(exchange_rate)
    commissionable_income_gtq = Decimal(commissionable_income_gtq)

    prorated_salary_usd = prorated_salary(base_salary_usd, work_days, total_days)
    commission_gtq = commission(commissionable_income_gtq)
    commission_usd = to_usd(commission_gtq, exchange_rate)
    reached = goal_reached(commissionable_income_gtq)
    goal_bonus_usd = GOAL_BONUS_USD if reached else ZERO

    total_usd = prorated_salary_usd + commission_usd + goal_bonus_usd
    total_gtq = total_usd * exchange_rate if exchange_rate > 0 else ZERO

    return {
        'work_days': work_days,
        'total_days': total_days,
        'base_salary_usd': base_salary_usd,
        'exchange_rate': exchange_rate,
        'commissionable_income_gtq': commissionable_income_gtq,
        'prorated_salary_usd': prorated_salary_usd,
        'commission_gtq': commission_gtq,
        'commission_usd': commission_usd,
        'goal_reached': reached,
        'goal_bonus_usd': goal_bonus_usd,
        'total_usd': total_usd,
        'total_gtq': total_gtq,
    }


def rounded_figures(figures):
    """Copy of a calculation with the money fields rounded to cents"""
    rounded = dict(figures)
    for field in MONEY_FIELDS:
        rounded[field] = round_money(figures[field])
    return rounded
