"""
Formula Catalogue: clinic finance formulas.

Every division goes through safe_divide, which degrades to 0 on a zero
denominator or non-finite operands instead of raising. Sparse or empty data
must never crash a dashboard query.
"""

import math

# Default RevPAS drop (percent) above which the 7-day drop is critical
REVPAS_DROP_P1_PERCENT = 15.0


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0 for zero denominators or non-finite operands and results."""
    if not math.isfinite(numerator) or not math.isfinite(denominator) or denominator == 0:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def calc_revpas(total_revenue: float, available_slots: float) -> float:
    """Revenue per available slot."""
    return safe_divide(total_revenue, available_slots)


def calc_revpas_drop_percent(revpas_current: float, revpas_previous: float) -> float:
    """
    Percentage drop from the previous RevPAS to the current one.

    Defined as 0 when the previous value is not positive or either side is
    non-finite. A negative result means RevPAS grew.
    """
    if (
        not math.isfinite(revpas_current)
        or not math.isfinite(revpas_previous)
        or revpas_previous <= 0
    ):
        return 0.0
    return (revpas_previous - revpas_current) / revpas_previous * 100


def detect_revpas_drop_7d(
    revpas_current: float,
    revpas_previous: float,
    threshold: float = REVPAS_DROP_P1_PERCENT,
) -> bool:
    """True when RevPAS dropped more than threshold percent over 7 days."""
    return calc_revpas_drop_percent(revpas_current, revpas_previous) > threshold


def calc_financial_impact(empty_slots: float, average_ticket: float) -> float:
    """Revenue lost to idle capacity (opportunity cost of empty slots)."""
    return empty_slots * average_ticket


def calc_net_revenue(gross_revenue: float, cancellations: float, defaults: float) -> float:
    return gross_revenue - cancellations - defaults


def calc_normalized_ebitda(
    operating_profit: float, depreciation: float, owner_pay_adjustments: float
) -> float:
    return operating_profit + depreciation + owner_pay_adjustments


def calc_break_even(fixed_costs: float, average_ticket: float) -> float:
    """Appointments needed to cover fixed costs."""
    return safe_divide(fixed_costs, average_ticket)


def calc_margin_per_minute(price: float, variable_cost: float, duration_minutes: float) -> float:
    """Contribution margin per chair minute."""
    return safe_divide(price - variable_cost, duration_minutes)


def calc_cac_payback(cac: float, average_contribution_margin: float) -> float:
    """Number of visits needed to recover the acquisition cost."""
    return safe_divide(cac, average_contribution_margin)


def calc_net_ltv(
    average_ticket: float,
    frequency: float,
    retention: float,
    variable_costs: float,
    cac: float,
) -> float:
    """Lifetime value net of variable costs and acquisition cost."""
    return (average_ticket * frequency * retention) - (variable_costs + cac)


def calc_nrr(revenue_current_base: float, revenue_previous_base: float) -> float:
    """Net revenue retention of the existing patient base, in percent."""
    return safe_divide(revenue_current_base, revenue_previous_base) * 100


def calc_nps(promoters: float, detractors: float, total: float) -> float:
    """Net promoter score in [-100, 100]."""
    return safe_divide(promoters - detractors, total) * 100
