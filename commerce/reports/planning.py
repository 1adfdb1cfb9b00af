"""
Monthly revenue targets.

Targets live in the `revenuePlan.targets` setting as a JSON object keyed by
month, e.g. {"2026-03": 500000000}. Amounts are in the default currency.
"""
import json
import logging
import re
from datetime import date

from django.db import transaction
from django.utils import timezone

from commerce.core.cache_utils import invalidate_reports_cache
from commerce.core.errors import AppError
from commerce.core.models import Setting
from commerce.core.money import to_decimal
from commerce.core.utils import create_audit_log

logger = logging.getLogger(__name__)

REVENUE_PLAN_KEY = 'revenuePlan.targets'
REVENUE_PLAN_DESCRIPTION = 'Monthly revenue targets as JSON {"YYYY-MM": amount}'

_MONTH_PATTERN = re.compile(r'^(\d{4})-(0[1-9]|1[0-2])$')


def parse_month(value=None, now=None):
    """First day of the 'YYYY-MM' month, or of the current month when value is empty"""
    if not value:
        return timezone.localtime(now or timezone.now()).date().replace(day=1)
    match = _MONTH_PATTERN.match(str(value).strip())
    if not match:
        raise AppError.validation('month must be YYYY-MM', {'month': 'invalid_month'})
    return date(int(match.group(1)), int(match.group(2)), 1)


def _parse_targets(raw):
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {REVENUE_PLAN_KEY} setting")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {REVENUE_PLAN_KEY}: expected a JSON object")
        return {}

    targets = {}
    for month, amount in data.items():
        value = to_decimal(amount, None)
        if _MONTH_PATTERN.match(str(month)) and value is not None and value >= 0:
            targets[month] = value
    return targets


def _json_amount(value):
    return int(value) if value == value.to_integral_value() else float(value)


def load_revenue_targets():
    """{'YYYY-MM': Decimal}; invalid entries are skipped"""
    return _parse_targets(Setting.get_value(REVENUE_PLAN_KEY))


def set_revenue_target(month, target, request=None):
    """
    Set (or with target 0, clear) the target for one month.

    Returns the full {'YYYY-MM': Decimal} mapping after the change.
    """
    if not month:
        raise AppError.validation('month is required', {'month': 'required'})
    key = f"{parse_month(month):%Y-%m}"
    amount = to_decimal(target, None)
    if amount is None or amount < 0:
        raise AppError.validation('target must be a number zero or greater', {'target': 'invalid'})

    with transaction.atomic():
        Setting.objects.get_or_create(
            key=REVENUE_PLAN_KEY, defaults={'value': '{}', 'description': REVENUE_PLAN_DESCRIPTION}
        )
        setting = Setting.objects.select_for_update().get(key=REVENUE_PLAN_KEY)
        targets = _parse_targets(setting.value)
        previous = targets.get(key)
        if amount == 0:
            targets.pop(key, None)
        else:
            targets[key] = amount
        setting.value = json.dumps({m: _json_amount(v) for m, v in sorted(targets.items())})
        setting.save(update_fields=['value', 'updated_at'])

        create_audit_log(
            request=request,
            action='REVENUE_TARGET_SET',
            model_name='Setting',
            object_id=str(setting.id),
            object_reference=key,
            changes={
                'old': str(previous) if previous is not None else None,
                'new': str(amount) if amount else None,
            },
        )
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Revenue target for {key} set to {amount}")
    return targets
