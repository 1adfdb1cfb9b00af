"""
Rate limiting presets.

DRF's SimpleRateThrottle keeps a per-client history of request timestamps in the
cache and drops the ones older than the window, i.e. a sliding window log.
Rates accept a multiplier on the period, e.g. "5/15m".
"""
import re

from rest_framework.throttling import SimpleRateThrottle

_PERIODS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}
_RATE_PATTERN = re.compile(r'^(\d+)/(\d*)([smhd])\w*$')


def parse_rate(rate):
    """'5/15m' -> (5, 900); '100/min' -> (100, 60)"""
    if rate is None:
        return None, None
    match = _RATE_PATTERN.match(rate.strip())
    if not match:
        raise ValueError(f"Invalid rate string: {rate}")
    num_requests, multiplier, unit = match.groups()
    return int(num_requests), int(multiplier or 1) * _PERIODS[unit]


class SlidingWindowThrottle(SimpleRateThrottle):
    """Scope-based throttle keyed by user id when authenticated, client IP otherwise"""
    scope = None

    def parse_rate(self, rate):
        return parse_rate(rate)

    def get_cache_key(self, request, view):
        if request.user and request.user.is_authenticated:
            ident = f"user:{request.user.pk}"
        else:
            ident = f"ip:{self.get_ident(request)}"
        return self.cache_format % {'scope': self.scope, 'ident': ident}


class LoginRateThrottle(SlidingWindowThrottle):
    scope = 'login'

    def get_cache_key(self, request, view):
        # Login attempts are always keyed by IP
        return self.cache_format % {'scope': self.scope, 'ident': f"ip:{self.get_ident(request)}"}


class RegisterRateThrottle(LoginRateThrottle):
    scope = 'register'


class CheckoutRateThrottle(SlidingWindowThrottle):
    scope = 'checkout'


class ContactRateThrottle(LoginRateThrottle):
    scope = 'contact'


class ApiGeneralRateThrottle(SlidingWindowThrottle):
    scope = 'api_general'


class ApiAdminRateThrottle(SlidingWindowThrottle):
    scope = 'api_admin'


class SearchRateThrottle(SlidingWindowThrottle):
    scope = 'search'
