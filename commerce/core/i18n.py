"""English/Vietnamese content selection"""
from django.conf import settings

SUPPORTED_LOCALES = ('en', 'vi')


def default_locale():
    return getattr(settings, 'DEFAULT_LOCALE', 'vi')


def normalize_locale(value):
    if not value:
        return None
    code = value.strip().lower().replace('_', '-').split('-')[0]
    return code if code in SUPPORTED_LOCALES else None


def get_request_locale(request):
    """?locale= wins, then the first supported Accept-Language entry, then the default"""
    if request is None:
        return default_locale()
    params = getattr(request, 'query_params', None) or getattr(request, 'GET', {})
    locale = normalize_locale(params.get('locale'))
    if locale:
        return locale
    header = request.META.get('HTTP_ACCEPT_LANGUAGE', '')
    for part in header.split(','):
        locale = normalize_locale(part.split(';')[0])
        if locale:
            return locale
    return default_locale()


def localized(obj, field, locale):
    """Pick obj.<field>_<locale>, falling back to the other language when blank"""
    locale = normalize_locale(locale) or default_locale()
    value = getattr(obj, f"{field}_{locale}", None)
    if value:
        return value
    for other in SUPPORTED_LOCALES:
        if other != locale:
            value = getattr(obj, f"{field}_{other}", None)
            if value:
                return value
    return value


def label_for(labels, key, locale):
    """labels: {KEY: {'en': ..., 'vi': ...}}"""
    entry = labels.get(key)
    if not entry:
        return key
    return entry.get(normalize_locale(locale) or default_locale(), entry.get('en', key))
