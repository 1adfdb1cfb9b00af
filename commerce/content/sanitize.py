"""
Allow-list HTML sanitizer for blog and service rich text, built on bleach.

Unknown tags are dropped but their text is kept; script and style elements
are dropped together with their content.
"""
from bleach.css_sanitizer import CSSSanitizer
from bleach.html5lib_shim import Filter
from bleach.sanitizer import Cleaner

ALLOWED_TAGS = frozenset([
    'p', 'br', 'span', 'div', 'strong', 'b', 'em', 'i', 'u', 's', 'strike', 'a', 'ul', 'ol', 'li',
    'blockquote', 'code', 'pre', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'table', 'thead', 'tbody', 'tr',
    'th', 'td', 'img', 'figure', 'figcaption', 'iframe', 'hr',
])

DROP_CONTENT_TAGS = frozenset(['script', 'style'])

_STYLED = {'class', 'style'}
ALLOWED_ATTRIBUTES = {
    'a': {'href', 'target', 'rel', 'class'},
    'img': {'src', 'alt', 'title', 'width', 'height', 'loading', 'class'},
    'iframe': {'src', 'width', 'height', 'allow', 'allowfullscreen', 'frameborder', 'class'},
    'code': {'class'},
    'pre': {'class'},
    'div': _STYLED,
    'span': _STYLED,
    'p': _STYLED,
    'h1': _STYLED,
    'h2': _STYLED,
    'h3': _STYLED,
    'h4': _STYLED,
    'h5': _STYLED,
    'h6': _STYLED,
    'blockquote': {'class'},
    'ul': {'class'},
    'ol': {'class', 'start'},
    'li': {'class'},
    'table': {'class'},
    'th': {'class', 'colspan', 'rowspan'},
    'td': {'class', 'colspan', 'rowspan'},
    'figure': {'class'},
}

SAFE_STYLE_PROPERTIES = frozenset([
    'text-align', 'color', 'background-color', 'font-size', 'font-weight', 'margin', 'padding',
])

# href/src schemes; relative URLs have no scheme and always pass
ALLOWED_PROTOCOLS = frozenset(['http', 'https', 'mailto', 'tel'])

REL_FOR_TARGET = 'noopener noreferrer'


def allow_attribute(tag, name, value):
    """bleach attribute callback: True when `name` may stay on `tag`"""
    name = name.lower()
    if name.startswith('on'):
        return False
    return name in ALLOWED_ATTRIBUTES.get(tag, ())


class DropContentFilter(Filter):
    """Remove script/style elements including the text inside them"""

    def __iter__(self):
        depth = 0
        for token in Filter.__iter__(self):
            name = token.get('name')
            if name in DROP_CONTENT_TAGS and token['type'] in ('StartTag', 'EmptyTag'):
                if token['type'] == 'StartTag':
                    depth += 1
                continue
            if name in DROP_CONTENT_TAGS and token['type'] == 'EndTag':
                depth = max(0, depth - 1)
                continue
            if not depth:
                yield token


class TargetRelFilter(Filter):
    """Links opening a new browsing context get rel="noopener noreferrer" unless rel is set"""

    def __iter__(self):
        for token in Filter.__iter__(self):
            if token['type'] == 'StartTag' and token.get('name') == 'a':
                attrs = token.get('data') or {}
                if (None, 'target') in attrs and (None, 'rel') not in attrs:
                    attrs[(None, 'rel')] = REL_FOR_TARGET
                    token['data'] = attrs
            yield token


def build_cleaner():
    # Cleaner instances are not thread-safe, build one per call
    return Cleaner(
        tags=ALLOWED_TAGS | DROP_CONTENT_TAGS,
        attributes=allow_attribute,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
        css_sanitizer=CSSSanitizer(allowed_css_properties=SAFE_STYLE_PROPERTIES),
        filters=[DropContentFilter, TargetRelFilter],
    )


def sanitize_rich_text(html):
    """Return `html` reduced to the allowed tags and attributes"""
    if not html:
        return ''
    return build_cleaner().clean(html)
