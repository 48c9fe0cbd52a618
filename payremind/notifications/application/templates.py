"""Placeholder substitution for reminder templates.

Templates use ``{{name}}`` placeholders. Placeholders without a value are
left in the output untouched.
"""

import re
from collections.abc import Mapping

_PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}\}")


def render_template(template: str, data: Mapping[str, str]) -> str:
    """Replace every ``{{key}}`` in *template* with ``data[key]``.

    Example:
        >>> render_template("Hi {{name}}, see {{link}}", {"name": "Ada"})
        'Hi Ada, see {{link}}'
    """

    def substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in data:
            return str(data[key])
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, template)
