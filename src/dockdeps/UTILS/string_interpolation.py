"""
Utilities for string interpolation using environment variables.
"""
import os
import re
from typing import Dict, Mapping, Optional

from jinja2 import Environment, StrictUndefined

_template_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports ${VAR}, ${VAR:-default}, and ${VAR:+value}.
    """
    @staticmethod
    def interpolate(template: str, context: Dict[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises KeyError: If a variable is not found and no default is provided.
        """
        # Group 1: VAR name
        # Group 2: - or +
        # Group 3: default or value
        pattern = r'\$\{([^}:]+)(?::(-|\+)([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            modifier = match.group(2)
            alt_value = match.group(3)

            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            elif modifier == '+':
                return alt_value if value else ''
            if value is not None:
                return value
            raise KeyError(f"Variable {var_name} not found in context")

        return re.sub(pattern, replace, template)

    @staticmethod
    def expand(text: str, key: str, value: str) -> str:
        """
        Replaces ``${key}`` and ``$key`` in ``text`` with ``value``.

        ``$key`` is replaced wherever it occurs, including as the prefix of a
        longer name: with key ``A``, ``$AB`` becomes ``<value>B``.
        """
        text = text.replace("${" + key + "}", value)
        return text.replace("$" + key, value)

    @staticmethod
    def render_template(template: str, context: Optional[Mapping[str, str]] = None) -> str:
        """
        Renders a jinja2 template string. The process environment is the
        render data, overlaid with ``context`` when given.

        :raises jinja2.TemplateError: If the template is malformed or
            references an undefined name.
        """
        data = dict(os.environ)
        if context:
            data.update(context)
        return _template_env.from_string(template).render(data)
