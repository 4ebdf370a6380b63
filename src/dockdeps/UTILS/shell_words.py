"""
Shell word expansion for Dockerfile instruction arguments.

Handles quoting, backslash escapes and ``$VAR`` / ``${VAR}`` /
``${VAR:-default}`` / ``${VAR:+value}`` references the way the Docker
builder does for COPY, ADD and ENV. Unset variables expand to the empty
string.
"""
import re
from typing import Mapping

NAME_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')


class ShellWordExpander:
    """
    Expands a single shell word against an environment mapping.
    """
    def __init__(self, escape: str = '\\'):
        self.escape = escape

    def process_word(self, word: str, env: Mapping[str, str]) -> str:
        """
        :param word: A raw word as it appears in the Dockerfile.
        :param env: Variables visible at this point in the Dockerfile.
        :return: The word with quotes removed and variables expanded.
        :raises ValueError: On an unterminated quote or ``${`` reference.
        """
        out = []
        i = 0
        while i < len(word):
            ch = word[i]
            if ch == self.escape:
                if i + 1 < len(word):
                    out.append(word[i + 1])
                    i += 2
                else:
                    out.append(ch)
                    i += 1
            elif ch == "'":
                end = word.find("'", i + 1)
                if end == -1:
                    raise ValueError(f"unexpected end of statement while looking for matching single-quote in {word!r}")
                out.append(word[i + 1:end])
                i = end + 1
            elif ch == '"':
                i = self._double_quoted(word, i + 1, env, out)
            elif ch == '$':
                i = self._variable(word, i, env, out)
            else:
                out.append(ch)
                i += 1
        return ''.join(out)

    def _double_quoted(self, word, i, env, out) -> int:
        while i < len(word):
            ch = word[i]
            if ch == '"':
                return i + 1
            if ch == self.escape and i + 1 < len(word) and word[i + 1] in ('"', '$', self.escape):
                out.append(word[i + 1])
                i += 2
            elif ch == '$':
                i = self._variable(word, i, env, out)
            else:
                out.append(ch)
                i += 1
        raise ValueError(f"unexpected end of statement while looking for matching double-quote in {word!r}")

    def _variable(self, word, i, env, out) -> int:
        """Expands the reference starting at word[i] == '$'. Returns the next index."""
        if word.startswith('${', i):
            end = word.find('}', i + 2)
            if end == -1:
                raise ValueError(f"missing '}}' in {word!r}")
            body = word[i + 2:end]
            match = NAME_PATTERN.match(body)
            if not match:
                raise ValueError(f"bad substitution {word[i:end + 1]!r}")
            name = match.group(0)
            rest = body[match.end():]
            value = env.get(name, '')
            if not rest:
                out.append(value)
            elif rest.startswith(':-'):
                out.append(value if value else self.process_word(rest[2:], env))
            elif rest.startswith(':+'):
                out.append(self.process_word(rest[2:], env) if value else '')
            else:
                raise ValueError(f"unsupported modifier {rest!r} in {word!r}")
            return end + 1

        match = NAME_PATTERN.match(word, i + 1)
        if not match:
            # A lone dollar sign is literal
            out.append('$')
            return i + 1
        out.append(env.get(match.group(0), ''))
        return match.end()
