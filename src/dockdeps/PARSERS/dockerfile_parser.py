"""
Parsers for Dockerfiles, extracting instructions and arguments.
"""
import json
import re
from typing import List
from ..MODELS.dockerfile_ast import Instruction, ARG, ENV, FROM, COPY, ADD, ONBUILD
from ..errors import DockerfileParseError

# Instructions whose leading --flags are split off from the arguments
FLAG_INSTRUCTIONS = {FROM, COPY, ADD, "RUN", "HEALTHCHECK"}

# A shell word: unquoted characters, or a quoted run, kept with its quotes
WORD_PATTERN = re.compile(r'''(?:[^\s"'\\]|\\.|"(?:\\.|[^"\\])*"|'[^']*')+''')


class DockerfileParser:
    """
    Parser for Dockerfile instructions.
    """
    def parse(self, dockerfile_path: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.
        """
        with open(dockerfile_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.

        Raises:
            DockerfileParseError: If an instruction the resolver relies on is malformed.
        """
        instructions = []

        # 1. Remove comments
        content = re.sub(r'^[ \t]*#.*$', '', content, flags=re.MULTILINE)

        # 2. Handle line continuations with \
        # Only replace \ followed by optional whitespace and a newline
        content = re.sub(r'\\[ \t]*\r?\n\s*', ' ', content)

        # 3. Match instructions
        # Dockerfile instructions must start a line, but can be preceded by whitespace
        pattern = re.compile(r'^[ \t]*([A-Za-z]+)[ \t]+(.*)$', re.MULTILINE)

        for match in pattern.finditer(content):
            inst = match.group(1).upper()
            args_str = match.group(2).strip()
            raw = match.group(0).strip()

            flags = []
            if inst in FLAG_INSTRUCTIONS:
                flags, args_str = self._split_flags(args_str)

            instructions.append(Instruction(
                instruction=inst,
                arguments=self._parse_arguments(inst, args_str, raw),
                flags=flags,
                raw=raw,
            ))

        return instructions

    @staticmethod
    def _split_flags(args_str: str):
        """
        Splits leading ``--name[=value]`` flags off an argument string.
        """
        flags = []
        rest = args_str
        while rest.startswith('--'):
            parts = rest.split(None, 1)
            flags.append(parts[0])
            rest = parts[1] if len(parts) > 1 else ''
        return flags, rest

    def _parse_arguments(self, inst: str, args_str: str, raw: str) -> List[str]:
        # 4. Handle JSON/Exec form vs Shell form
        if args_str.startswith('[') and args_str.endswith(']') and inst not in (ENV, ARG, ONBUILD):
            try:
                args = json.loads(args_str)
                if isinstance(args, list) and all(isinstance(a, str) for a in args):
                    return self._check(inst, args, raw)
            except json.JSONDecodeError:
                # Not valid JSON, treat as shell form
                pass

        if inst == ENV:
            args = self._parse_env(args_str, raw)
        elif inst in (FROM, COPY, ADD, ARG):
            args = args_str.split()
        else:
            args = [args_str]
        return self._check(inst, args, raw)

    @staticmethod
    def _parse_env(args_str: str, raw: str) -> List[str]:
        """
        ENV KEY VALUE or ENV K1=V1 K2=V2. Returns a flat list
        [K1, V1, K2, V2, ...]. Quotes are kept on values.
        """
        words = WORD_PATTERN.findall(args_str)
        if not words:
            raise DockerfileParseError(f"ENV requires at least one argument: {raw}")

        if '=' not in words[0]:
            # Legacy form: everything after the key is the value
            parts = args_str.split(None, 1)
            return [parts[0], parts[1] if len(parts) > 1 else '']

        args = []
        for word in words:
            if '=' not in word:
                raise DockerfileParseError(f"can't find = in {word!r}, must be of the form name=value: {raw}")
            key, value = word.split('=', 1)
            if not key:
                raise DockerfileParseError(f"ENV names can not be blank: {raw}")
            args.extend([key, value])
        return args

    @staticmethod
    def _check(inst: str, args: List[str], raw: str) -> List[str]:
        if inst in (COPY, ADD) and len(args) < 2:
            raise DockerfileParseError(f"{inst} requires at least two arguments: {raw}")
        if inst in (FROM, ARG) and not args:
            raise DockerfileParseError(f"{inst} requires at least one argument: {raw}")
        return args
