"""
Build argument substitution over a parsed instruction list.
"""
import logging
from typing import List, Mapping, Optional

from jinja2 import TemplateError

from ..MODELS.dockerfile_ast import Instruction, ARG
from ..UTILS.string_interpolation import EnvironmentInterpolator
from ..errors import InvalidBuildArgError

logger = logging.getLogger(__name__)


def evaluate_build_arg_value(key: str, template: str) -> str:
    """
    Renders a build argument value supplied by the caller. Values are
    templates, so ``{{ USER }}`` picks up the environment.
    """
    try:
        return EnvironmentInterpolator.render_template(template)
    except TemplateError as e:
        raise InvalidBuildArgError(key, str(e)) from e


def _arg_key(inst: Instruction) -> str:
    return inst.arguments[0].split("=", 1)[0]


def expand_build_args(instructions: List[Instruction], build_args: Mapping[str, Optional[str]]) -> None:
    """
    Replaces references to each declared ARG in the instructions that follow
    it. Tokens are rewritten in place. A later ARG with the same name ends the
    first declaration's range and starts its own.

    :param instructions: Parsed Dockerfile instructions, mutated in place.
    :param build_args: Caller supplied values. ``None`` means "use the default".
    :raises InvalidBuildArgError: If a supplied value fails to render.
    """
    for i, inst in enumerate(instructions):
        if inst.instruction != ARG:
            continue

        key_value = inst.arguments[0].split("=", 1)
        key = key_value[0]

        supplied = build_args.get(key)
        if supplied is not None:
            value = evaluate_build_arg_value(key, supplied)
        elif len(key_value) > 1:
            value = key_value[1]
        else:
            value = ""
        logger.debug("Build arg %s resolved to %r", key, value)

        for node in instructions[i + 1:]:
            if node.instruction == ARG and _arg_key(node) == key:
                break
            node.arguments[:] = [EnvironmentInterpolator.expand(token, key, value) for token in node.arguments]
