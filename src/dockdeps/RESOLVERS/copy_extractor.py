"""
Extraction of workspace sources from COPY and ADD instructions.
"""
import logging
from typing import Dict, List

from ..MODELS.dockerfile_ast import Instruction, COPY, ADD, ENV
from ..UTILS.shell_words import ShellWordExpander
from ..errors import DefinitionError, EXTRACTION

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("http://", "https://")
STAGE_FLAG = "--from="


def copied_files(instructions: List[Instruction]) -> List[List[str]]:
    """
    Returns one group of source paths per COPY/ADD instruction that copies
    from the workspace. ENV assignments seen so far are applied to the
    sources.

    :raises DefinitionError: If a source word cannot be expanded.
    """
    expander = ShellWordExpander()
    copied = []

    envs: Dict[str, str] = {}
    for inst in instructions:
        if inst.instruction in (COPY, ADD):
            files = process_copy(inst, envs, expander)
            if files:
                copied.append(files)
        elif inst.instruction == ENV:
            # one ENV instruction may define multiple variables
            args = inst.arguments
            for key, value in zip(args[::2], args[1::2]):
                envs[key] = _process_word(expander, value, envs)

    return copied


def process_copy(inst: Instruction, envs: Dict[str, str], expander: ShellWordExpander) -> List[str]:
    """
    Sources of one COPY/ADD instruction. The last token is the destination
    and a token starting with ``#`` ends the instruction.
    """
    # Copying from another stage does not depend on workspace files
    if inst.has_flag(STAGE_FLAG):
        return []

    copied = []
    tokens = inst.arguments
    for i, token in enumerate(tokens[:-1]):
        if tokens[i + 1].startswith("#"):
            break

        src = _process_word(expander, token, envs)
        if src.startswith(REMOTE_PREFIXES):
            logger.debug("Skipping watch on remote dependency %s", src)
            continue
        copied.append(src)

    return copied


def _process_word(expander: ShellWordExpander, word: str, envs: Dict[str, str]) -> str:
    try:
        return expander.process_word(word, envs)
    except ValueError as e:
        raise DefinitionError(f"processing word {word!r}: {e}", operation=EXTRACTION) from e
