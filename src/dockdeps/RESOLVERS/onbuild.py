"""
Expansion of ONBUILD triggers inherited from base images.
"""
import logging
from typing import AbstractSet, List, Optional

from ..MODELS.dockerfile_ast import DockerfileAST, Instruction
from ..PARSERS.dockerfile_parser import DockerfileParser
from ..REGISTRY.image_fetcher import ImageFetcher
from ..errors import DefinitionError, DockerfileParseError, TRIGGER_RESOLUTION

logger = logging.getLogger(__name__)

SCRATCH = "scratch"


def onbuild_instructions(
    instructions: List[Instruction],
    fetcher: ImageFetcher,
    insecure_registries: AbstractSet[str] = frozenset(),
    parser: Optional[DockerfileParser] = None,
) -> List[Instruction]:
    """
    Collects the ONBUILD triggers of every external base image.

    ``scratch`` and references to earlier stages are never looked up. A
    failed lookup is logged and that stage contributes no triggers.

    :param instructions: Instructions with build args already substituted.
    :param fetcher: Callable returning the ONBUILD triggers of an image.
    :param insecure_registries: Passed through to the fetcher.
    :param parser: Parser used for the trigger lines.
    :return: Parsed triggers of all stages, in stage order.
    :raises DefinitionError: If the collected triggers do not parse.
    """
    parser = parser or DockerfileParser()
    triggers: List[str] = []

    stages = set()
    for stage in DockerfileAST(instructions=instructions).stages():
        # Stage names are case insensitive
        if stage.alias:
            stages.add(stage.alias)

        if stage.image.lower() == SCRATCH or stage.image.lower() in stages:
            continue

        logger.debug("Checking base image %s for ONBUILD triggers.", stage.image)
        # Image names are case sensitive
        try:
            on_build = fetcher(stage.image, insecure_registries)
        except Exception as e:
            logger.warning(
                "Error processing base image (%s) for ONBUILD triggers: %s. Dependencies may be incomplete.",
                stage.image, e,
            )
            continue

        if on_build:
            logger.debug("Found ONBUILD triggers %s in image %s", on_build, stage.image)
            triggers.extend(on_build)

    try:
        return parser.parse_from_string("\n".join(triggers))
    except DockerfileParseError as e:
        raise DefinitionError(f"parsing ONBUILD instructions: {e.message}", operation=TRIGGER_RESOLUTION) from e
