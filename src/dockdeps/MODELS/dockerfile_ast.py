"""
Models for the Dockerfile Abstract Syntax Tree.
"""
from typing import List, Optional
from pydantic import BaseModel

FROM = "FROM"
ARG = "ARG"
ENV = "ENV"
COPY = "COPY"
ADD = "ADD"
ONBUILD = "ONBUILD"


class Instruction(BaseModel):
    """
    Represents a single instruction in a Dockerfile.

    ``arguments`` holds the value tokens in order. They are rewritten in place
    when build arguments are substituted.
    """
    instruction: str
    arguments: List[str] = []
    flags: List[str] = []
    raw: str = ""

    def has_flag(self, prefix: str) -> bool:
        """Returns True if any flag starts with ``prefix``."""
        return any(flag.startswith(prefix) for flag in self.flags)


class StageReference(BaseModel):
    """
    A ``FROM <image> [AS <alias>]`` line. The alias is stored lower-cased
    since stage names are case insensitive.
    """
    image: str
    alias: Optional[str] = None

    @classmethod
    def from_instruction(cls, inst: Instruction) -> "StageReference":
        args = inst.arguments
        alias = None
        if len(args) >= 3 and args[1].lower() == "as":
            alias = args[2].lower()
        return cls(image=args[0] if args else "", alias=alias)


class DockerfileAST(BaseModel):
    """
    Represents the complete Abstract Syntax Tree of a Dockerfile.
    """
    instructions: List[Instruction] = []

    def stages(self) -> List[StageReference]:
        return [StageReference.from_instruction(i) for i in self.instructions if i.instruction == FROM]
