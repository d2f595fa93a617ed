"""
Models for the Dockerfile Abstract Syntax Tree.
"""
from typing import List
from pydantic import BaseModel


class Instruction(BaseModel):
    """
    Represents a single instruction in a Dockerfile.
    """
    instruction: str
    arguments: List[str]
    raw: str
    line: int = 0
