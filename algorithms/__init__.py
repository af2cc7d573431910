from .math_tools import MathTools
from .program_generator import ProgramGenerator

__all__ = ["MathTools", "ProgramGenerator"]
