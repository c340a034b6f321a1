"""Grammar and input file loading"""

from __future__ import annotations
from pathlib    import Path
from typing     import Union


def load_text(path: Union[str, Path]) -> str:
    """
    Read a UTF-8 file with newlines normalised to "\\n".
    """
    text = Path(path).read_text(encoding="utf-8")
    return text.replace("\r\n", "\n").replace("\r", "\n")


# grammar files and input files are read the same way
load_grammar_text = load_text
