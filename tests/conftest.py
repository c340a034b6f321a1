import pytest

from grammata import load_grammar


def one_rule(body: str, kind: str = "token"):
    """Grammar T with a single TOP rule."""
    return load_grammar("grammar T { " + kind + " TOP { " + body + " } }")


@pytest.fixture
def top():
    return one_rule
