import pytest
import os
import sys
from datetime import date

# Repo root = one level up from tests/
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")

if SRC not in sys.path:
    sys.path.insert(0, SRC)


@pytest.fixture
def readout(capsys) -> str:
    def _():
        return capsys.readouterr().out.replace("\r\n", "\n").rstrip("\n")
    return _


@pytest.fixture(scope="function")
def asset():
    return 'NVDA'


@pytest.fixture(scope="function")
def d1():
    return date(2024, 1, 1)


@pytest.fixture(scope="function")
def d2():
    return date(2024, 2, 1)


@pytest.fixture(scope="function")
def sale_date():
    return date(2024, 12, 31)
