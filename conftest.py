import os
import sys

import pytest

# Ensure repo-local imports (e.g., `import engine_comm`) resolve without extra setup.
src_dir = os.path.abspath(os.path.dirname(__file__))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "-E",
        "--engine",
        action="store_true",
        default=False,
        dest="run_engine",
        help="Run tests marked with @pytest.mark.engine (requires stockfish on PATH)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "engine: needs a real UCI engine binary; enable with -E/--engine"
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if not config.getoption("run_engine"):
        skip_engine = pytest.mark.skip(reason="use -E/--engine to enable real engine tests")
        for item in items:
            if "engine" in item.keywords:
                item.add_marker(skip_engine)
