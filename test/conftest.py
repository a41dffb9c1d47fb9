import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--runintegration",
        action="store_true",
        default=False,
        help="run integration tests (these download packages from nuget.org)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: test needs network access to the NuGet package feed")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--runintegration"):
        return
    skip_integration = pytest.mark.skip(reason="needs network access; run with --runintegration")
    for item in items:
        if item.get_closest_marker("integration") is not None:
            item.add_marker(skip_integration)
