"""Shared test fixtures for Stache tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from stache import CapabilitySet, TemplateEngine
from stache._logging import null_logger

WriteTemplate = Callable[[str, str], Path]


class User:
    """Context object exposing a narrow capability set."""

    def __init__(self, name: str, email: str = "") -> None:
        self.name = name
        self.email = email
        self.password = "hunter2"

    def greet(self, greeting: str = "Hello") -> str:
        return f"{greeting}, {self.name}"

    async def fetch_status(self) -> str:
        return f"{self.name}: active"

    def explode(self) -> str:
        msg = "boom"
        raise RuntimeError(msg)

    def delete(self) -> str:
        return "deleted"

    def template_capabilities(self) -> CapabilitySet:
        return CapabilitySet.bind(
            self,
            methods=("greet", "fetch_status", "explode"),
            properties=("name", "email"),
        )


@pytest.fixture
def user() -> User:
    return User("Ada", "ada@example.com")


@pytest.fixture
def engine() -> TemplateEngine:
    """Create an engine without a base directory."""
    return TemplateEngine(logger=null_logger())


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Create an empty template directory."""
    root = tmp_path / "templates"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def write_template(template_dir: Path) -> WriteTemplate:
    """Return a function that writes ``<name>.html.stache`` under the template dir."""

    def write(name: str, content: str) -> Path:
        path = template_dir / f"{name}.html.stache"
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(content, encoding="utf-8")
        return path

    return write


@pytest.fixture
def file_engine(template_dir: Path) -> TemplateEngine:
    """Create an engine rooted at the template directory."""
    return TemplateEngine(template_dir, logger=null_logger())
