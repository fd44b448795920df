"""Test configuration for pytest."""

import sys
from pathlib import Path

# Add the project root directory to Python path
project_root = str(Path(__file__).parent.parent.parent)
sys.path.append(project_root)

# --- Pytest Fixtures ---

import pytest

from autofill_engine.core.answer_store import InMemoryAnswerStore, InMemoryExperienceStore
from autofill_engine.core.models import FieldDescriptor

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def make_field():
    """Factory for field descriptors: make_field(0, label="Email", name="email", type="email")."""
    def _make(index, label="", section="", options=None, tag="input", **attributes):
        return FieldDescriptor(
            index=index,
            label_text=label,
            section_title=section,
            attributes={k: str(v) for k, v in attributes.items()},
            options=list(options or []),
            tag_name=tag,
        )
    return _make


@pytest.fixture
def answer_store():
    return InMemoryAnswerStore()


@pytest.fixture
def experience_store():
    return InMemoryExperienceStore()
