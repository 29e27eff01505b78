import pytest
from pydantic import ValidationError

from libs.core.models import SnippetCreate, SnippetUpdate


def test_tags_are_deduplicated_case_sensitively():
    fields = SnippetCreate(title="t", tags=["py", "Py", "py", "sql", "Py"])
    assert fields.tags == ["py", "Py", "sql"]


def test_blank_title_is_rejected():
    with pytest.raises(ValidationError):
        SnippetCreate(title="   ")
    with pytest.raises(ValidationError):
        SnippetUpdate(title="")


def test_store_managed_fields_are_dropped():
    fields = SnippetCreate.model_validate(
        {"title": "t", "id": "x", "user_id": "u", "updated_at": "2020-01-01T00:00:00Z"}
    )
    assert set(fields.model_dump()) == {"title", "description", "code", "language", "tags"}


def test_update_only_reports_set_fields():
    fields = SnippetUpdate(description="d", tags=["a", "a"])
    assert fields.model_dump(exclude_unset=True) == {"description": "d", "tags": ["a"]}
