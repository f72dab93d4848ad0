import pytest

import app.models as models
import helpers.testset_helpers as testset_help
from app.errors import NotFoundError, ValidationError


@pytest.fixture
def flagged_sets(make_test_set):
    return {
        "active": make_test_set(name="active"),
        "deleted": make_test_set(name="deleted", deleted=True),
        "archived": make_test_set(name="archived", archived=True),
        "both": make_test_set(name="both", deleted=True, archived=True),
    }


def _names(query):
    return sorted(test_set.name for test_set in query.all())


def test_active_scope_excludes_deleted_and_archived(flagged_sets):
    assert _names(testset_help.active_scope()) == ["active"]


def test_deleted_scope_ignores_archived_flag(flagged_sets):
    assert _names(testset_help.deleted_scope()) == ["both", "deleted"]


def test_scopes_compose_with_existing_query(flagged_sets, project):
    query = models.TestSet.query.filter(models.TestSet.project_id == project.id)
    assert _names(testset_help.active_scope(query)) == ["active"]


def test_ordered_scope_priority_desc_then_name_asc(make_test_set):
    make_test_set(name="beta", priority=0)
    make_test_set(name="alpha", priority=0)
    make_test_set(name="gamma", priority=1)
    make_test_set(name="delta", priority=-1)

    names = [test_set.name for test_set in testset_help.ordered_scope().all()]
    assert names == ["gamma", "alpha", "beta", "delta"]


def test_list_test_sets_filters_by_project_and_scope(
    flagged_sets, make_test_set, other_project
):
    make_test_set(name="foreign", project_id=other_project.id)
    project_id = flagged_sets["active"].project_id

    assert [s.name for s in testset_help.list_test_sets(project_id)] == ["active"]
    assert [s.name for s in testset_help.list_test_sets(project_id, "deleted")] == [
        "both",
        "deleted",
    ]
    assert len(testset_help.list_test_sets(project_id, "all")) == 4
    assert len(testset_help.list_test_sets(scope="all")) == 5


def test_list_test_sets_rejects_unknown_scope():
    with pytest.raises(ValidationError):
        testset_help.list_test_sets(scope="everything")


def test_get_test_set_by_id_hides_deleted(flagged_sets):
    deleted_id = flagged_sets["deleted"].id

    with pytest.raises(NotFoundError):
        testset_help.get_test_set_by_id(deleted_id)

    found = testset_help.get_test_set_by_id(deleted_id, include_deleted=True)
    assert found.name == "deleted"


def test_get_test_set_by_id_missing_and_invalid():
    with pytest.raises(NotFoundError):
        testset_help.get_test_set_by_id(4242)
    with pytest.raises(ValidationError):
        testset_help.get_test_set_by_id(0)
