import pytest

from engine.errors import LimitExceeded, NotFound, ValidationError
from engine.models import Project
from engine.projects import create_project, delete_project, get_project, list_projects, update_project


def test_create_project_defaults(db, make_user):
    make_user("user-1", tier="pro")
    project = create_project(db, "user-1", " Shop ", "shop.example.com", keywords=["seo", " seo", "shoes"])

    assert project.name == "Shop"
    assert project.url == "https://shop.example.com"
    assert project.crawl_frequency == "monthly"
    assert project.crawl_depth == 3
    assert project.status == "active"
    assert project.subscription_tier == "pro"
    assert project.keywords == ["seo", "shoes"]


def test_project_limit_for_free_tier(db, make_user):
    make_user("user-1", tier="free")
    for n in range(3):
        create_project(db, "user-1", f"Site {n}", f"https://site{n}.example.com")

    with pytest.raises(LimitExceeded) as exc:
        create_project(db, "user-1", "One more", "https://more.example.com")
    assert exc.value.message == ("You have reached your plan's limit of 3 projects. "
                                 "Please upgrade or contact support to add more.")
    assert db.query(Project).count() == 3


@pytest.mark.parametrize("kwargs", [
    {"url": "not a url"},
    {"url": "ftp://files.example.com"},
    {"name": "   "},
    {"crawl_frequency": "hourly"},
    {"crawl_depth": 11},
])
def test_create_project_rejects_bad_settings(db, make_user, kwargs):
    make_user("user-1")
    fields = dict({"name": "Shop", "url": "https://shop.example.com"}, **kwargs)
    with pytest.raises(ValidationError):
        create_project(db, "user-1", **fields)


def test_list_and_get_are_scoped_to_owner(db, make_user, make_project):
    make_user("user-1")
    make_user("user-2")
    mine = make_project(user_id="user-1")
    theirs = make_project(user_id="user-2")

    assert [p.id for p in list_projects(db, "user-1")] == [mine.id]
    assert get_project(db, "user-1", mine.id) is mine
    with pytest.raises(NotFound):
        get_project(db, "user-1", theirs.id)


def test_update_project(db, make_user, make_project):
    make_user("user-1")
    project = make_project(user_id="user-1")

    update_project(db, "user-1", project.id, {"crawl_frequency": "Daily", "status": "paused", "crawl_depth": 5})

    assert project.crawl_frequency == "daily"
    assert project.status == "paused"
    assert project.crawl_depth == 5

    with pytest.raises(ValidationError):
        update_project(db, "user-1", project.id, {"status": "deleted"})
    with pytest.raises(ValidationError):
        update_project(db, "user-1", project.id, {"user_id": "user-2"})
    with pytest.raises(NotFound):
        update_project(db, "intruder", project.id, {"name": "Mine now"})


def test_delete_project(db, make_user, make_project):
    make_user("user-1")
    project = make_project(user_id="user-1")
    project_id = project.id

    with pytest.raises(NotFound):
        delete_project(db, "intruder", project_id)
    delete_project(db, "user-1", project_id)
    assert db.get(Project, project_id) is None
