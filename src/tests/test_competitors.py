import pytest

from engine.competitors import add_competitor, competitor_name_from_url, delete_competitor, list_competitors
from engine.errors import LimitExceeded, NotFound, ValidationError


@pytest.fixture
def project(make_user, make_project):
    make_user("user-1", tier="free")
    return make_project(user_id="user-1")


def test_competitor_name_from_url():
    assert competitor_name_from_url("https://www.Rival.com/pricing") == "rival.com"
    assert competitor_name_from_url("http://shop.rival.io") == "shop.rival.io"


def test_add_and_list(db, project):
    competitor = add_competitor(db, "user-1", project.id, "https://www.rival.com")
    assert competitor.name == "rival.com"
    assert competitor.status == "pending"
    assert [c.id for c in list_competitors(db, "user-1", project.id)] == [competitor.id]


def test_invalid_url(db, project):
    with pytest.raises(ValidationError) as exc:
        add_competitor(db, "user-1", project.id, "not a url")
    assert exc.value.message == "Please enter a valid URL"


def test_duplicate_url_is_case_insensitive(db, project):
    add_competitor(db, "user-1", project.id, "https://rival.com")
    with pytest.raises(ValidationError):
        add_competitor(db, "user-1", project.id, "https://RIVAL.com")


def test_plan_limit(db, project):
    for i in range(3):
        add_competitor(db, "user-1", project.id, f"https://rival{i}.com")
    with pytest.raises(LimitExceeded) as exc:
        add_competitor(db, "user-1", project.id, "https://rival9.com")
    assert exc.value.message == (
        "You have reached your plan's limit of 3 competitors. Please upgrade or contact support to add more."
    )


def test_other_users_project_is_hidden(db, project):
    with pytest.raises(NotFound):
        add_competitor(db, "intruder", project.id, "https://rival.com")
    with pytest.raises(NotFound):
        list_competitors(db, "intruder", project.id)


def test_delete(db, project):
    competitor = add_competitor(db, "user-1", project.id, "https://rival.com")
    delete_competitor(db, "user-1", project.id, competitor.id)
    assert list_competitors(db, "user-1", project.id) == []
    with pytest.raises(NotFound):
        delete_competitor(db, "user-1", project.id, competitor.id)
