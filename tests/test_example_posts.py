import pytest

from conftest import OTHER_USER, USER
from core.example_posts import ExamplePostService
from core.exceptions import NotFoundError, PreconditionError, ValidationError
from core.models import GoalType, Platform


@pytest.fixture
def posts(store):
    return ExamplePostService(db=store, limit=2)


def test_cap_per_user_type_and_platform(posts):
    posts.create(USER, "learning", "x", "first")
    posts.create(USER, "learning", "x", "second")

    with pytest.raises(PreconditionError) as exc:
        posts.create(USER, "learning", "x", "third")
    assert "Maximum 2 example posts" in exc.value.message

    # other buckets are independent
    posts.create(USER, "product", "x", "product post")
    posts.create(USER, "learning", "blog", "blog post")
    posts.create(OTHER_USER, "learning", "x", "someone else")


def test_delete_frees_a_slot(posts):
    first = posts.create(USER, "learning", "linkedin", "a")
    posts.create(USER, "learning", "linkedin", "b")
    posts.delete(USER, first.id)
    assert posts.create(USER, "learning", "linkedin", "c").content == "c"


def test_move_into_full_bucket_is_rejected(posts):
    posts.create(USER, "product", "blog", "a")
    posts.create(USER, "product", "blog", "b")
    movable = posts.create(USER, "learning", "blog", "c")

    with pytest.raises(PreconditionError):
        posts.update(USER, movable.id, post_type="product")

    # editing content within its own bucket never counts itself
    updated = posts.update(USER, movable.id, content="edited")
    assert updated.content == "edited"
    assert updated.type == GoalType.LEARNING


def test_validation(posts):
    with pytest.raises(ValidationError):
        posts.create(USER, "learning", "x", "   ")
    with pytest.raises(ValidationError):
        posts.create(USER, "learning", "mastodon", "text")
    with pytest.raises(ValidationError):
        posts.create(USER, "hobby", "x", "text")


def test_other_users_posts_are_not_found(posts):
    post = posts.create(USER, "learning", "x", "mine")
    with pytest.raises(NotFoundError):
        posts.update(OTHER_USER, post.id, content="theirs")
    with pytest.raises(NotFoundError):
        posts.delete(OTHER_USER, post.id)


def test_list_filters(posts):
    posts.create(USER, "learning", "x", "a")
    posts.create(USER, "product", "blog", "b")
    assert len(posts.list(USER)) == 2
    only_blog = posts.list(USER, platform="blog")
    assert [p.platform for p in only_blog] == [Platform.BLOG]
    # unknown filter values are ignored
    assert len(posts.list(USER, post_type="nonsense")) == 2


def test_references_by_platform_prefers_oldest(posts):
    posts.create(USER, "learning", "x", "older")
    posts.create(USER, "learning", "x", "newer")
    posts.create(USER, "learning", "blog", "blog ref")

    refs = posts.references_by_platform(USER, GoalType.LEARNING)
    assert refs == {"x": "older", "linkedin": None, "blog": "blog ref"}
