import pytest

from repositories.reactions_repo import ReactionsRepository
from helpers import make_feed_item, make_user


@pytest.mark.repo
def test_duplicate_reaction_is_not_inserted(database):
    owner = make_user()
    fan = make_user()
    feed_item_id = make_feed_item(owner["id"])
    repo = ReactionsRepository()

    assert repo.add_reaction(feed_item_id, fan["id"], "🔥") is not None
    assert repo.add_reaction(feed_item_id, fan["id"], "🔥") is None
    # A different emoji from the same user is a separate reaction
    assert repo.add_reaction(feed_item_id, fan["id"], "❤️") is not None
    assert repo.add_reaction(feed_item_id, owner["id"], "🔥") is not None

    assert len(repo.list_reactions(feed_item_id)) == 3


@pytest.mark.repo
def test_remove_reactions_removes_all_of_the_callers(database):
    owner = make_user()
    fan = make_user(display_name="Fan")
    feed_item_id = make_feed_item(owner["id"])
    repo = ReactionsRepository()
    repo.add_reaction(feed_item_id, fan["id"], "🔥")
    repo.add_reaction(feed_item_id, fan["id"], "❤️")
    repo.add_reaction(feed_item_id, owner["id"], "🎧")

    assert repo.remove_reactions(feed_item_id, fan["id"]) == 2
    assert repo.remove_reactions(feed_item_id, fan["id"]) == 0

    remaining = repo.list_reactions(feed_item_id)
    assert [(r["user_id"], r["emoji"]) for r in remaining] == [(owner["id"], "🎧")]


@pytest.mark.repo
def test_list_reactions_newest_first_with_user_fields(database):
    owner = make_user()
    fan = make_user(display_name="Fan", username="fan_user")
    feed_item_id = make_feed_item(owner["id"])
    repo = ReactionsRepository()
    repo.add_reaction(feed_item_id, fan["id"], "🔥")
    repo.add_reaction(feed_item_id, fan["id"], "❤️")

    reactions = repo.list_reactions(feed_item_id)
    assert [r["emoji"] for r in reactions] == ["❤️", "🔥"]
    assert reactions[0]["display_name"] == "Fan"
    assert reactions[0]["username"] == "fan_user"
