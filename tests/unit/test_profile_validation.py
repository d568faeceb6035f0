import pytest
from pydantic import ValidationError

from models.profile import ProfileUpdate, first_error_message


def _message(payload):
    with pytest.raises(ValidationError) as exc_info:
        ProfileUpdate.model_validate(payload)
    return first_error_message(exc_info.value)


@pytest.mark.unit
def test_accepts_camel_case_aliases_and_keeps_only_set_fields():
    update = ProfileUpdate.model_validate(
        {"displayName": "Ana", "privacyLevel": "public", "notificationTime": "07:30", "unknown": "ignored"}
    )
    assert update.model_dump(exclude_unset=True) == {
        "display_name": "Ana",
        "privacy_level": "public",
        "notification_time": "07:30",
    }


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"username": "ab"}, "Username must be 3-50 characters and contain only letters, numbers, and underscores"),
        ({"username": "has space"}, "Username must be 3-50 characters and contain only letters, numbers, and underscores"),
        ({"bio": "x" * 501}, "Bio must be 500 characters or less"),
        ({"privacyLevel": "everyone"}, "Privacy level must be private, friends, or public"),
        ({"timezone": "Mars/Olympus"}, "Timezone must be a valid IANA timezone name"),
        ({"notificationTime": "24:00"}, "Notification time must be in HH:MM format"),
        ({"notificationTime": "9:00"}, "Notification time must be in HH:MM format"),
        ({"displayName": "x" * 101}, "Display name must be 100 characters or less"),
    ],
)
def test_invalid_fields_have_readable_messages(payload, expected):
    assert _message(payload) == expected


@pytest.mark.unit
def test_valid_edge_values():
    update = ProfileUpdate.model_validate(
        {"username": "a_b", "bio": "x" * 500, "timezone": "America/New_York", "notificationTime": "23:59"}
    )
    assert update.username == "a_b"
    assert update.notification_time == "23:59"
