from __future__ import annotations

import pytest
from botocore.exceptions import ClientError
from fakes import GUILD_ID, FakeTable, make_scrim, make_team

from scrim_bot.errors import AlreadyCheckedInError, ConflictError, StorageError
from scrim_bot.models import CaptchaChallenge, DailyRegistration, LobbyRoleGrant, Scrim
from scrim_bot.storage import ScrimStorage


def registration(team_name: str, order: int, *, scrim="Evening", date="2024-01-01"):
    return DailyRegistration(
        guild_id=GUILD_ID,
        scrim_name=scrim,
        scrim_date=date,
        team_name=team_name,
        checked_in_by=1,
        lobby_number=1,
        check_in_order=order,
    )


def test_team_round_trip_and_lookup_by_member(storage, table):
    team = make_team("Alpha", 1, 2, 3, tag="ALP")
    storage.create_team(team)

    assert ("GUILD#42", "TEAM#Alpha") in table.items
    assert storage.get_team("Alpha") == team
    assert storage.get_team_by_member(3) == team
    assert storage.get_team_by_member(99) is None


def test_create_team_rejects_duplicate_name(storage):
    storage.create_team(make_team("Alpha", 1, 2, 3))

    with pytest.raises(ConflictError, match="already taken"):
        storage.create_team(make_team("Alpha", 4, 5, 6))

    assert storage.get_team("Alpha").captain_id == 1


def test_list_teams_newest_first(storage):
    storage.create_team(make_team("Old", 1, 2, 3, created_at="2024-01-01T00:00:00Z"))
    storage.create_team(make_team("New", 4, 5, 6, created_at="2024-02-01T00:00:00Z"))

    assert [team.team_name for team in storage.list_teams()] == ["New", "Old"]


def test_replace_team_rekeys_on_rename(storage, table):
    original = make_team("Alpha", 1, 2, 3)
    storage.create_team(original)
    renamed = make_team("Omega", 1, 2, 3, created_at=original.created_at)

    storage.replace_team("Alpha", renamed)

    assert storage.get_team("Alpha") is None
    assert storage.get_team("Omega") == renamed
    assert len([key for key in table.items if key[1].startswith("TEAM#")]) == 1


def test_replace_team_refuses_to_overwrite_other_team(storage):
    storage.create_team(make_team("Alpha", 1, 2, 3))
    storage.create_team(make_team("Beta", 4, 5, 6))

    with pytest.raises(ConflictError):
        storage.replace_team("Alpha", make_team("Beta", 1, 2, 3))

    assert storage.get_team("Alpha") is not None
    assert storage.get_team("Beta").captain_id == 4


def test_replace_team_rolls_back_when_old_row_survives(storage, table, monkeypatch):
    storage.create_team(make_team("Alpha", 1, 2, 3))
    real_delete = table.delete_item

    def delete_item(*, Key, ConditionExpression=None):
        if Key["sk"].endswith("#Alpha"):
            raise ClientError(
                {"Error": {"Code": "InternalServerError", "Message": "boom"}},
                "DeleteItem",
            )
        real_delete(Key=Key, ConditionExpression=ConditionExpression)

    monkeypatch.setattr(table, "delete_item", delete_item)

    with pytest.raises(StorageError):
        storage.replace_team("Alpha", make_team("Omega", 1, 2, 3))

    assert storage.get_team("Omega") is None
    assert storage.get_team_by_member(1).team_name == "Alpha"


def test_delete_team_reports_missing_rows(storage):
    storage.create_team(make_team("Alpha", 1, 2, 3))

    assert storage.delete_team("Alpha") is True
    assert storage.delete_team("Alpha") is False


def test_scrims_are_upserted_and_listed_by_name(storage):
    storage.save_scrim(make_scrim("Zeta"))
    storage.save_scrim(make_scrim("alpha", days=["Tuesday", "Friday"]))
    storage.save_scrim(make_scrim("Zeta", start=600, end=630))

    scrims = storage.list_scrims()

    assert [scrim.scrim_name for scrim in scrims] == ["alpha", "Zeta"]
    assert storage.get_scrim("Zeta").start_time == "10:00"
    assert storage.delete_scrim("Zeta") is True
    assert storage.delete_scrim("Zeta") is False


def test_scrim_item_accepts_comma_separated_days():
    scrim = Scrim.from_item(
        {
            "pk": "GUILD#42",
            "sk": "SCRIM#Legacy",
            "days": "Monday, Sunday",
            "start_minute": 60,
            "end_minute": 90,
            "mention_role_id": "777",
        }
    )

    assert scrim.scrim_name == "Legacy"
    assert scrim.days == ["Monday", "Sunday"]
    assert scrim.mention_role_id == 777
    assert scrim.end_time == "01:30"


def test_registration_count_ignores_other_record_kinds(storage):
    storage.insert_registration(registration("Alpha", 1))
    storage.insert_registration(registration("Beta", 2))
    storage.save_captcha_challenge(
        CaptchaChallenge(
            guild_id=GUILD_ID,
            user_id=9,
            scrim_name="Evening",
            scrim_date="2024-01-01",
            captcha_word="ALPHA",
        )
    )
    storage.record_lobby_role_grant(
        LobbyRoleGrant(
            guild_id=GUILD_ID,
            scrim_name="Evening",
            scrim_date="2024-01-01",
            user_id=9,
            lobby_number=1,
        )
    )
    storage.insert_registration(registration("Gamma", 1, date="2024-01-02"))

    assert storage.registration_count("Evening", "2024-01-01") == 2
    assert storage.registration_count("Evening", "2024-01-02") == 1
    assert storage.registration_count("Other", "2024-01-01") == 0
    grants = storage.list_lobby_role_grants("Evening", "2024-01-01")
    assert [grant.user_id for grant in grants] == [9]


def test_insert_registration_is_conditional(storage):
    storage.insert_registration(registration("Alpha", 1))

    with pytest.raises(AlreadyCheckedInError):
        storage.insert_registration(registration("Alpha", 2))

    stored = storage.get_registration("Evening", "2024-01-01", "Alpha")
    assert stored.check_in_order == 1


def test_queries_follow_pagination():
    table = FakeTable(page_size=2)
    storage = ScrimStorage(table, GUILD_ID)
    for order, name in enumerate(["A", "B", "C", "D", "E"], start=1):
        storage.insert_registration(registration(name, order))

    assert storage.registration_count("Evening", "2024-01-01") == 5
    listed = storage.list_registrations("Evening", "2024-01-01")
    assert [entry.check_in_order for entry in listed] == [1, 2, 3, 4, 5]


def test_captcha_challenge_is_overwritten_when_verified(storage):
    challenge = CaptchaChallenge(
        guild_id=GUILD_ID,
        user_id=9,
        scrim_name="Evening",
        scrim_date="2024-01-01",
        captcha_word="DELTA",
    )
    storage.save_captcha_challenge(challenge)
    challenge.verified = True
    storage.save_captcha_challenge(challenge)

    stored = storage.get_captcha_challenge("Evening", "2024-01-01", 9)
    assert stored.verified is True
    assert stored.captcha_word == "DELTA"


def test_table_failures_surface_as_storage_error(storage, table):
    table.fail_with = "ProvisionedThroughputExceededException"

    with pytest.raises(StorageError, match="unavailable"):
        storage.get_team("Alpha")
    with pytest.raises(StorageError):
        storage.insert_registration(registration("Alpha", 1))


def test_missing_table_is_reported():
    storage = ScrimStorage(None, GUILD_ID)

    with pytest.raises(RuntimeError, match="not configured"):
        storage.list_scrims()


@pytest.mark.parametrize(
    ("start", "end", "weekday", "minute", "expected"),
    [
        (540, 570, "Monday", 540, True),
        (540, 570, "Monday", 569, True),
        (540, 570, "Monday", 570, False),
        (540, 570, "Monday", 539, False),
        (540, 570, "Tuesday", 550, False),
        (1380, 30, "Monday", 1400, True),
        (1380, 30, "Monday", 10, True),
        (1380, 30, "Monday", 30, False),
    ],
)
def test_scrim_window_contains_minute(start, end, weekday, minute, expected):
    scrim = make_scrim("Evening", start=start, end=end)

    assert scrim.is_open_at(weekday, minute) is expected
