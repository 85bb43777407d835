"""Unit tests for input validation models."""

from datetime import UTC, datetime

import pytest

from walkmate.domain.create_models import DogCreate, SignUpCreate, WalkRequestCreate, parse_input
from walkmate.domain.dog import DogSize
from walkmate.domain.update_models import ProfileUpdate
from walkmate.domain.user import UserRole


@pytest.mark.unit
class TestSignUpCreate:
    """Tests for SignUpCreate."""

    def test_email_is_normalized(self, sample_signup):
        form = parse_input(SignUpCreate, **{**sample_signup, "email": "  New.Owner@Example.COM "})

        assert form.email == "new.owner@example.com"
        assert form.role == UserRole.OWNER

    def test_nickname_is_stripped(self, sample_signup):
        form = parse_input(SignUpCreate, **{**sample_signup, "nickname": "  보리  "})

        assert form.nickname == "보리"

    def test_long_nickname_is_rejected(self, sample_signup):
        with pytest.raises(ValueError, match="Nickname too long"):
            parse_input(SignUpCreate, **{**sample_signup, "nickname": "가" * 21})

    def test_unknown_role_is_rejected(self, sample_signup):
        with pytest.raises(ValueError):
            parse_input(SignUpCreate, **{**sample_signup, "role": "ADMIN"})


@pytest.mark.unit
class TestDogCreate:
    """Tests for DogCreate."""

    def test_defaults(self):
        form = parse_input(DogCreate, name=" 보리 ", breed="말티즈", notes="   ")

        assert form.name == "보리"
        assert form.size == DogSize.S
        assert form.notes is None

    @pytest.mark.parametrize(("name", "breed"), [("", "말티즈"), ("보리", "  ")])
    def test_name_and_breed_are_required(self, name, breed):
        with pytest.raises(ValueError, match="Name and breed are required"):
            parse_input(DogCreate, name=name, breed=breed)

    def test_unknown_size_is_rejected(self):
        with pytest.raises(ValueError):
            parse_input(DogCreate, name="보리", breed="말티즈", size="XL")


@pytest.mark.unit
class TestWalkRequestCreate:
    """Tests for WalkRequestCreate."""

    def _form(self, **overrides):
        data = {
            "dog_id": "d1",
            "scheduled_at": datetime(2026, 5, 1, 12, 0, tzinfo=UTC),
            "duration": 60,
            "reward": 15000,
        }
        return parse_input(WalkRequestCreate, **{**data, **overrides})

    def test_naive_time_is_taken_as_utc(self):
        form = self._form(scheduled_at=datetime(2026, 5, 1, 12, 0))

        assert form.scheduled_at.tzinfo == UTC

    def test_iso_string_is_parsed(self):
        form = self._form(scheduled_at="2026-05-01T12:00:00Z")

        assert form.scheduled_at == datetime(2026, 5, 1, 12, 0, tzinfo=UTC)

    def test_blank_region_falls_back(self):
        assert self._form(region="  ").region is None

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"dog_id": " "}, "Select a dog"),
            ({"duration": 45}, "Duration must be one of"),
            ({"reward": 0}, "positive amount"),
        ],
    )
    def test_invalid_fields(self, overrides, message):
        with pytest.raises(ValueError, match=message):
            self._form(**overrides)


@pytest.mark.unit
class TestProfileUpdate:
    """Tests for ProfileUpdate."""

    def test_blank_region_means_no_change(self):
        assert ProfileUpdate(region_code=" ").region_code is None

    def test_short_nickname_is_rejected(self):
        with pytest.raises(ValueError, match="at least 2 characters"):
            parse_input(ProfileUpdate, nickname="a")

    def test_nothing_to_change(self):
        update = ProfileUpdate()

        assert update.nickname is None
        assert update.region_code is None
