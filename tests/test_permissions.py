import pytest

from devimage.errors import ValidationError
from devimage.permissions import apply_mode, is_executable, parse_mode


@pytest.mark.parametrize(
    ("current", "mode", "expected"),
    [
        (0o644, "a+x", 0o755),
        (0o644, "+x", 0o755),
        (0o644, "u+x", 0o744),
        (0o666, "go-w", 0o644),
        (0o600, "u=rwx,go=rx", 0o755),
        (0o644, "0700", 0o700),
        (0o644, "755", 0o755),
        (0o644, "a+X", 0o644),
        (0o744, "a+X", 0o755),
    ],
)
def test_apply_mode(current: int, mode: str, expected: int) -> None:
    assert apply_mode(current, mode) == expected


def test_apply_mode_ignores_file_type_bits() -> None:
    regular_file = 0o100644

    assert apply_mode(regular_file, "a+x") == 0o755


@pytest.mark.parametrize("mode", ["", "a+z", "rwx", "0999", "u+x;rm -rf /"])
def test_invalid_modes_raise_validation_error(mode: str) -> None:
    with pytest.raises(ValidationError):
        parse_mode(mode)


def test_parse_mode_returns_clauses_for_symbolic_modes() -> None:
    assert parse_mode("u+x,go-w") == [("u", "+", "x"), ("go", "-", "w")]
    assert parse_mode("0755") == 0o755


def test_is_executable() -> None:
    assert is_executable(0o755)
    assert is_executable(0o100)
    assert not is_executable(0o644)
