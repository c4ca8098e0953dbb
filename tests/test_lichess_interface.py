"""Tests for src/lichess_interface.py using a mocked WebDriver."""

from unittest.mock import MagicMock, PropertyMock

import pytest
from selenium.common.exceptions import NoSuchElementException, WebDriverException

from board_geometry import CoordinateTranslator, Move, Square
from bot_config import Credentials
from errors import ActionRejected
from lichess_interface import LOGIN_URL, LichessInterface, parse_translate, translate_style


def make_interface(white=True, styles=None):
    driver = MagicMock()
    driver.find_elements.side_effect = (
        lambda by, selector: [MagicMock()] if selector == '.orientation-white' and white else []
    )
    driver.execute_script.return_value = styles or []
    interface = LichessInterface(driver, CoordinateTranslator(64), "https://lichess.org/",
                                 sleep=lambda seconds: None)
    return interface, driver


def test_translate_style_round_trip() -> None:
    style = translate_style((320, 128))
    assert style == "transform: translate(320px, 128px);"
    assert parse_translate(style) == (320.0, 128.0)
    assert parse_translate("opacity: 0") is None
    assert parse_translate(None) is None


def test_orientation() -> None:
    assert make_interface(white=True)[0].get_orientation() is True
    assert make_interface(white=False)[0].get_orientation() is False


def test_last_move_as_white() -> None:
    # destination first, source second
    styles = ["transform: translate(256px, 256px);", "transform: translate(256px, 384px);"]
    interface, _ = make_interface(white=True, styles=styles)
    assert interface.get_last_move() == Move.parse("e2e4")


def test_last_move_as_black() -> None:
    styles = ["transform: translate(192px, 256px);", "transform: translate(192px, 384px);"]
    interface, _ = make_interface(white=False, styles=styles)
    assert interface.get_last_move() == Move.parse("e7e5")


@pytest.mark.parametrize(
    "styles",
    [[], ["transform: translate(0px, 0px);"], ["garbage", "transform: translate(0px, 0px);"]],
)
def test_last_move_missing_or_unreadable(styles) -> None:
    interface, _ = make_interface(styles=styles)
    assert interface.get_last_move() is None


def test_last_move_script_failure_is_a_miss() -> None:
    interface, driver = make_interface()
    driver.execute_script.side_effect = WebDriverException("tab crashed")
    assert interface.get_last_move() is None


def test_result_text() -> None:
    interface, driver = make_interface()
    banner = MagicMock()
    banner.text = "  White is victorious \n"
    driver.find_elements.side_effect = lambda by, selector: [banner] if selector == '.result_wrap' else []
    assert interface.get_result_text() == "White is victorious"

    driver.find_elements.side_effect = lambda by, selector: []
    assert interface.get_result_text() is None


def test_fen_extraction_reads_one_field() -> None:
    interface, driver = make_interface()
    driver.page_source = '<script>{"id":"x","fen":"8/8/8/8/8/8/8/K6k w - - 0 1","ply":3}</script>'
    assert interface.get_fen() == "8/8/8/8/8/8/8/K6k w - - 0 1"

    driver.page_source = "<html></html>"
    assert interface.get_fen() is None


def test_click_source_requires_a_piece() -> None:
    interface, driver = make_interface()
    piece = MagicMock()
    driver.find_element.return_value = piece

    interface.click_square(Square.parse("e2"), (256, 384), require_piece=True)

    driver.find_element.assert_called_once()
    selector = driver.find_element.call_args[0][1]
    assert selector == 'piece[style="transform: translate(256px, 384px);"]'
    piece.click.assert_called_once()


def test_click_destination_falls_back_to_any_element() -> None:
    interface, driver = make_interface()
    square = MagicMock()
    driver.find_element.side_effect = [NoSuchElementException("no piece"), square]

    interface.click_square(Square.parse("e4"), (256, 256))

    assert driver.find_element.call_args[0][1] == '[style="transform: translate(256px, 256px);"]'
    square.click.assert_called_once()


def test_missing_piece_is_rejected() -> None:
    interface, driver = make_interface()
    driver.find_element.side_effect = NoSuchElementException("gone")
    with pytest.raises(ActionRejected):
        interface.click_square(Square.parse("e2"), (256, 384), require_piece=True)


def test_failed_click_is_rejected() -> None:
    interface, driver = make_interface()
    driver.find_element.return_value.click.side_effect = WebDriverException("intercepted")
    with pytest.raises(ActionRejected):
        interface.click_square(Square.parse("e2"), (256, 384))


def test_rematch_without_button_returns_false() -> None:
    interface, driver = make_interface()
    driver.current_url = "https://lichess.org/abcd1234"
    driver.find_element.side_effect = NoSuchElementException("no rematch")
    assert interface.offer_rematch(0.1) is False


def make_seekable(driver) -> None:
    """Make the mocked random-colour button visible and enabled."""
    button = driver.find_element.return_value
    button.is_displayed.return_value = True
    button.is_enabled.return_value = True


def test_seek_timeout_returns_false() -> None:
    interface, driver = make_interface()
    make_seekable(driver)
    driver.current_url = "https://lichess.org/"
    assert interface.seek_opponent(0.1) is False
    driver.get.assert_called_once_with("https://lichess.org/")


def test_seek_success_when_url_changes() -> None:
    interface, driver = make_interface()
    make_seekable(driver)
    urls = ["https://lichess.org/"] + ["https://lichess.org/abcd1234"] * 10
    type(driver).current_url = PropertyMock(side_effect=urls)
    assert interface.seek_opponent(1.0) is True


def test_login_fills_the_form() -> None:
    interface, driver = make_interface()
    field = driver.find_element.return_value

    interface.login(Credentials(username="bob", password="secret"))

    driver.get.assert_called_once_with(LOGIN_URL)
    typed = [c.args[0] for c in field.send_keys.call_args_list]
    assert typed == ["bob", "secret"]
    field.click.assert_called_once()


def test_last_move_orientation_failure_is_a_miss() -> None:
    styles = ["transform: translate(256px, 256px);", "transform: translate(256px, 384px);"]
    interface, driver = make_interface(styles=styles)
    driver.find_elements.side_effect = WebDriverException("stale frame")

    assert interface.get_last_move() is None


def test_last_move_uses_the_given_orientation() -> None:
    styles = ["transform: translate(192px, 256px);", "transform: translate(192px, 384px);"]
    interface, driver = make_interface(white=True, styles=styles)

    assert interface.get_last_move(we_are_white=False) == Move.parse("e7e5")
    driver.find_elements.assert_not_called()
