import random

import pytest

from remediator.app.planning.colors import (
    BLACK,
    WHITE,
    adjust_for_contrast,
    contrast_ratio,
    parse_color,
    relative_luminance,
    rgb_to_hex,
)


@pytest.mark.parametrize(
    ("text", "rgb"),
    [
        ("#fff", (255, 255, 255)),
        ("#1A2b3C", (26, 43, 60)),
        ("rgb(10, 20, 30)", (10, 20, 30)),
        ("rgba(255,0,0,0.5)", (255, 0, 0)),
        ("  #000000 ", (0, 0, 0)),
    ],
)
def test_parse_color(text, rgb):
    assert parse_color(text) == rgb


@pytest.mark.parametrize("text", ["red", "#12", "#gggggg", ""])
def test_unparseable_color_is_none(text):
    assert parse_color(text) is None


def test_hex_round_trip_of_known_value():
    assert rgb_to_hex((0, 95, 204)) == "#005fcc"


def test_luminance_extremes():
    assert relative_luminance(BLACK) == 0.0
    assert relative_luminance(WHITE) == pytest.approx(1.0)


def test_black_on_white_is_21_to_1():
    assert contrast_ratio(BLACK, WHITE) == pytest.approx(21.0)
    assert contrast_ratio(WHITE, BLACK) == pytest.approx(21.0)


def test_grey_on_white_is_darkened():
    grey = (153, 153, 153)

    adjusted = adjust_for_contrast(grey, WHITE, 4.6)

    assert contrast_ratio(adjusted, WHITE) >= 4.6
    assert relative_luminance(adjusted) < relative_luminance(grey)
    assert adjusted != BLACK


def test_light_text_on_dark_background_is_lightened():
    adjusted = adjust_for_contrast((90, 90, 90), (20, 20, 20), 4.6)

    assert contrast_ratio(adjusted, (20, 20, 20)) >= 4.6
    assert relative_luminance(adjusted) > relative_luminance((90, 90, 90))


def test_already_compliant_colour_is_unchanged():
    assert adjust_for_contrast(BLACK, WHITE, 4.6) == BLACK


@pytest.mark.parametrize("seed", range(30))
def test_adjusted_colour_meets_target_when_reachable(seed):
    rng = random.Random(seed)
    foreground = tuple(rng.randint(0, 255) for _ in range(3))
    background = tuple(rng.randint(0, 255) for _ in range(3))
    target = rng.choice([3.1, 4.6])

    adjusted = adjust_for_contrast(foreground, background, target)

    best = max(contrast_ratio(BLACK, background), contrast_ratio(WHITE, background))
    if best >= target:
        assert contrast_ratio(adjusted, background) >= target
    assert all(0 <= channel <= 255 for channel in adjusted)
